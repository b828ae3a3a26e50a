"""
                Canteen Order Service

Order-management backend for a canteen: students sign up and log in
with their SRN, place orders with a pickup OTP, and staff mark the
orders as received.

Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"
