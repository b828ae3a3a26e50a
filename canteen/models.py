"""
SQLAlchemy Database Models

Two tables back the canteen service:
- accounts: one row per registered SRN
- orders: one row per placed order, linked to an account by SRN

Column names match the fields of the storage records
(canteen.services.storage.base) so rows map onto records one to one.
"""

from sqlalchemy import JSON, Boolean, Column, DateTime, Float, Integer, String
from sqlalchemy.sql import func

from canteen.database import Base


class Account(Base):
    """Registered canteen user."""
    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True, autoincrement=True)

    display_name = Column(String(255), nullable=False)
    identifier = Column(String(255), nullable=False, unique=True, index=True)
    credential_hash = Column(String(100), nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    def __repr__(self):
        return f"<Account {self.identifier} - {self.display_name}>"


class Order(Base):
    """
    Canteen order.

    ``received`` is the only column updated after insertion.
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # =========================================================================
    # ACCOUNT
    # =========================================================================
    account_name = Column(String(255), nullable=False)
    identifier = Column(String(255), nullable=False, index=True)

    # =========================================================================
    # ORDER DETAILS
    # =========================================================================
    order_number = Column(String(255), nullable=False, unique=True, index=True)
    otp = Column(String(255), nullable=False)
    items = Column(JSON, nullable=False)  # Opaque list of item entries
    total_amount = Column(Float, nullable=False)

    # =========================================================================
    # PICKUP
    # =========================================================================
    received = Column(Boolean, nullable=False, default=False)

    # =========================================================================
    # TIMESTAMPS
    # =========================================================================
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), index=True)

    def __repr__(self):
        state = "received" if self.received else "pending"
        return f"<Order {self.order_number} - {self.identifier} - {state}>"
