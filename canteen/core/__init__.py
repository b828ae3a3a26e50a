"""
Core module initialization.
Exports configuration, logging and password hashing utilities.
"""

from canteen.core.config import get_settings, Settings, EnvironmentMode, StorageBackend
from canteen.core.security import PasswordHasher, get_password_hasher

__all__ = [
    "get_settings",
    "Settings",
    "EnvironmentMode",
    "StorageBackend",
    "PasswordHasher",
    "get_password_hasher",
]
