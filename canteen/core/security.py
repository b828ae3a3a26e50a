"""
Password hashing helpers.

Wraps bcrypt behind a two-function contract used by the order service:

    hasher = PasswordHasher(rounds=10)
    hashed = hasher.hash("secret")
    hasher.verify("secret", hashed)  # True

bcrypt only considers the first 72 bytes of a password, so longer
passwords are truncated explicitly before hashing and verification.
"""

import logging
from functools import lru_cache

import bcrypt

from canteen.core.config import get_settings

logger = logging.getLogger(__name__)

BCRYPT_MAX_BYTES = 72


def _encode(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


class PasswordHasher:
    """
    One-way adaptive password hashing with a fixed work factor.

    Attributes:
        rounds: bcrypt cost (log2 of the number of iterations)
    """

    def __init__(self, rounds: int = 10):
        self.rounds = rounds

    def hash(self, password: str) -> str:
        """Return the bcrypt hash of ``password`` as text."""
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(_encode(password), salt).decode("utf-8")

    def verify(self, password: str, hashed: str) -> bool:
        """Check ``password`` against a hash produced by :meth:`hash`."""
        return bcrypt.checkpw(_encode(password), hashed.encode("utf-8"))


@lru_cache()
def get_password_hasher() -> PasswordHasher:
    """Get the hasher configured with BCRYPT_ROUNDS."""
    settings = get_settings()
    logger.debug(f"Password hasher using {settings.bcrypt_rounds} bcrypt rounds")
    return PasswordHasher(rounds=settings.bcrypt_rounds)
