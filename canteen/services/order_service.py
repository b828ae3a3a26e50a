"""
Order Service

The seven canteen operations. Each one performs a single collection read
and at most one collection write:

    check_identifier_availability  accounts.find_one
    signup                         accounts.find_one + accounts.insert
    login                          accounts.find_one
    place_order                    accounts.find_one + orders.insert
    get_order_by_number            orders.find_one
    get_orders_by_identifier       orders.find_many
    set_order_received             orders.update_one_and_return

The service keeps no state of its own; storage, password hasher and
clock are injected.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from canteen.core.security import PasswordHasher
from canteen.errors import ConflictError, InvalidCredentialError, NotFoundError
from canteen.services.storage.base import (
    AccountRecord,
    BaseStorage,
    DuplicateKeyError,
    OrderRecord,
)

logger = logging.getLogger(__name__)


@dataclass
class Availability:
    """Result of an SRN availability check."""
    exists: bool
    message: str


@dataclass
class AccountSummary:
    """Public view of an account. Never carries the password hash."""
    display_name: str
    identifier: str

    @classmethod
    def from_record(cls, record: AccountRecord) -> "AccountSummary":
        return cls(display_name=record.display_name, identifier=record.identifier)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class OrderService:
    """
    Account and order operations over an injected storage backend.

    Example:
        >>> service = OrderService(MemoryStorage(), PasswordHasher(rounds=4))
        >>> await service.signup("Asha", "PES1UG21CS001", "secret")
        >>> await service.login("PES1UG21CS001", "secret")
    """

    def __init__(
        self,
        storage: BaseStorage,
        hasher: PasswordHasher,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.storage = storage
        self.hasher = hasher
        self.clock = clock or utc_now

    # =========================================================================
    # ACCOUNTS
    # =========================================================================

    async def check_identifier_availability(self, identifier: str) -> Availability:
        """Tell whether ``identifier`` is free for signup."""
        account = await self.storage.accounts.find_one({"identifier": identifier})
        if account is not None:
            return Availability(exists=True, message="SRN already registered. Please login.")
        return Availability(exists=False, message="SRN available for signup.")

    async def signup(self, display_name: str, identifier: str, password: str) -> AccountSummary:
        """
        Register a new account.

        Raises:
            ConflictError: If ``identifier`` is already registered
        """
        existing = await self.storage.accounts.find_one({"identifier": identifier})
        if existing is not None:
            raise self._identifier_taken()

        credential_hash = await asyncio.to_thread(self.hasher.hash, password)

        try:
            account = await self.storage.accounts.insert(
                AccountRecord(
                    display_name=display_name,
                    identifier=identifier,
                    credential_hash=credential_hash,
                    created_at=self.clock(),
                )
            )
        except DuplicateKeyError as e:
            # Lost a race with a concurrent signup for the same SRN
            raise self._identifier_taken() from e

        logger.info(f"Account created for SRN {identifier}")
        return AccountSummary.from_record(account)

    async def login(self, identifier: str, password: str) -> AccountSummary:
        """
        Verify credentials.

        Raises:
            NotFoundError: If no account has ``identifier`` (status 400)
            InvalidCredentialError: If the password does not match
        """
        account = await self.storage.accounts.find_one({"identifier": identifier})
        if account is None:
            raise NotFoundError(
                "User not found",
                message="No account found with this SRN. Please signup first.",
                status_code=400,
            )

        valid = await asyncio.to_thread(self.hasher.verify, password, account.credential_hash)
        if not valid:
            logger.info(f"Rejected login for SRN {identifier}")
            raise InvalidCredentialError(
                "Invalid password",
                message="Incorrect password. Please try again.",
            )

        return AccountSummary.from_record(account)

    @staticmethod
    def _identifier_taken() -> ConflictError:
        return ConflictError(
            "SRN already exists",
            message="This SRN is already registered. Please login instead.",
        )

    # =========================================================================
    # ORDERS
    # =========================================================================

    async def place_order(
        self,
        account_name: str,
        identifier: str,
        order_number: str,
        otp: str,
        items: list[Any],
        total_amount: float,
    ) -> OrderRecord:
        """
        Store a new, not yet received order for an existing account.

        A duplicate ``order_number`` is rejected by storage and the
        DuplicateKeyError propagates unchanged.

        Raises:
            NotFoundError: If no account has ``identifier`` (status 400)
        """
        account = await self.storage.accounts.find_one({"identifier": identifier})
        if account is None:
            raise NotFoundError("User not found", status_code=400)

        order = await self.storage.orders.insert(
            OrderRecord(
                account_name=account_name,
                identifier=identifier,
                order_number=order_number,
                otp=otp,
                items=items,
                total_amount=total_amount,
                received=False,
                created_at=self.clock(),
            )
        )

        logger.info(f"Order {order_number} placed by SRN {identifier} (total {total_amount})")
        return order

    async def get_order_by_number(self, order_number: str) -> OrderRecord:
        """
        Raises:
            NotFoundError: If no order has ``order_number``
        """
        order = await self.storage.orders.find_one({"order_number": order_number})
        if order is None:
            raise NotFoundError("Order not found")
        return order

    async def get_orders_by_identifier(self, identifier: str) -> list[OrderRecord]:
        """All orders of ``identifier``, newest first."""
        return await self.storage.orders.find_many(
            {"identifier": identifier}, order_by="created_at", descending=True
        )

    async def set_order_received(self, order_number: str, received: bool) -> OrderRecord:
        """
        Set the received flag and return the updated order.

        Raises:
            NotFoundError: If no order has ``order_number``
        """
        order = await self.storage.orders.update_one_and_return(
            {"order_number": order_number}, {"received": received}
        )
        if order is None:
            raise NotFoundError("Order not found")

        logger.info(f"Order {order_number} marked received={received}")
        return order
