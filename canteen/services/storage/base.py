"""
Storage Abstract Base Classes

Defines the interface contract for all storage implementations.
Both MemoryStorage and DatabaseStorage must implement these methods,
so the order service behaves identically regardless of which backend
is active.

Design Pattern: Strategy Pattern
    - Allows switching between storage backends via configuration
    - The order service depends only on this interface
    - Facilitates testing with the in-memory implementation

A storage exposes two collections, ``accounts`` and ``orders``. A
collection is a small document-store style API:

    find_one(criteria)                     -> record or None
    find_many(criteria, order_by, desc)    -> list of records
    insert(record)                         -> stored record
    update_one_and_return(criteria, changes) -> updated record or None
"""

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Generic, Optional, TypeVar


class DuplicateKeyError(Exception):
    """Raised by ``insert`` when a unique field collides with a stored record."""

    def __init__(self, collection: str, fields: tuple[str, ...], detail: str = ""):
        self.collection = collection
        self.fields = fields
        message = f"Duplicate key in '{collection}' on {', '.join(fields)}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


@dataclass
class AccountRecord:
    """
    A registered canteen user.

    Attributes:
        display_name: Name shown on orders
        identifier: SRN, unique login key
        credential_hash: bcrypt hash of the password
        created_at: Set at creation
        id: Storage-assigned key
    """
    display_name: str
    identifier: str
    credential_hash: str
    created_at: Optional[datetime] = None
    id: Optional[str] = None


@dataclass
class OrderRecord:
    """
    A placed canteen order.

    Attributes:
        account_name: Display name of the account at order time
        identifier: SRN of the placing account
        order_number: Unique external reference
        otp: Pickup verification code supplied by the client
        items: Opaque list of item entries
        total_amount: Amount to pay
        received: Whether the order was collected
        created_at: Set at creation
        id: Storage-assigned key
    """
    account_name: str
    identifier: str
    order_number: str
    otp: str
    total_amount: float
    items: list[Any] = field(default_factory=list)
    received: bool = False
    created_at: Optional[datetime] = None
    id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data = asdict(self)
        if self.created_at is not None:
            data["created_at"] = self.created_at.isoformat()
        return data


RecordT = TypeVar("RecordT", AccountRecord, OrderRecord)


class BaseCollection(ABC, Generic[RecordT]):
    """
    Abstract base class for a collection of records.

    Criteria are equality matches on record field names, e.g.
    ``{"identifier": "PES1UG21CS001"}``.
    """

    #: Name used in logs and error messages
    name: str = ""

    #: Fields that must be unique across the collection
    unique_fields: tuple[str, ...] = ()

    @abstractmethod
    async def find_one(self, criteria: dict[str, Any]) -> Optional[RecordT]:
        """
        Return the first record matching every criterion.

        Args:
            criteria: Field name to value mapping

        Returns:
            The record, or None if nothing matches
        """
        pass

    @abstractmethod
    async def find_many(
        self,
        criteria: dict[str, Any],
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> list[RecordT]:
        """
        Return all records matching every criterion.

        Args:
            criteria: Field name to value mapping
            order_by: Field to sort by (storage order when None)
            descending: Sort direction; ties keep the newest insert first

        Returns:
            List of records, possibly empty
        """
        pass

    @abstractmethod
    async def insert(self, record: RecordT) -> RecordT:
        """
        Store a new record.

        Assigns ``id`` and defaults ``created_at`` when missing.

        Returns:
            The stored record

        Raises:
            DuplicateKeyError: If a unique field is already taken
        """
        pass

    @abstractmethod
    async def update_one_and_return(
        self,
        criteria: dict[str, Any],
        changes: dict[str, Any],
    ) -> Optional[RecordT]:
        """
        Atomically apply ``changes`` to the first matching record.

        Returns:
            The record after the update, or None if nothing matched
        """
        pass


class BaseStorage(ABC):
    """
    Abstract base class for storage backends.

    Example:
        >>> storage = get_storage()  # Returns Memory or Database storage
        >>> await storage.init()
        >>> account = await storage.accounts.find_one({"identifier": "S1"})
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """
        Return the name of the storage backend.

        Returns:
            str: Backend name (e.g., "memory", "database")
        """
        pass

    @property
    @abstractmethod
    def accounts(self) -> BaseCollection[AccountRecord]:
        """The accounts collection."""
        pass

    @property
    @abstractmethod
    def orders(self) -> BaseCollection[OrderRecord]:
        """The orders collection."""
        pass

    @abstractmethod
    async def init(self) -> None:
        """Prepare the backend (create tables, indexes)."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release connections held by the backend."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Verify the backend is reachable.

        Returns:
            bool: True if the backend is operational
        """
        pass
