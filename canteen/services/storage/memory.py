"""
In-Memory Storage Implementation

Keeps accounts and orders in process memory. Used for development
without a database and for the test suite.

Behavior:
    - Enforces the same unique fields as the database schema
    - Serializes writes with an asyncio.Lock so check-and-insert and
      update-and-return are atomic within the event loop
    - Hands out copies, so callers can never mutate stored state
"""

import asyncio
import logging
import uuid
from copy import deepcopy
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Optional

from canteen.services.storage.base import (
    AccountRecord,
    BaseCollection,
    BaseStorage,
    DuplicateKeyError,
    OrderRecord,
    RecordT,
)

logger = logging.getLogger(__name__)


def _matches(record: Any, criteria: dict[str, Any]) -> bool:
    return all(getattr(record, key) == value for key, value in criteria.items())


class MemoryCollection(BaseCollection[RecordT]):
    """A list of records guarded by a lock."""

    def __init__(self, name: str, unique_fields: tuple[str, ...] = ()):
        self.name = name
        self.unique_fields = unique_fields
        self._records: list[RecordT] = []
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._records)

    async def find_one(self, criteria: dict[str, Any]) -> Optional[RecordT]:
        for record in self._records:
            if _matches(record, criteria):
                return deepcopy(record)
        return None

    async def find_many(
        self,
        criteria: dict[str, Any],
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> list[RecordT]:
        found = [deepcopy(r) for r in self._records if _matches(r, criteria)]
        if order_by is None:
            return found
        if descending:
            # sorted() is stable, so reversing first keeps newer inserts ahead on ties
            found.reverse()
        return sorted(found, key=lambda r: getattr(r, order_by), reverse=descending)

    async def insert(self, record: RecordT) -> RecordT:
        async with self._lock:
            for unique_field in self.unique_fields:
                value = getattr(record, unique_field)
                if any(getattr(r, unique_field) == value for r in self._records):
                    raise DuplicateKeyError(
                        self.name, (unique_field,), f"{unique_field}={value!r}"
                    )

            stored = replace(
                deepcopy(record),
                id=record.id or uuid.uuid4().hex[:24],
                created_at=record.created_at or datetime.now(timezone.utc),
            )
            self._records.append(stored)
            logger.debug(f"Inserted into {self.name}: {stored.id}")
            return deepcopy(stored)

    async def update_one_and_return(
        self,
        criteria: dict[str, Any],
        changes: dict[str, Any],
    ) -> Optional[RecordT]:
        async with self._lock:
            for index, record in enumerate(self._records):
                if _matches(record, criteria):
                    updated = replace(record, **changes)
                    self._records[index] = updated
                    return deepcopy(updated)
        return None


class MemoryStorage(BaseStorage):
    """
    Memory-backed implementation of the storage interface.

    Example:
        >>> storage = MemoryStorage()
        >>> await storage.accounts.insert(AccountRecord("A", "S1", "hash"))
    """

    def __init__(self):
        self._accounts: MemoryCollection[AccountRecord] = MemoryCollection(
            "accounts", unique_fields=("identifier",)
        )
        self._orders: MemoryCollection[OrderRecord] = MemoryCollection(
            "orders", unique_fields=("order_number",)
        )
        logger.info("MemoryStorage initialized (data is lost on restart)")

    @property
    def provider_name(self) -> str:
        """Return the provider name."""
        return "memory"

    @property
    def accounts(self) -> MemoryCollection[AccountRecord]:
        return self._accounts

    @property
    def orders(self) -> MemoryCollection[OrderRecord]:
        return self._orders

    async def init(self) -> None:
        pass

    async def close(self) -> None:
        pass

    async def health_check(self) -> bool:
        return True
