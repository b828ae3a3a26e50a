"""
Database Storage Implementation

Persists accounts and orders through the SQLAlchemy async ORM.
Used whenever STORAGE_BACKEND=database (the default).

Uniqueness of ``accounts.identifier`` and ``orders.order_number`` is
enforced by unique indexes; a violation surfaces as DuplicateKeyError.
Updates run as a single ``UPDATE ... RETURNING`` statement, so the
changed row is read back atomically with the write.
"""

import logging
from dataclasses import fields
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import select, text, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from canteen.database import create_engine, create_session_maker, init_db
from canteen.models import Account, Order
from canteen.services.storage.base import (
    AccountRecord,
    BaseCollection,
    BaseStorage,
    DuplicateKeyError,
    OrderRecord,
    RecordT,
)

logger = logging.getLogger(__name__)


class DatabaseCollection(BaseCollection[RecordT]):
    """Maps one ORM model onto one record type."""

    def __init__(
        self,
        name: str,
        model: type,
        record_type: type,
        session_maker: async_sessionmaker[AsyncSession],
        unique_fields: tuple[str, ...] = (),
    ):
        self.name = name
        self.model = model
        self.record_type = record_type
        self.unique_fields = unique_fields
        self._session_maker = session_maker
        self._field_names = [f.name for f in fields(record_type)]

    def _to_record(self, row: Any) -> RecordT:
        values = {name: getattr(row, name) for name in self._field_names}
        values["id"] = str(row.id)
        created_at = values.get("created_at")
        # SQLite hands back naive timestamps
        if created_at is not None and created_at.tzinfo is None:
            values["created_at"] = created_at.replace(tzinfo=timezone.utc)
        return self.record_type(**values)

    async def find_one(self, criteria: dict[str, Any]) -> Optional[RecordT]:
        async with self._session_maker() as session:
            result = await session.execute(
                select(self.model).filter_by(**criteria).order_by(self.model.id).limit(1)
            )
            row = result.scalars().first()
            return self._to_record(row) if row is not None else None

    async def find_many(
        self,
        criteria: dict[str, Any],
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> list[RecordT]:
        query = select(self.model).filter_by(**criteria)

        if order_by is None:
            query = query.order_by(self.model.id)
        elif descending:
            query = query.order_by(getattr(self.model, order_by).desc(), self.model.id.desc())
        else:
            query = query.order_by(getattr(self.model, order_by).asc(), self.model.id.asc())

        async with self._session_maker() as session:
            result = await session.execute(query)
            return [self._to_record(row) for row in result.scalars().all()]

    async def insert(self, record: RecordT) -> RecordT:
        values = {name: getattr(record, name) for name in self._field_names if name != "id"}
        if values.get("created_at") is None:
            values["created_at"] = datetime.now(timezone.utc)
        row = self.model(**values)

        async with self._session_maker() as session:
            session.add(row)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise DuplicateKeyError(self.name, self.unique_fields, str(e.orig)) from e

            logger.debug(f"Inserted into {self.name}: {row.id}")
            return self._to_record(row)

    async def update_one_and_return(
        self,
        criteria: dict[str, Any],
        changes: dict[str, Any],
    ) -> Optional[RecordT]:
        stmt = (
            update(self.model)
            .filter_by(**criteria)
            .values(**changes)
            .returning(self.model)
            .execution_options(synchronize_session=False)
        )

        async with self._session_maker() as session:
            result = await session.execute(stmt)
            row = result.scalars().first()
            record = self._to_record(row) if row is not None else None
            await session.commit()
            return record


class DatabaseStorage(BaseStorage):
    """
    SQLAlchemy-backed implementation of the storage interface.

    Example:
        >>> storage = DatabaseStorage("sqlite+aiosqlite:///canteen.db")
        >>> await storage.init()
    """

    def __init__(self, database_url: str, echo: bool = False):
        self.database_url = database_url
        self.engine = create_engine(database_url, echo=echo)
        self.session_maker = create_session_maker(self.engine)

        self._accounts: DatabaseCollection[AccountRecord] = DatabaseCollection(
            "accounts", Account, AccountRecord, self.session_maker,
            unique_fields=("identifier",),
        )
        self._orders: DatabaseCollection[OrderRecord] = DatabaseCollection(
            "orders", Order, OrderRecord, self.session_maker,
            unique_fields=("order_number",),
        )
        logger.info(f"DatabaseStorage initialized ({self.engine.url.get_backend_name()})")

    @property
    def provider_name(self) -> str:
        """Return the provider name."""
        return "database"

    @property
    def accounts(self) -> DatabaseCollection[AccountRecord]:
        return self._accounts

    @property
    def orders(self) -> DatabaseCollection[OrderRecord]:
        return self._orders

    async def init(self) -> None:
        """Create tables and indexes if they do not exist yet."""
        await init_db(self.engine)
        logger.info("Database tables ready")

    async def close(self) -> None:
        await self.engine.dispose()

    async def health_check(self) -> bool:
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return False
