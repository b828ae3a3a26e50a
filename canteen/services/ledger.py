"""
Order Ledger with Concurrency Control

Appends order events to an Excel ledger that canteen staff use to
reconcile pickups. Writers in several Celery worker processes are
serialized with a file lock next to the workbook.

One row is written per event:
    placed      the order was stored
    received    staff marked the order as collected
    unreceived  the received flag was cleared again
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import pandas as pd
from filelock import FileLock, Timeout

from canteen.core.config import get_settings

logger = logging.getLogger(__name__)


class LedgerLockTimeout(Exception):
    """The ledger file lock could not be acquired in time."""


class OrderLedger:
    """Process- and thread-safe Excel ledger of order events."""

    COLUMNS = [
        "order_number",
        "event",
        "srn",
        "user_name",
        "items",
        "total_amount",
        "received",
        "created_at",
        "exported_at",
    ]

    def __init__(self, data_dir: Path, filename: str = "orders.xlsx", lock_timeout: int = 30):
        self.data_dir = Path(data_dir)
        self.path = self.data_dir / filename
        self.lock_path = self.data_dir / f"{filename}.lock"
        self.lock_timeout = lock_timeout

    @classmethod
    def from_settings(cls) -> "OrderLedger":
        settings = get_settings()
        return cls(
            Path(settings.data_directory),
            filename=settings.ledger_filename,
            lock_timeout=settings.ledger_lock_timeout,
        )

    def _ensure_data_dir(self) -> None:
        """Create data directory if needed."""
        if not self.data_dir.exists():
            self.data_dir.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created data directory: {self.data_dir}")

    def _load_or_create_df(self) -> pd.DataFrame:
        """Load existing ledger or create an empty one."""
        if self.path.exists():
            return pd.read_excel(self.path, engine="openpyxl")
        return pd.DataFrame(columns=self.COLUMNS)

    def append(self, order_data: dict[str, Any], event: str) -> dict[str, Any]:
        """
        Append one event row for an order.

        Args:
            order_data: Order as produced by ``OrderRecord.to_dict()``
            event: placed, received or unreceived

        Returns:
            dict with ``success``, ``message``, ``order_number`` and
            ``exported_at``
        """
        self._ensure_data_dir()

        order_number = order_data.get("order_number", "unknown")
        result: dict[str, Any] = {
            "success": False,
            "message": "",
            "order_number": order_number,
            "exported_at": None,
        }

        try:
            with FileLock(str(self.lock_path), timeout=self.lock_timeout):
                logger.debug(f"Lock acquired for Order {order_number}")

                df = self._load_or_create_df()

                export_time = datetime.now().isoformat()
                new_row = {
                    "order_number": order_number,
                    "event": event,
                    "srn": order_data.get("identifier"),
                    "user_name": order_data.get("account_name"),
                    "items": json.dumps(order_data.get("items", [])),
                    "total_amount": order_data.get("total_amount"),
                    "received": bool(order_data.get("received", False)),
                    "created_at": order_data.get("created_at"),
                    "exported_at": export_time,
                }

                if df.empty:
                    df = pd.DataFrame([new_row], columns=self.COLUMNS)
                else:
                    df = pd.concat([df, pd.DataFrame([new_row])], ignore_index=True)
                df.to_excel(str(self.path), index=False, engine="openpyxl")

                logger.info(f"Order {order_number} ({event}) written to ledger")

                result["success"] = True
                result["message"] = f"Order {order_number} exported"
                result["exported_at"] = export_time

        except Timeout:
            result["message"] = f"Lock timeout ({self.lock_timeout}s)"
            logger.error(f"Lock timeout for Order {order_number}")

        return result

    def read_all(self, event: Optional[str] = None) -> list[dict[str, Any]]:
        """Get all ledger rows, optionally only those of one event type."""
        if not self.path.exists():
            return []

        df = pd.read_excel(self.path, engine="openpyxl")
        if event is not None:
            df = df[df["event"] == event]
        return df.to_dict("records")

    def clear(self) -> None:
        """Delete the ledger and its lock file."""
        for f in (self.path, self.lock_path):
            if f.exists():
                f.unlink()
        logger.info("Ledger cleared")
