"""
Celery Tasks
Background export of order events to the Excel ledger.
"""

import logging
import time
from datetime import datetime

from canteen.celery_worker import celery_app
from canteen.services.ledger import LedgerLockTimeout, OrderLedger

logger = logging.getLogger(__name__)

LEDGER_EVENTS = ("placed", "received", "unreceived")


@celery_app.task(
    bind=True,
    max_retries=3,
    default_retry_delay=5,
    autoretry_for=(Exception,),
    retry_backoff=True
)
def export_order_to_ledger(self, order_data: dict, event: str) -> dict:
    """
    Append an order event to the ledger.
    This task runs asynchronously via Celery worker.

    Args:
        order_data: Order as produced by ``OrderRecord.to_dict()``
        event: placed, received or unreceived

    Returns:
        dict: Result of the export operation

    Raises:
        LedgerLockTimeout: If the ledger stays locked, so the event is
            retried instead of dropped
    """
    if event not in LEDGER_EVENTS:
        raise ValueError(f"Unknown ledger event: {event}")

    task_id = self.request.id
    order_number = order_data.get('order_number', 'unknown')

    logger.info(f"Task {task_id}: Exporting order {order_number} ({event})")
    start_time = time.time()

    result = OrderLedger.from_settings().append(order_data, event)

    elapsed = round(time.time() - start_time, 3)
    result['task_id'] = task_id
    result['processing_time_seconds'] = elapsed

    if not result['success']:
        logger.warning(f"Task {task_id}: Order {order_number} failed - {result['message']}, retrying")
        raise LedgerLockTimeout(result['message'])

    logger.info(f"Task {task_id}: Order {order_number} exported in {elapsed}s")

    return result


@celery_app.task
def clear_ledger() -> dict:
    """
    Clear the ledger file (for testing/reset purposes).
    """
    OrderLedger.from_settings().clear()
    return {
        'success': True,
        'message': 'Ledger cleared',
        'timestamp': datetime.now().isoformat()
    }
