"""
                        Services Module

Business logic of the canteen:
    - order_service: the account and order operations
    - storage: Memory / Database persistence backends
    - ledger: Excel ledger of order events for canteen staff
"""

from canteen.core.security import get_password_hasher
from canteen.services.order_service import AccountSummary, Availability, OrderService
from canteen.services.storage import get_storage


def get_order_service() -> OrderService:
    """
    Build the order service over the configured storage and hasher.

    Used as a FastAPI dependency; tests override it through
    ``app.dependency_overrides``.
    """
    return OrderService(get_storage(), get_password_hasher())


__all__ = [
    "get_order_service",
    "OrderService",
    "AccountSummary",
    "Availability",
]
