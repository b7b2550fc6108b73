"""Database model type definitions."""

from src.models.order import FinalizedOrder, FinalizedOrderCreate
from src.models.pending_order import (
    PendingOrder,
    PendingOrderStatus,
    PendingOrderUpdate,
    StatusSource,
)

__all__ = [
    "FinalizedOrder",
    "FinalizedOrderCreate",
    "PendingOrder",
    "PendingOrderStatus",
    "PendingOrderUpdate",
    "StatusSource",
]
