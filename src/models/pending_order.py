"""Pending order (ledger) model type definitions for database operations."""

from datetime import datetime
from typing import Literal, TypedDict

from src.models.order import Communication

# Ledger status enum values matching database enum
PendingOrderStatus = Literal["pending", "processing", "completed", "failed", "cancelled"]

# Who is asking for a status change
StatusSource = Literal["client", "webhook", "system"]

PaymentMethod = Literal["online", "cod"]

OrderType = Literal["DH Online TN", "DH Online OS"]

TERMINAL_STATUSES: frozenset[str] = frozenset({"completed", "failed", "cancelled"})

# Forward-only transitions. Terminal states have no outgoing edges.
ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"processing", "completed", "failed", "cancelled"}),
    "processing": frozenset({"completed", "failed", "cancelled"}),
    "completed": frozenset(),
    "failed": frozenset(),
    "cancelled": frozenset(),
}


class PendingOrderItem(TypedDict, total=False):
    """Structure for a single cart line stored in the items JSONB array."""

    id: str
    name: str
    price: float
    quantity: int
    skuid: str
    product_id: str


class CustomerInfo(TypedDict):
    """Structure of the customer_info JSONB column."""

    name: str
    email: str
    phone: str
    address: str
    city: str
    state: str
    pincode: str


class StatusHistoryEntry(TypedDict):
    """One applied transition in the append-only status_history array."""

    status: PendingOrderStatus
    source: StatusSource
    at: str


class PendingOrder(TypedDict):
    """pending_orders table row representation.

    Checkout intent recorded before payment is attempted. Rows are never
    deleted; terminal statuses are final.
    """

    id: int
    order_number: str
    items: list[PendingOrderItem]
    total: float
    shipping_charges: float | None
    customer_info: CustomerInfo
    payment_method: PaymentMethod
    order_type: OrderType
    communication: Communication
    notes: str | None
    status: PendingOrderStatus
    razorpay_order_id: str | None
    payment_id: str | None
    failure_reason: str | None
    status_history: list[StatusHistoryEntry]
    completed_at: datetime | None
    created_at: datetime
    updated_at: datetime


class PendingOrderUpdate(TypedDict, total=False):
    """Fields that can be merged into a ledger row."""

    status: PendingOrderStatus
    razorpay_order_id: str
    payment_id: str
    failure_reason: str
    status_history: list[StatusHistoryEntry]
    completed_at: str
    updated_at: str
