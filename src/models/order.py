"""Finalized order model type definitions for database operations."""

from datetime import datetime
from typing import Literal, TypedDict

# Channel that produced the order
Communication = Literal["website", "mobile_app"]

PaymentMode = Literal["Online Payment", "COD"]


class FinalizedOrder(TypedDict):
    """orders table row representation.

    The immutable, billable order. ``ordernum`` carries a UNIQUE index so a
    second insert for the same business key fails at the storage layer.
    Item data is stored as a denormalized " | "-joined snapshot.
    """

    id: int
    ordernum: str
    invoicenum: str
    total: float
    total_value: float
    shipping_charges: float
    customer_name: str
    phone_num: str
    email: str
    shipping_address: str
    billing_address: str
    payment: PaymentMode
    communication: Communication
    product_names: str
    price_summary: str
    skuid: str
    prodid: str
    quantity: str
    remarks: str
    created_at: datetime


class FinalizedOrderCreate(TypedDict, total=False):
    """Data required to insert a finalized order."""

    ordernum: str
    invoicenum: str
    total: float
    total_value: float
    shipping_charges: float
    customer_name: str
    phone_num: str
    email: str
    shipping_address: str
    billing_address: str
    payment: PaymentMode
    communication: Communication
    product_names: str
    price_summary: str
    skuid: str
    prodid: str
    quantity: str
    remarks: str
