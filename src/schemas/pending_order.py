"""Pending-order ledger Pydantic schemas."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from src.schemas.checkout import CartItem, Communication, PaymentMethod

PendingOrderStatus = Literal["pending", "processing", "completed", "failed", "cancelled"]


class PendingCustomerInfo(BaseModel):
    """Customer details as captured at checkout. Required fields are checked by the ledger."""

    name: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    city: str = ""
    state: str = ""
    pincode: str = ""


class PendingOrderCreate(BaseModel):
    """Schema for POST /pending-orders."""

    order_number: str | None = Field(default=None, description="Allocated order number")
    items: list[CartItem] = Field(default_factory=list, description="Cart items")
    total: float = Field(default=0, ge=0, description="Cart total before shipping")
    shipping_charges: float | None = Field(default=None, ge=0, description="Shipping charge, if already computed")
    customer_info: PendingCustomerInfo = Field(default_factory=PendingCustomerInfo)
    payment_method: PaymentMethod = Field(default="online")
    communication: Communication = Field(default="website")
    notes: str | None = Field(default=None, description="Free-text notes from the customer")


class PendingOrderCreateResponse(BaseModel):
    """Schema for pending-order creation response."""

    id: Any = Field(description="Ledger row id")
    order_number: str = Field(description="Order number")


class GatewayCorrelationUpdate(BaseModel):
    """Schema for PUT /pending-orders/{order_number}/razorpay-order."""

    razorpay_order_id: str = Field(min_length=1, description="Razorpay order id")


class PaymentDetailsUpdate(BaseModel):
    """Schema for PUT /pending-orders/{order_number}/payment-details."""

    razorpay_order_id: str | None = Field(default=None, description="Razorpay order id")
    payment_id: str | None = Field(default=None, description="Razorpay payment id")
    status: PendingOrderStatus | None = Field(default=None, description="Requested status")
    failure_reason: str | None = Field(default=None, description="Failure reason")


class LedgerUpdateResponse(BaseModel):
    """Whether a ledger write was applied."""

    order_number: str = Field(description="Order number")
    updated: bool = Field(description="True if the change was applied or already held")


class PendingOrderResponse(BaseModel):
    """Schema for a ledger entry in API responses."""

    model_config = ConfigDict(from_attributes=True)

    id: Any = Field(description="Ledger row id")
    order_number: str = Field(description="Order number")
    items: list[dict[str, Any]] = Field(default_factory=list, description="Cart items")
    total: float = Field(default=0, description="Cart total before shipping")
    shipping_charges: float | None = Field(default=None, description="Shipping charge")
    customer_info: dict[str, Any] = Field(default_factory=dict, description="Customer details")
    payment_method: str | None = Field(default=None, description="online or cod")
    order_type: str | None = Field(default=None, description="DH Online TN or DH Online OS")
    communication: str | None = Field(default=None, description="website or mobile_app")
    notes: str | None = Field(default=None, description="Customer notes")
    status: PendingOrderStatus = Field(description="Ledger status")
    razorpay_order_id: str | None = Field(default=None, description="Razorpay order id")
    payment_id: str | None = Field(default=None, description="Razorpay payment id")
    failure_reason: str | None = Field(default=None, description="Failure reason")
    status_history: list[dict[str, Any]] = Field(default_factory=list, description="Applied transitions")
    completed_at: datetime | None = Field(default=None, description="Completion timestamp")
    created_at: datetime | None = Field(default=None, description="Creation timestamp")


class PendingOrderListResponse(BaseModel):
    """Schema for pending-order list responses."""

    items: list[PendingOrderResponse] = Field(description="Ledger entries, newest first")


class ExpirySweepResponse(BaseModel):
    """Result of one expiry sweep."""

    expired: int = Field(description="Number of entries moved to failed")
