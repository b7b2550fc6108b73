"""Checkout Pydantic schemas for API request/response models."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

PaymentMethod = Literal["online", "cod"]
Communication = Literal["website", "mobile_app"]


class CartItem(BaseModel):
    """Schema for a single cart line."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(description="Cart item / variant id")
    name: str = Field(description="Product name")
    price: float = Field(ge=0, description="Unit price in rupees")
    quantity: int = Field(ge=1, description="Quantity ordered")
    skuid: str | None = Field(default=None, description="SKU id")
    product_id: str | None = Field(default=None, description="Catalog product id")


class CustomerInfoSchema(BaseModel):
    """Schema for the customer's contact and delivery details."""

    model_config = ConfigDict(from_attributes=True)

    name: str = Field(min_length=1, description="Customer name")
    email: str = Field(min_length=3, description="Customer email")
    phone: str = Field(min_length=1, description="Customer phone number")
    address: str = Field(description="Street address")
    city: str = Field(description="City")
    state: str = Field(description="State, free text")
    pincode: str = Field(description="Postal code")


class CheckoutRequest(BaseModel):
    """Schema for starting checkout via POST /checkout."""

    model_config = ConfigDict(from_attributes=True)

    items: list[CartItem] = Field(min_length=1, description="Cart items")
    customer_info: CustomerInfoSchema = Field(description="Customer details")
    payment_method: PaymentMethod = Field(default="online", description="online or cod")
    communication: Communication = Field(default="website", description="Channel placing the order")
    notes: str | None = Field(default=None, description="Free-text notes from the customer")


class RazorpayCheckoutOptions(BaseModel):
    """Options passed to the Razorpay checkout widget."""

    key: str = Field(description="Razorpay key id")
    amount: int = Field(description="Amount in paise")
    currency: str = Field(description="Currency code")
    name: str = Field(description="Merchant name")
    description: str = Field(description="Payment description")
    order_id: str = Field(description="Razorpay order id")
    prefill: dict[str, str] = Field(default_factory=dict, description="Customer prefill")
    notes: dict[str, str] = Field(default_factory=dict, description="Notes echoed back on the payment")


class CheckoutResponse(BaseModel):
    """Schema for checkout responses."""

    model_config = ConfigDict(from_attributes=True)

    order_number: str = Field(description="Allocated order number")
    payment_method: PaymentMethod = Field(description="online or cod")
    status: str = Field(description="pending for online orders, completed for COD")
    order_type: str = Field(description="DH Online TN or DH Online OS")
    subtotal: float = Field(description="Cart total before shipping")
    shipping_charges: float = Field(description="Shipping charge")
    total: float = Field(description="Amount payable")
    invoice_number: str | None = Field(default=None, description="Invoice number (COD only)")
    razorpay: RazorpayCheckoutOptions | None = Field(default=None, description="Widget options (online only)")


class PaymentSuccessRequest(BaseModel):
    """Payload from the checkout widget's success handler."""

    razorpay_payment_id: str = Field(min_length=1, description="Razorpay payment id")
    razorpay_order_id: str | None = Field(default=None, description="Razorpay order id")
    razorpay_signature: str | None = Field(default=None, description="Checkout signature")


class PaymentFailureRequest(BaseModel):
    """Payload from the checkout widget's failure handler."""

    reason: str = Field(default="Payment failed", description="Failure description from the gateway")
    error_code: str | None = Field(default=None, description="Gateway error code")


class CancelRequest(BaseModel):
    """Explicit cancellation by the customer."""

    reason: str | None = Field(default=None, description="Why the checkout was cancelled")


class PaymentCallbackResponse(BaseModel):
    """Result of a client payment callback."""

    order_number: str = Field(description="Order number")
    updated: bool = Field(description="Whether the ledger entry changed")
    status: str | None = Field(default=None, description="Current ledger status, if known")
