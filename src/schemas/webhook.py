"""Razorpay webhook schemas."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

PAYMENT_CAPTURED = "payment.captured"

# Notes a no-ledger (mobile app) checkout must carry to be finalized
REQUIRED_CUSTOMER_NOTES = ("customer_name", "customer_email", "customer_phone")


class PaymentEvent(BaseModel):
    """A gateway payment event, normalized from the raw webhook payload."""

    model_config = ConfigDict(from_attributes=True)

    event: str = Field(description="Webhook event name, e.g. payment.captured")
    payment_id: str | None = Field(default=None, description="Razorpay payment id")
    gateway_order_id: str | None = Field(default=None, description="Razorpay order id")
    amount: int = Field(default=0, description="Captured amount in minor units (paise)")
    notes: dict[str, str] = Field(default_factory=dict, description="Notes attached at checkout")

    @property
    def is_captured(self) -> bool:
        return self.event == PAYMENT_CAPTURED

    @property
    def order_number(self) -> str | None:
        return self.notes.get("order_number") or None

    @property
    def notes_complete(self) -> bool:
        """Whether the notes alone carry enough customer data to build an order."""
        return all(self.notes.get(key) for key in REQUIRED_CUSTOMER_NOTES)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "PaymentEvent":
        """Build a PaymentEvent from ``{event, payload: {payment: {entity: {...}}}}``.

        Missing sections are tolerated; the reconciler decides what to do with
        an event that lacks a payment id or order number.
        """
        body = payload.get("payload") or {}
        entity = (body.get("payment") or {}).get("entity") or {}

        notes = entity.get("notes") or {}
        # Razorpay sends an empty list when no notes were set
        if not isinstance(notes, dict):
            notes = {}

        return cls(
            event=str(payload.get("event") or ""),
            payment_id=entity.get("id"),
            gateway_order_id=entity.get("order_id"),
            amount=int(entity.get("amount") or 0),
            notes={str(k): str(v) for k, v in notes.items() if v is not None},
        )


class WebhookResponse(BaseModel):
    """Acknowledgement returned to Razorpay."""

    status: str = Field(default="ok", description="Always ok when the event was accepted")
    message: str | None = Field(default=None, description="Reconciliation outcome")
