"""Builds and writes finalized orders."""

import logging
from typing import Any

from src.models.order import FinalizedOrderCreate
from src.schemas.webhook import PaymentEvent
from src.services.notification_service import NotificationDispatcher, get_notification_dispatcher
from src.services.order_store import OrderStore
from src.services.sequence_service import SequenceService, get_sequence_service
from src.services.shipping_service import calculate_shipping

logger = logging.getLogger(__name__)

ITEM_SEPARATOR = " | "
MOBILE_ORDER_PLACEHOLDER = "Mobile App Order"
MOBILE_ITEM_PLACEHOLDER = "mobile_order"


def format_address(customer: dict[str, Any]) -> str:
    """Format a customer address as ``address, city, state - pincode``."""
    return (
        f"{customer.get('address', '')}, {customer.get('city', '')}, "
        f"{customer.get('state', '')} - {customer.get('pincode', '')}"
    )


def item_snapshot(items: list[dict[str, Any]]) -> dict[str, str]:
    """Denormalize cart items into the " | "-joined order columns."""
    return {
        "product_names": ITEM_SEPARATOR.join(str(item.get("name", "")) for item in items),
        "price_summary": ITEM_SEPARATOR.join(
            f"{item.get('name', '')}: {item.get('price', 0)} x {item.get('quantity', 0)}" for item in items
        ),
        "skuid": ITEM_SEPARATOR.join(str(item.get("skuid") or item.get("id", "")) for item in items),
        "prodid": ITEM_SEPARATOR.join(str(item.get("product_id") or item.get("id", "")) for item in items),
        "quantity": str(sum(int(item.get("quantity") or 0) for item in items)),
    }


def payment_remarks(communication: str, payment_id: str) -> str:
    channel = "Mobile App" if communication == "mobile_app" else "Website"
    return f"{channel} Payment ID: {payment_id}"


def _to_amount(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


class OrderFinalizer:
    """Turns a paid (or COD) checkout into exactly one finalized order.

    Every call allocates an invoice number, writes the order and hands the
    confirmation to the notification dispatcher. Store errors, including
    ``DuplicateOrderError``, propagate to the caller.
    """

    def __init__(
        self,
        order_store: OrderStore | None = None,
        sequences: SequenceService | None = None,
        dispatcher: NotificationDispatcher | None = None,
    ) -> None:
        self.order_store = order_store or OrderStore()
        self.sequences = sequences or get_sequence_service()
        self.dispatcher = dispatcher or get_notification_dispatcher()

    async def _write(self, data: FinalizedOrderCreate) -> dict[str, Any]:
        async def insert(invoice_number: str) -> dict[str, Any]:
            return await self.order_store.create({**data, "invoicenum": invoice_number})

        data["invoicenum"], order = await self.sequences.allocate_invoice_number(insert)
        logger.info(
            "Finalized order %s (invoice %s, total %s, %s)",
            data["ordernum"],
            data["invoicenum"],
            data["total"],
            data["payment"],
        )
        self.dispatcher.dispatch(data["phone_num"], data["ordernum"], data["total"])
        return order

    async def finalize_from_ledger(self, pending: dict[str, Any], payment_id: str) -> dict[str, Any]:
        """Finalize a paid order from its pending-order ledger entry."""
        customer = pending.get("customer_info") or {}
        items = pending.get("items") or []
        subtotal = _to_amount(pending.get("total"))

        shipping = pending.get("shipping_charges")
        if shipping is None:
            shipping = calculate_shipping(subtotal, customer.get("state")).charges
        shipping = _to_amount(shipping)

        total = subtotal + shipping
        communication = pending.get("communication") or "website"
        address = format_address(customer)

        data: FinalizedOrderCreate = {
            "ordernum": pending["order_number"],
            "total": total,
            "total_value": total,
            "shipping_charges": shipping,
            "customer_name": customer.get("name", ""),
            "phone_num": customer.get("phone", ""),
            "email": customer.get("email", ""),
            "shipping_address": address,
            "billing_address": address,
            "payment": "Online Payment",
            "communication": communication,
            "remarks": payment_remarks(communication, payment_id),
            **item_snapshot(items),
        }
        return await self._write(data)

    async def finalize_from_notes(self, event: PaymentEvent) -> dict[str, Any]:
        """Finalize a paid order from the notes of a no-ledger checkout."""
        notes = event.notes
        total = event.amount / 100
        address = notes.get("shipping_address") or MOBILE_ORDER_PLACEHOLDER

        data: FinalizedOrderCreate = {
            "ordernum": notes["order_number"],
            "total": total,
            "total_value": total,
            "shipping_charges": _to_amount(notes.get("shipping_charges") or 0),
            "customer_name": notes.get("customer_name", ""),
            "phone_num": notes.get("customer_phone", ""),
            "email": notes.get("customer_email", ""),
            "shipping_address": address,
            "billing_address": address,
            "payment": "Online Payment",
            "communication": "mobile_app",
            "product_names": notes.get("items") or MOBILE_ORDER_PLACEHOLDER,
            "price_summary": notes.get("item_details") or f"Mobile Order: ₹{total}",
            "skuid": MOBILE_ITEM_PLACEHOLDER,
            "prodid": MOBILE_ITEM_PLACEHOLDER,
            "quantity": notes.get("total_quantity") or "1",
            "remarks": payment_remarks("mobile_app", event.payment_id or ""),
        }
        return await self._write(data)

    async def finalize_cod(self, checkout: dict[str, Any]) -> dict[str, Any]:
        """Finalize a cash-on-delivery order directly, without a ledger entry."""
        customer = checkout.get("customer_info") or {}
        subtotal = _to_amount(checkout.get("total"))
        shipping = _to_amount(checkout.get("shipping_charges"))
        total = subtotal + shipping
        address = format_address(customer)

        data: FinalizedOrderCreate = {
            "ordernum": checkout["order_number"],
            "total": total,
            "total_value": total,
            "shipping_charges": shipping,
            "customer_name": customer.get("name", ""),
            "phone_num": customer.get("phone", ""),
            "email": customer.get("email", ""),
            "shipping_address": address,
            "billing_address": address,
            "payment": "COD",
            "communication": checkout.get("communication") or "website",
            "remarks": checkout.get("notes") or "",
            **item_snapshot(checkout.get("items") or []),
        }
        return await self._write(data)
