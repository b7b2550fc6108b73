"""Razorpay gateway adapter: server-side order creation and client callbacks."""

import asyncio
import logging
from typing import Any

import razorpay

from src.api.middleware.error_handler import GatewayError, PaymentVerificationError, StoreError
from src.core.config import get_settings
from src.core.razorpay import get_razorpay_client, verify_payment_signature
from src.services.pending_order_service import PendingOrderService

logger = logging.getLogger(__name__)


def to_minor_units(amount: float) -> int:
    """Convert rupees to paise."""
    return int(round(amount * 100))


class GatewayService:
    """Service for Razorpay order creation and checkout-widget callbacks.

    Callbacks from the browser or mobile app are hints. They move the ledger
    along but never create a finalized order; only the webhook does that.
    """

    def __init__(
        self,
        pending_orders: PendingOrderService | None = None,
        client: razorpay.Client | None = None,
    ) -> None:
        self.settings = get_settings()
        self.pending_orders = pending_orders or PendingOrderService()
        self.client = client or get_razorpay_client()

    async def create_gateway_order(
        self,
        order_number: str,
        amount: float,
        customer: dict[str, Any],
        description: str | None = None,
    ) -> dict[str, Any]:
        """Create a Razorpay order and return the checkout widget options.

        Args:
            order_number: Business order number, sent as receipt and in notes.
            amount: Amount to charge in rupees, shipping included.
            customer: Customer info used to prefill the widget.
            description: Optional widget description.

        Returns:
            dict: Options for the Razorpay checkout widget.

        Raises:
            GatewayError: If Razorpay rejects the request or does not answer in time.
        """
        if not self.settings.razorpay_key_id:
            raise GatewayError("Razorpay is not configured. Please set RAZORPAY_KEY_ID.")

        amount_minor = to_minor_units(amount)
        notes = {"order_number": order_number}
        data = {
            "amount": amount_minor,
            "currency": self.settings.currency,
            "receipt": order_number,
            "payment_capture": 1,
            "notes": notes,
        }

        try:
            gateway_order = await asyncio.wait_for(
                asyncio.to_thread(self.client.order.create, data=data),
                timeout=self.settings.razorpay_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            logger.error("Razorpay order creation for %s timed out", order_number)
            raise GatewayError("Payment gateway timed out") from e
        except Exception as e:
            logger.error("Razorpay error creating order for %s: %s", order_number, str(e))
            raise GatewayError("Could not create payment order") from e

        gateway_order_id = gateway_order["id"]
        logger.info("Created Razorpay order %s for %s", gateway_order_id, order_number)

        if not await self.pending_orders.update_gateway_correlation(order_number, gateway_order_id):
            logger.warning("Could not record Razorpay order %s on %s", gateway_order_id, order_number)

        return {
            "key": self.settings.razorpay_key_id,
            "amount": amount_minor,
            "currency": self.settings.currency,
            "name": self.settings.store_name,
            "description": description or f"Order {order_number}",
            "order_id": gateway_order_id,
            "prefill": {
                "name": customer.get("name", ""),
                "email": customer.get("email", ""),
                "contact": customer.get("phone", ""),
            },
            "notes": notes,
        }

    async def current_status(self, order_number: str) -> str | None:
        try:
            record = await self.pending_orders.get_latest(order_number)
        except StoreError as e:
            logger.error("Could not read status of %s: %s", order_number, e.message)
            return None
        return record.get("status") if record else None

    async def _result(self, order_number: str, updated: bool) -> dict[str, Any]:
        return {
            "order_number": order_number,
            "updated": updated,
            "status": await self.current_status(order_number),
        }

    async def handle_payment_success(
        self,
        order_number: str,
        payment_id: str,
        gateway_order_id: str | None = None,
        signature: str | None = None,
    ) -> dict[str, Any]:
        """Record a client-reported success and wait for the webhook.

        Raises:
            PaymentVerificationError: If a signature was supplied and does not match.
        """
        if gateway_order_id and signature:
            if not verify_payment_signature(gateway_order_id, payment_id, signature):
                logger.warning("Invalid checkout signature for %s (payment %s)", order_number, payment_id)
                raise PaymentVerificationError()

        updated = await self.pending_orders.update_payment_details(
            order_number,
            gateway_order_id=gateway_order_id,
            payment_id=payment_id,
            status="processing",
        )
        return await self._result(order_number, updated)

    async def handle_payment_failure(self, order_number: str, reason: str) -> dict[str, Any]:
        """Record a gateway-reported payment failure."""
        updated = await self.pending_orders.fail(order_number, reason)
        return await self._result(order_number, updated)

    async def handle_payment_dismissed(self, order_number: str) -> dict[str, Any]:
        """The widget was closed without paying. The ledger is left as is."""
        logger.info("Payment widget dismissed for %s", order_number)
        return await self._result(order_number, False)

    async def cancel_payment(self, order_number: str, reason: str | None = None) -> dict[str, Any]:
        """Explicitly cancel a checkout."""
        updated = await self.pending_orders.cancel(order_number, reason or "Cancelled by customer")
        return await self._result(order_number, updated)
