"""Checkout orchestration for online and cash-on-delivery orders."""

import logging
from typing import Any

from src.api.middleware.error_handler import GatewayError
from src.schemas.checkout import CheckoutRequest
from src.services.gateway_service import GatewayService
from src.services.order_finalizer import OrderFinalizer
from src.services.pending_order_service import PendingOrderService
from src.services.sequence_service import SequenceService, get_sequence_service
from src.services.shipping_service import calculate_shipping, order_type_for_state

logger = logging.getLogger(__name__)

GATEWAY_FAILURE_REASON = "Payment gateway unavailable"


class CheckoutService:
    """Service for turning a cart submission into a payable order."""

    def __init__(
        self,
        sequences: SequenceService | None = None,
        pending_orders: PendingOrderService | None = None,
        gateway: GatewayService | None = None,
        finalizer: OrderFinalizer | None = None,
    ) -> None:
        self.sequences = sequences or get_sequence_service()
        self.pending_orders = pending_orders or PendingOrderService()
        self.gateway = gateway or GatewayService(pending_orders=self.pending_orders)
        self.finalizer = finalizer or OrderFinalizer(sequences=self.sequences)

    async def start_checkout(self, request: CheckoutRequest) -> dict[str, Any]:
        """Start checkout for a cart.

        Online orders get a pending-order ledger entry and a Razorpay order;
        the widget options are returned to the client. COD orders are
        finalized immediately without a ledger entry.

        Args:
            request: Validated checkout request.

        Returns:
            dict: Order number, amounts, status and, for online orders, widget options.

        Raises:
            LedgerValidationError: If the ledger entry is missing required data.
            DuplicateOrderError: If every order number tried was claimed by another worker.
            StoreError: If the ledger or order store is unavailable.
            GatewayError: If Razorpay order creation fails.
        """
        customer = request.customer_info.model_dump()
        items = [item.model_dump(exclude_none=True) for item in request.items]
        subtotal = sum(item.price * item.quantity for item in request.items)
        quote = calculate_shipping(subtotal, customer.get("state"))
        total = subtotal + quote.charges
        order_data: dict[str, Any] = {
            "items": items,
            "total": subtotal,
            "shipping_charges": quote.charges,
            "customer_info": customer,
            "communication": request.communication,
            "notes": request.notes,
        }
        result: dict[str, Any] = {
            "payment_method": request.payment_method,
            "order_type": order_type_for_state(customer.get("state")),
            "subtotal": subtotal,
            "shipping_charges": quote.charges,
            "total": total,
        }

        if request.payment_method == "cod":

            async def finalize(number: str) -> dict[str, Any]:
                return await self.finalizer.finalize_cod({**order_data, "order_number": number})

            order_number, order = await self.sequences.allocate_order_number(finalize)
            logger.info("COD checkout %s finalized", order_number)
            return {
                **result,
                "order_number": order_number,
                "status": "completed",
                "invoice_number": order.get("invoicenum"),
            }

        async def open_ledger_entry(number: str) -> Any:
            return await self.pending_orders.create(
                {**order_data, "order_number": number, "payment_method": "online"}
            )

        # The ledger row is written before the number is released to another checkout
        order_number, _ = await self.sequences.allocate_order_number(open_ledger_entry)

        try:
            options = await self.gateway.create_gateway_order(order_number, total, customer)
        except GatewayError:
            # The customer never saw a payment widget for this order
            await self.pending_orders.fail(order_number, GATEWAY_FAILURE_REASON, source="system")
            raise

        logger.info("Online checkout %s started", order_number)
        return {**result, "order_number": order_number, "status": "pending", "razorpay": options}
