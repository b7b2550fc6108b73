"""Webhook reconciliation: the authoritative path from captured payment to order."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from src.api.middleware.error_handler import DuplicateOrderError, ReconciliationError, StoreError
from src.core.key_lock import KeyedLock, get_order_locks
from src.models.pending_order import TERMINAL_STATUSES
from src.schemas.webhook import PaymentEvent
from src.services.order_finalizer import OrderFinalizer
from src.services.order_store import OrderStore
from src.services.pending_order_service import PendingOrderService

logger = logging.getLogger(__name__)


class ReconcileOutcome(str, Enum):
    """What the reconciler did with one webhook delivery."""

    IGNORED_EVENT = "ignored_event"
    NO_ORDER_NUMBER = "no_order_number"
    NO_PAYMENT_ID = "no_payment_id"
    ALREADY_PROCESSED = "already_processed"
    MISSING_CUSTOMER_DATA = "missing_customer_data"
    CREATED = "created"


class ReconcileAction(str, Enum):
    FINALIZE_FROM_LEDGER = "finalize_from_ledger"
    FINALIZE_FROM_NOTES = "finalize_from_notes"
    SKIP_MISSING_DATA = "skip_missing_data"


def resolve_action(has_ledger_entry: bool, notes_complete: bool) -> ReconcileAction:
    """Pick the finalization source for a captured payment.

    A ledger entry always wins. Without one, the gateway notes must carry the
    customer's name, email and phone or the payment is left for manual review.
    """
    if has_ledger_entry:
        return ReconcileAction.FINALIZE_FROM_LEDGER
    if notes_complete:
        return ReconcileAction.FINALIZE_FROM_NOTES
    return ReconcileAction.SKIP_MISSING_DATA


@dataclass
class ReconcileResult:
    """Outcome of reconciling one payment event."""

    outcome: ReconcileOutcome
    order_number: str | None = None
    payment_id: str | None = None
    invoice_number: str | None = None
    ledger_updated: bool | None = None

    @property
    def message(self) -> str:
        return self.outcome.value


class ReconciliationService:
    """Reconciles ``payment.captured`` webhooks into finalized orders.

    Deliveries are at-least-once and may race each other or the client
    callback. The existence check, ledger lookup, order write and ledger
    completion for one order number all run under a per-order-number lock,
    and a unique violation on ``orders.ordernum`` is treated as a duplicate
    delivery. Storage failures raise ``ReconciliationError`` so the gateway
    redelivers.
    """

    def __init__(
        self,
        order_store: OrderStore | None = None,
        pending_orders: PendingOrderService | None = None,
        finalizer: OrderFinalizer | None = None,
        locks: KeyedLock | None = None,
    ) -> None:
        self.order_store = order_store or OrderStore()
        self.pending_orders = pending_orders or PendingOrderService()
        self.finalizer = finalizer or OrderFinalizer(order_store=self.order_store)
        self.locks = locks if locks is not None else get_order_locks()

    async def handle_event(self, payload: dict[str, Any] | PaymentEvent) -> ReconcileResult:
        """Reconcile one webhook delivery.

        Args:
            payload: Raw webhook body or an already normalized PaymentEvent.

        Returns:
            ReconcileResult: The outcome. Every outcome is acknowledged to the gateway.

        Raises:
            ReconciliationError: If storage failed and the delivery should be retried.
        """
        event = payload if isinstance(payload, PaymentEvent) else PaymentEvent.from_payload(payload)

        if not event.is_captured:
            logger.info("Ignoring webhook event %s", event.event or "<none>")
            return ReconcileResult(outcome=ReconcileOutcome.IGNORED_EVENT)

        order_number = event.order_number
        if not order_number:
            logger.warning("Captured payment %s has no order number in notes", event.payment_id)
            return ReconcileResult(outcome=ReconcileOutcome.NO_ORDER_NUMBER, payment_id=event.payment_id)

        if not event.payment_id:
            logger.warning("Captured payment for %s has no payment id", order_number)
            return ReconcileResult(outcome=ReconcileOutcome.NO_PAYMENT_ID, order_number=order_number)

        async with self.locks.hold(order_number):
            return await self._reconcile(event, order_number, event.payment_id)

    async def _reconcile(self, event: PaymentEvent, order_number: str, payment_id: str) -> ReconcileResult:
        if await self._already_processed(order_number, payment_id):
            logger.info("Payment %s for %s already processed", payment_id, order_number)
            return ReconcileResult(
                outcome=ReconcileOutcome.ALREADY_PROCESSED,
                order_number=order_number,
                payment_id=payment_id,
            )

        pending = await self._find_ledger_entry(order_number, event.gateway_order_id, payment_id)
        action = resolve_action(pending is not None, event.notes_complete)

        if action is ReconcileAction.SKIP_MISSING_DATA:
            logger.warning(
                "Captured payment %s for %s has no ledger entry and incomplete notes; needs manual review",
                payment_id,
                order_number,
            )
            return ReconcileResult(
                outcome=ReconcileOutcome.MISSING_CUSTOMER_DATA,
                order_number=order_number,
                payment_id=payment_id,
            )

        try:
            if action is ReconcileAction.FINALIZE_FROM_LEDGER:
                order = await self.finalizer.finalize_from_ledger(pending, payment_id)
            else:
                order = await self.finalizer.finalize_from_notes(event)
        except DuplicateOrderError:
            logger.info("Order %s was created concurrently; treating as processed", order_number)
            return ReconcileResult(
                outcome=ReconcileOutcome.ALREADY_PROCESSED,
                order_number=order_number,
                payment_id=payment_id,
            )
        except StoreError as e:
            raise ReconciliationError(f"Could not create order {order_number}", order_number=order_number) from e

        result = ReconcileResult(
            outcome=ReconcileOutcome.CREATED,
            order_number=order.get("ordernum", order_number),
            payment_id=payment_id,
            invoice_number=order.get("invoicenum"),
        )

        if pending is not None:
            result.ledger_updated = await self._complete_ledger(pending, payment_id)

        return result

    async def _already_processed(self, order_number: str, payment_id: str) -> bool:
        try:
            if await self.order_store.find_by_order_number(order_number):
                return True
            return bool(await self.order_store.find_by_payment_remarks_contains(payment_id))
        except StoreError as e:
            raise ReconciliationError(
                f"Could not check for an existing order {order_number}", order_number=order_number
            ) from e

    async def _find_ledger_entry(
        self,
        order_number: str,
        gateway_order_id: str | None,
        payment_id: str,
    ) -> dict[str, Any] | None:
        """Correlate by order number, then gateway order id, then payment id."""
        store = self.pending_orders.store
        try:
            pending = await self.pending_orders.get_latest(order_number)
            if pending is None and gateway_order_id:
                pending = next(iter(await store.find_by_gateway_order_id(gateway_order_id)), None)
            if pending is None:
                pending = next(iter(await store.find_by_payment_id(payment_id)), None)
        except StoreError as e:
            raise ReconciliationError(
                f"Could not look up pending order {order_number}", order_number=order_number
            ) from e

        if pending is not None and pending.get("order_number") != order_number:
            logger.warning(
                "Payment %s notes say %s but ledger entry is %s",
                payment_id,
                order_number,
                pending.get("order_number"),
            )
        return pending

    async def _complete_ledger(self, pending: dict[str, Any], payment_id: str) -> bool:
        ledger_number = pending["order_number"]
        status = pending.get("status")

        if status in TERMINAL_STATUSES and status != "completed":
            logger.warning(
                "Order %s finalized but ledger entry is already %s; needs manual review",
                ledger_number,
                status,
            )
            return False

        updated = await self.pending_orders.complete(ledger_number, payment_id)
        if not updated:
            logger.warning("Order %s finalized but ledger entry was not completed", ledger_number)
        return updated
