"""Pending-order ledger: checkout intent recorded before payment is attempted."""

import logging
from datetime import datetime, timezone
from typing import Any

from src.api.middleware.error_handler import LedgerValidationError, StoreError
from src.models.pending_order import (
    ALLOWED_TRANSITIONS,
    TERMINAL_STATUSES,
    PendingOrderStatus,
    StatusHistoryEntry,
    StatusSource,
)
from src.services.order_store import PendingOrderStore
from src.services.shipping_service import order_type_for_state

logger = logging.getLogger(__name__)


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _history_entry(status: PendingOrderStatus, source: StatusSource) -> StatusHistoryEntry:
    return {"status": status, "source": source, "at": _utcnow_iso()}


class PendingOrderService:
    """Service for the pending-order ledger.

    Status changes go through one set of transition rules:

    - statuses only move forward, and completed/failed/cancelled are final;
    - only the webhook may mark an order completed, client callbacks are hints;
    - repeating the terminal status an order already has is a no-op success.

    Mutating operations never raise for storage problems. They log and return
    False so a client callback can never break the checkout page.
    """

    def __init__(self, store: PendingOrderStore | None = None) -> None:
        self.store = store or PendingOrderStore()

    async def create(self, data: dict[str, Any]) -> Any:
        """Record a new checkout intent with status ``pending``.

        Args:
            data: Order number, items, totals, customer info and optional
                payment method, communication channel and notes.

        Returns:
            The id of the stored ledger row.

        Raises:
            LedgerValidationError: If order number, customer email or items are missing.
            StoreError: If the ledger could not be written.
        """
        order_number = data.get("order_number")
        customer_info = data.get("customer_info") or {}
        items = data.get("items") or []

        missing = []
        if not order_number:
            missing.append({"loc": ["order_number"], "msg": "Order number is required", "type": "missing"})
        if not customer_info.get("email"):
            missing.append({"loc": ["customer_info", "email"], "msg": "Customer email is required", "type": "missing"})
        if not items:
            missing.append({"loc": ["items"], "msg": "At least one item is required", "type": "missing"})
        if missing:
            raise LedgerValidationError("Missing required order data", details=missing)

        now = _utcnow_iso()
        record = {
            "order_number": order_number,
            "items": items,
            "total": data.get("total", 0),
            "shipping_charges": data.get("shipping_charges"),
            "customer_info": customer_info,
            "payment_method": data.get("payment_method") or "online",
            "order_type": order_type_for_state(customer_info.get("state")),
            "communication": data.get("communication") or "website",
            "notes": data.get("notes"),
            "status": "pending",
            "status_history": [_history_entry("pending", data.get("source") or "client")],
            "created_at": now,
            "updated_at": now,
        }

        row = await self.store.create(record)
        logger.info("Created pending order %s (%s)", order_number, record["order_type"])
        return row.get("id")

    async def get_latest(self, order_number: str) -> dict[str, Any] | None:
        """Return the most recently created ledger entry for ``order_number``.

        Only rows whose order number matches exactly are considered.

        Raises:
            StoreError: If the ledger could not be read.
        """
        records = await self.store.find_by_order_number(order_number)
        matches = [r for r in records if r.get("order_number") == order_number]
        if not matches:
            return None
        # Stores return newest first; max() keeps the first of equal timestamps
        return max(matches, key=lambda r: str(r.get("created_at") or ""))

    async def _load_latest(self, order_number: str) -> dict[str, Any] | None:
        try:
            record = await self.get_latest(order_number)
        except StoreError as e:
            logger.error("Could not load pending order %s: %s", order_number, e.message)
            return None
        if record is None:
            logger.warning("No pending order found for %s", order_number)
        return record

    def _can_transition(
        self,
        order_number: str,
        current: str,
        status: str,
        source: StatusSource,
    ) -> bool:
        if status not in ALLOWED_TRANSITIONS:
            logger.warning("Rejected unknown status %r for %s", status, order_number)
            return False
        if status == "completed" and source != "webhook":
            logger.warning("Rejected %s attempt to complete %s", source, order_number)
            return False
        if current in TERMINAL_STATUSES:
            logger.warning(
                "Rejected %s -> %s for %s from %s: status is final",
                current,
                status,
                order_number,
                source,
            )
            return False
        if status not in ALLOWED_TRANSITIONS.get(current, frozenset()):
            logger.warning("Rejected %s -> %s for %s from %s", current, status, order_number, source)
            return False
        return True

    async def _apply(
        self,
        order_number: str,
        status: str | None,
        fields: dict[str, Any],
        source: StatusSource,
    ) -> bool:
        record = await self._load_latest(order_number)
        if record is None:
            return False

        current = record.get("status") or "pending"
        update = {k: v for k, v in fields.items() if v is not None}

        if status == "completed" and source != "webhook":
            logger.warning("Rejected %s attempt to complete %s", source, order_number)
            return False

        if status is None or status == current:
            if current in TERMINAL_STATUSES:
                if status == current:
                    logger.info("Pending order %s already %s", order_number, current)
                    return True
                logger.warning("Ignored field update for %s: status %s is final", order_number, current)
                return False
            if not update:
                return True
        else:
            if not self._can_transition(order_number, current, status, source):
                return False
            history = list(record.get("status_history") or [])
            history.append(_history_entry(status, source))
            update["status"] = status
            update["status_history"] = history
            if status == "completed":
                update["completed_at"] = _utcnow_iso()

        update["updated_at"] = _utcnow_iso()

        try:
            row = await self.store.update(record["id"], update)
        except StoreError as e:
            logger.error("Could not update pending order %s: %s", order_number, e.message)
            return False

        if row is None:
            logger.warning("Pending order %s disappeared during update", order_number)
            return False

        if "status" in update:
            logger.info("Pending order %s: %s -> %s (%s)", order_number, current, status, source)
        return True

    async def update_status(
        self,
        order_number: str,
        status: PendingOrderStatus,
        payment_id: str | None = None,
        failure_reason: str | None = None,
        source: StatusSource = "client",
    ) -> bool:
        """Move the latest ledger entry for ``order_number`` to ``status``.

        Returns:
            bool: True if the status was applied or already held, False otherwise.
        """
        return await self._apply(
            order_number,
            status,
            {"payment_id": payment_id, "failure_reason": failure_reason},
            source,
        )

    async def update_gateway_correlation(self, order_number: str, gateway_order_id: str) -> bool:
        """Record the Razorpay order id on the ledger entry."""
        return await self._apply(order_number, None, {"razorpay_order_id": gateway_order_id}, "client")

    async def update_payment_details(
        self,
        order_number: str,
        gateway_order_id: str | None = None,
        payment_id: str | None = None,
        status: PendingOrderStatus | None = None,
        failure_reason: str | None = None,
        source: StatusSource = "client",
    ) -> bool:
        """Record gateway references and optionally change status in one write."""
        return await self._apply(
            order_number,
            status,
            {
                "razorpay_order_id": gateway_order_id,
                "payment_id": payment_id,
                "failure_reason": failure_reason,
            },
            source,
        )

    async def process(self, order_number: str, payment_id: str | None = None) -> bool:
        """Client reported success; wait for the webhook to confirm."""
        return await self.update_status(order_number, "processing", payment_id=payment_id)

    async def complete(self, order_number: str, payment_id: str) -> bool:
        """Mark the entry completed. Only the webhook reconciler calls this."""
        return await self.update_status(order_number, "completed", payment_id=payment_id, source="webhook")

    async def fail(self, order_number: str, reason: str, source: StatusSource = "client") -> bool:
        return await self.update_status(order_number, "failed", failure_reason=reason, source=source)

    async def cancel(self, order_number: str, reason: str | None = None) -> bool:
        return await self.update_status(order_number, "cancelled", failure_reason=reason)

    async def list_pending_orders(self, email: str | None = None) -> list[dict[str, Any]]:
        """List ledger entries newest first, optionally for one customer."""
        return await self.store.list_recent(email)

    async def find_expired(self, cutoff: datetime) -> list[dict[str, Any]]:
        """Entries still ``pending`` that were created before ``cutoff``."""
        return await self.store.find_expired(cutoff)
