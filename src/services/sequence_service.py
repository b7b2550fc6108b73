"""Order and invoice number allocation."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Iterable
from typing import TypeVar

from src.api.middleware.error_handler import DuplicateInvoiceError, DuplicateOrderError, StoreError
from src.core.config import get_settings
from src.services.order_store import OrderStore, PendingOrderStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Digits of the epoch-millisecond clock used when the lookups fail
FALLBACK_SUFFIX_DIGITS = 7


def parse_suffix(value: str, prefix: str) -> int | None:
    """Extract the numeric sequence from ``value`` if it carries ``prefix``."""
    if not value or not value.startswith(prefix):
        return None
    suffix = value[len(prefix):]
    if not suffix.isdigit():
        return None
    return int(suffix)


def max_suffix(values: Iterable[str], prefix: str) -> int | None:
    """Highest numeric suffix among ``values``, or None if none parse."""
    numbers = [n for n in (parse_suffix(v, prefix) for v in values) if n is not None]
    return max(numbers) if numbers else None


def timestamp_suffix() -> str:
    """Degraded suffix used when the max lookup is unavailable."""
    return str(int(time.time() * 1000))[-FALLBACK_SUFFIX_DIGITS:]


class SequenceService:
    """Allocates human-readable, increasing order and invoice numbers.

    Order numbers look at both the finalized orders and the ledger, since a
    ledger entry can hold a higher number than any order that has been paid.
    Invoice numbers only look at finalized orders and are only allocated by
    the finalizer, so abandoned payments never consume one.

    ``allocate_order_number`` and ``allocate_invoice_number`` hold the
    allocation lock until the caller's row holding the number is written, so
    two requests in one process never read the same max. The service also
    remembers the highest suffix it has handed out, which covers numbers whose
    rows are not visible to the scan yet. Across workers the UNIQUE indexes on
    ``orders.ordernum``, ``orders.invoicenum`` and ``pending_orders.order_number``
    reject a collision and the next number is tried.

    When a lookup fails or times out the allocator falls back to a
    timestamp-derived suffix instead of failing checkout. That keeps checkout
    available at the cost of strict monotonicity.
    """

    def __init__(
        self,
        order_store: OrderStore | None = None,
        pending_store: PendingOrderStore | None = None,
    ) -> None:
        self.settings = get_settings()
        self.order_store = order_store or OrderStore()
        self.pending_store = pending_store or PendingOrderStore()
        self._order_lock = asyncio.Lock()
        self._invoice_lock = asyncio.Lock()
        self._last_order_suffix = 0
        self._last_invoice_suffix = 0

    async def _bounded(self, lookup: Awaitable[list[str]]) -> list[str]:
        return await asyncio.wait_for(lookup, timeout=self.settings.sequence_lookup_timeout_seconds)

    async def _compute_order_number(self) -> str:
        # Caller holds _order_lock
        prefix = self.settings.order_number_prefix
        width = self.settings.order_number_width

        try:
            finalized, pending = await asyncio.gather(
                self._bounded(self.order_store.find_latest_ordernums(prefix)),
                self._bounded(self.pending_store.find_latest_order_numbers(prefix)),
            )
        except Exception as e:
            fallback = f"{prefix}{timestamp_suffix()}"
            logger.warning(
                "Order number lookup failed (%s: %s), using fallback %s",
                type(e).__name__,
                str(e),
                fallback,
            )
            return fallback

        current = max(
            max_suffix(finalized, prefix) or 0,
            max_suffix(pending, prefix) or 0,
            self._last_order_suffix,
        )
        self._last_order_suffix = current + 1
        return f"{prefix}{current + 1:0{width}d}"

    async def _compute_invoice_number(self) -> str:
        # Caller holds _invoice_lock
        prefix = self.settings.invoice_number_prefix
        width = self.settings.invoice_number_width

        try:
            existing = await self._bounded(self.order_store.find_latest_invoicenums(prefix))
        except Exception as e:
            fallback = f"{prefix}{timestamp_suffix()}"
            logger.warning(
                "Invoice number lookup failed (%s: %s), using fallback %s",
                type(e).__name__,
                str(e),
                fallback,
            )
            return fallback

        current = max_suffix(existing, prefix)
        if self._last_invoice_suffix:
            current = max(current or 0, self._last_invoice_suffix)
        next_number = self.settings.invoice_number_start if current is None else current + 1
        self._last_invoice_suffix = next_number
        return f"{prefix}{next_number:0{width}d}"

    async def _claim(
        self,
        lock: asyncio.Lock,
        compute: Callable[[], Awaitable[str]],
        reserve: Callable[[str], Awaitable[T]],
        conflict: type[StoreError],
        kind: str,
    ) -> tuple[str, T]:
        attempts = self.settings.sequence_reserve_attempts
        async with lock:
            attempt = 1
            while True:
                number = await compute()
                try:
                    result = await reserve(number)
                except conflict:
                    if attempt >= attempts:
                        logger.error("Could not claim an %s number after %d attempts", kind, attempts)
                        raise
                    logger.warning("%s number %s already taken, trying the next one", kind.capitalize(), number)
                    attempt += 1
                    continue
                logger.info("Allocated %s number %s", kind, number)
                return number, result

    async def next_order_number(self) -> str:
        """Allocate the next order number, e.g. ``DH-ECOM-0754``.

        Nothing is written, so callers that persist the number should use
        ``allocate_order_number`` instead.
        """
        async with self._order_lock:
            order_number = await self._compute_order_number()
        logger.info("Allocated order number %s", order_number)
        return order_number

    async def next_invoice_number(self) -> str:
        """Allocate the next invoice number, e.g. ``DH0002500``."""
        async with self._invoice_lock:
            invoice_number = await self._compute_invoice_number()
        logger.info("Allocated invoice number %s", invoice_number)
        return invoice_number

    async def allocate_order_number(self, reserve: Callable[[str], Awaitable[T]]) -> tuple[str, T]:
        """Allocate an order number and write the row that owns it.

        Args:
            reserve: Writes the ledger entry or order under the given number.
                Runs with the order-number lock held.

        Returns:
            The order number and whatever ``reserve`` returned.

        Raises:
            DuplicateOrderError: If every attempt collided with a number
                claimed by another worker.
        """
        return await self._claim(
            self._order_lock, self._compute_order_number, reserve, DuplicateOrderError, "order"
        )

    async def allocate_invoice_number(self, reserve: Callable[[str], Awaitable[T]]) -> tuple[str, T]:
        """Allocate an invoice number and write the order that carries it.

        Only invoice collisions are retried. A ``DuplicateOrderError`` from
        ``reserve`` propagates, since it means the order itself already exists.
        """
        return await self._claim(
            self._invoice_lock, self._compute_invoice_number, reserve, DuplicateInvoiceError, "invoice"
        )


# Global instance; its locks and high-water marks cover every request in this process
_sequence_service: SequenceService | None = None


def get_sequence_service() -> SequenceService:
    """Get or create the global sequence allocator."""
    global _sequence_service
    if _sequence_service is None:
        _sequence_service = SequenceService()
    return _sequence_service
