"""Expires pending orders that never received a payment."""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from src.core.config import get_settings
from src.services.pending_order_service import PendingOrderService

logger = logging.getLogger(__name__)

EXPIRED_REASON = "Order expired"


class ExpirySweeper:
    """Moves stale ``pending`` ledger entries to ``failed``.

    Runs once on demand through ``sweep`` or periodically in the background.
    Only entries still ``pending`` are touched; processing and terminal
    entries are left alone.
    """

    def __init__(self, pending_orders: PendingOrderService | None = None) -> None:
        self.settings = get_settings()
        self.pending_orders = pending_orders or PendingOrderService()
        self._task: asyncio.Task | None = None

    async def sweep(self, now: datetime | None = None) -> int:
        """Expire pending entries older than the configured window.

        Args:
            now: Reference time, defaults to the current UTC time.

        Returns:
            int: Number of entries moved to failed.
        """
        now = now or datetime.now(timezone.utc)
        cutoff = now - timedelta(hours=self.settings.pending_order_expiry_hours)

        expired = 0
        for record in await self.pending_orders.find_expired(cutoff):
            if record.get("status") != "pending":
                continue
            if await self.pending_orders.fail(record["order_number"], EXPIRED_REASON, source="system"):
                expired += 1

        if expired:
            logger.info("Expired %d pending orders created before %s", expired, cutoff.isoformat())
        return expired

    def status(self) -> dict[str, Any]:
        """Readiness of the background loop.

        A disabled loop counts as healthy. An enabled loop whose task has
        exited is not.
        """
        if self.settings.expiry_sweep_interval_seconds <= 0:
            return {"healthy": True}
        if self._task is None or self._task.done():
            return {"healthy": False, "error": "Expiry sweep loop is not running"}
        return {"healthy": True}

    async def start(self) -> None:
        """Start the background sweep loop."""
        interval = self.settings.expiry_sweep_interval_seconds
        if interval <= 0:
            logger.info("Expiry sweep loop disabled")
            return
        if self._task is None:
            self._task = asyncio.create_task(self._loop(interval))
            logger.info("Expiry sweep loop started (every %ds)", interval)

    async def stop(self) -> None:
        """Stop the background sweep loop."""
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("Expiry sweep loop stopped")

    async def _loop(self, interval: int) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await self.sweep()
            except Exception as e:
                logger.error("Expiry sweep failed: %s: %s", type(e).__name__, str(e))


# Global singleton instance
_sweeper: ExpirySweeper | None = None


def get_expiry_sweeper() -> ExpirySweeper:
    """Get or create the global expiry sweeper."""
    global _sweeper
    if _sweeper is None:
        _sweeper = ExpirySweeper()
    return _sweeper


async def init_expiry_sweeper() -> ExpirySweeper | None:
    """Start the expiry sweep loop. Call at app startup."""
    if get_settings().expiry_sweep_interval_seconds <= 0:
        logger.info("Expiry sweep loop disabled")
        return None
    sweeper = get_expiry_sweeper()
    await sweeper.start()
    return sweeper


async def shutdown_expiry_sweeper() -> None:
    """Stop the expiry sweep loop. Call at app shutdown."""
    if _sweeper:
        await _sweeper.stop()


def expiry_sweeper_status() -> dict[str, Any]:
    """Readiness of the sweep loop without creating a sweeper."""
    if get_settings().expiry_sweep_interval_seconds <= 0:
        return {"healthy": True}
    if _sweeper is None:
        return {"healthy": False, "error": "Expiry sweep loop is not running"}
    return _sweeper.status()
