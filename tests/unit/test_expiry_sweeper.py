"""Unit tests for ExpirySweeper."""

from datetime import datetime, timedelta, timezone

import pytest

from src.services.expiry_sweeper import EXPIRED_REASON, ExpirySweeper
from src.services.pending_order_service import PendingOrderService


class TestSweep:
    """Tests for pending-order expiry."""

    @pytest.mark.asyncio
    async def test_expires_only_stale_pending_entries(
        self, pending_orders: PendingOrderService, pending_store
    ) -> None:
        """Test that a 25 hour old pending entry fails and nothing else changes."""
        now = datetime.now(timezone.utc)
        stale = pending_store.add(order_number="DH-ECOM-0001", created_at=(now - timedelta(hours=25)).isoformat())
        fresh = pending_store.add(order_number="DH-ECOM-0002", created_at=(now - timedelta(hours=23)).isoformat())
        completed = pending_store.add(
            order_number="DH-ECOM-0003", status="completed", created_at=(now - timedelta(hours=30)).isoformat()
        )
        processing = pending_store.add(
            order_number="DH-ECOM-0004", status="processing", created_at=(now - timedelta(hours=30)).isoformat()
        )

        expired = await ExpirySweeper(pending_orders=pending_orders).sweep(now=now)

        assert expired == 1
        assert stale["status"] == "failed"
        assert stale["failure_reason"] == EXPIRED_REASON
        assert stale["status_history"][-1]["source"] == "system"
        assert fresh["status"] == "pending"
        assert completed["status"] == "completed"
        assert processing["status"] == "processing"

    @pytest.mark.asyncio
    async def test_second_sweep_is_a_no_op(self, pending_orders: PendingOrderService, pending_store) -> None:
        """Test that already expired entries are not counted again."""
        now = datetime.now(timezone.utc)
        pending_store.add(order_number="DH-ECOM-0001", created_at=(now - timedelta(hours=48)).isoformat())
        sweeper = ExpirySweeper(pending_orders=pending_orders)

        assert await sweeper.sweep(now=now) == 1
        assert await sweeper.sweep(now=now) == 0

    @pytest.mark.asyncio
    async def test_start_is_disabled_by_zero_interval(self, pending_orders: PendingOrderService) -> None:
        """Test that an interval of 0 does not start a background task."""
        sweeper = ExpirySweeper(pending_orders=pending_orders)
        sweeper.settings = sweeper.settings.model_copy(update={"expiry_sweep_interval_seconds": 0})

        await sweeper.start()

        assert sweeper._task is None
        await sweeper.stop()

    @pytest.mark.asyncio
    async def test_start_and_stop(self, pending_orders: PendingOrderService) -> None:
        """Test that the loop can be started and cancelled."""
        sweeper = ExpirySweeper(pending_orders=pending_orders)
        sweeper.settings = sweeper.settings.model_copy(update={"expiry_sweep_interval_seconds": 3600})

        await sweeper.start()
        assert sweeper._task is not None

        await sweeper.stop()
        assert sweeper._task is None


class TestStatus:
    """Tests for the readiness report of the sweep loop."""

    @pytest.mark.asyncio
    async def test_running_loop_is_healthy(self, pending_orders: PendingOrderService) -> None:
        """Test that a started loop reports healthy and a stopped one does not."""
        sweeper = ExpirySweeper(pending_orders=pending_orders)
        sweeper.settings = sweeper.settings.model_copy(update={"expiry_sweep_interval_seconds": 3600})

        assert sweeper.status()["healthy"] is False

        await sweeper.start()
        assert sweeper.status() == {"healthy": True}

        await sweeper.stop()
        assert sweeper.status()["error"] == "Expiry sweep loop is not running"

    def test_disabled_loop_is_healthy(self, pending_orders: PendingOrderService) -> None:
        """Test that an interval of 0 is a deliberate setting, not an outage."""
        sweeper = ExpirySweeper(pending_orders=pending_orders)
        sweeper.settings = sweeper.settings.model_copy(update={"expiry_sweep_interval_seconds": 0})

        assert sweeper.status() == {"healthy": True}
