"""Pytest configuration and fixtures."""

import asyncio
import os
from collections.abc import Generator
from datetime import datetime, timezone
from typing import Any
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

# Set test environment variables before importing application modules
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_SECRET_KEY", "test-secret-key")
os.environ.setdefault("RAZORPAY_KEY_ID", "rzp_test_key_id")
os.environ.setdefault("RAZORPAY_KEY_SECRET", "test_key_secret")
os.environ.setdefault("RAZORPAY_WEBHOOK_SECRET", "test_webhook_secret")
os.environ.setdefault("EXPIRY_SWEEP_INTERVAL_SECONDS", "0")

from src.api.middleware.error_handler import DuplicateInvoiceError, DuplicateOrderError, StoreError  # noqa: E402
from src.core.key_lock import KeyedLock  # noqa: E402
from src.services.order_finalizer import OrderFinalizer  # noqa: E402
from src.services.pending_order_service import PendingOrderService  # noqa: E402
from src.services.reconciliation_service import ReconciliationService  # noqa: E402
from src.services.sequence_service import SequenceService  # noqa: E402


def _sequence_scan(values: list[str], prefix: str) -> list[str]:
    """Highest 20 keys by text plus the 20 newest rows, like the real stores."""
    matching = [v for v in values if v and v.startswith(prefix)]
    by_key = sorted(matching, reverse=True)[:20]
    return by_key + [v for v in reversed(matching[-20:]) if v not in by_key]


class FakeOrderStore:
    """In-memory stand-in for OrderStore with the same UNIQUE ordernum and invoicenum rules.

    ``create_delay`` stands in for the insert round trip, so concurrent callers
    interleave the way they do against the real database.
    """

    def __init__(self) -> None:
        self.rows: list[dict[str, Any]] = []
        self.fail_methods: set[str] = set()
        self.create_calls = 0
        self.create_delay = 0.0

    def _check(self, method: str) -> None:
        if method in self.fail_methods:
            raise StoreError(f"Storage error during {method}")

    async def find_by_order_number(self, ordernum: str) -> list[dict[str, Any]]:
        self._check("find_by_order_number")
        return [dict(r) for r in self.rows if r.get("ordernum") == ordernum]

    async def find_by_payment_remarks_contains(self, payment_id: str) -> list[dict[str, Any]]:
        self._check("find_by_payment_remarks_contains")
        return [dict(r) for r in self.rows if payment_id in (r.get("remarks") or "")]

    async def create(self, data: dict[str, Any]) -> dict[str, Any]:
        self._check("create")
        self.create_calls += 1
        await asyncio.sleep(self.create_delay)
        if any(r.get("ordernum") == data.get("ordernum") for r in self.rows):
            raise DuplicateOrderError(data.get("ordernum", ""))
        if data.get("invoicenum") and any(r.get("invoicenum") == data["invoicenum"] for r in self.rows):
            raise DuplicateInvoiceError(data["invoicenum"])
        row = {"id": len(self.rows) + 1, **data}
        self.rows.append(row)
        return dict(row)

    async def find_latest_ordernums(self, prefix: str) -> list[str]:
        self._check("find_latest_ordernums")
        return _sequence_scan([r.get("ordernum") for r in self.rows], prefix)

    async def find_latest_invoicenums(self, prefix: str) -> list[str]:
        self._check("find_latest_invoicenums")
        return _sequence_scan([r.get("invoicenum") for r in self.rows], prefix)


class FakePendingOrderStore:
    """In-memory stand-in for PendingOrderStore with the UNIQUE order_number rule on inserts."""

    def __init__(self) -> None:
        self.rows: list[dict[str, Any]] = []
        self.fail_methods: set[str] = set()
        self.create_delay = 0.0

    def _check(self, method: str) -> None:
        if method in self.fail_methods:
            raise StoreError(f"Storage error during {method}")

    def _newest_first(self, rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
        return [dict(r) for r in sorted(rows, key=lambda r: str(r.get("created_at") or ""), reverse=True)]

    def add(self, **fields: Any) -> dict[str, Any]:
        """Seed a ledger row directly, bypassing the service."""
        row = {
            "id": len(self.rows) + 1,
            "status": "pending",
            "status_history": [],
            "items": [],
            "customer_info": {},
            "communication": "website",
            "created_at": datetime.now(timezone.utc).isoformat(),
            **fields,
        }
        self.rows.append(row)
        return row

    def get(self, order_number: str) -> dict[str, Any]:
        return self._newest_first([r for r in self.rows if r.get("order_number") == order_number])[0]

    async def create(self, data: dict[str, Any]) -> dict[str, Any]:
        self._check("create")
        await asyncio.sleep(self.create_delay)
        if any(r.get("order_number") == data.get("order_number") for r in self.rows):
            raise DuplicateOrderError(data.get("order_number", ""))
        row = {"id": len(self.rows) + 1, **data}
        self.rows.append(row)
        return dict(row)

    async def find_by_order_number(self, order_number: str) -> list[dict[str, Any]]:
        self._check("find_by_order_number")
        return self._newest_first([r for r in self.rows if r.get("order_number") == order_number])

    async def find_by_gateway_order_id(self, gateway_order_id: str) -> list[dict[str, Any]]:
        self._check("find_by_gateway_order_id")
        return self._newest_first([r for r in self.rows if r.get("razorpay_order_id") == gateway_order_id])

    async def find_by_payment_id(self, payment_id: str) -> list[dict[str, Any]]:
        self._check("find_by_payment_id")
        return self._newest_first([r for r in self.rows if r.get("payment_id") == payment_id])

    async def update(self, record_id: Any, data: dict[str, Any]) -> dict[str, Any] | None:
        self._check("update")
        for row in self.rows:
            if row["id"] == record_id:
                row.update(data)
                return dict(row)
        return None

    async def list_recent(self, email: str | None = None) -> list[dict[str, Any]]:
        self._check("list_recent")
        rows = [r for r in self.rows if not email or (r.get("customer_info") or {}).get("email") == email]
        return self._newest_first(rows)

    async def find_expired(self, cutoff: datetime) -> list[dict[str, Any]]:
        self._check("find_expired")
        return [
            dict(r)
            for r in self.rows
            if r.get("status") == "pending" and datetime.fromisoformat(r["created_at"]) < cutoff
        ]

    async def find_latest_order_numbers(self, prefix: str) -> list[str]:
        self._check("find_latest_order_numbers")
        return _sequence_scan([r.get("order_number") for r in self.rows], prefix)


@pytest.fixture(scope="session")
def test_settings() -> Generator[Any, None, None]:
    """Provide test settings with cleared cache.

    Yields:
        Settings: Test configuration settings.
    """
    from src.core.config import get_settings

    get_settings.cache_clear()
    settings = get_settings()
    yield settings
    get_settings.cache_clear()


@pytest.fixture
def order_store() -> FakeOrderStore:
    return FakeOrderStore()


@pytest.fixture
def pending_store() -> FakePendingOrderStore:
    return FakePendingOrderStore()


@pytest.fixture
def pending_orders(pending_store: FakePendingOrderStore) -> PendingOrderService:
    return PendingOrderService(store=pending_store)


@pytest.fixture
def sequences(order_store: FakeOrderStore, pending_store: FakePendingOrderStore) -> SequenceService:
    return SequenceService(order_store=order_store, pending_store=pending_store)


@pytest.fixture
def dispatcher() -> MagicMock:
    """Notification dispatcher that records dispatches without sending anything."""
    return MagicMock()


@pytest.fixture
def finalizer(order_store: FakeOrderStore, sequences: SequenceService, dispatcher: MagicMock) -> OrderFinalizer:
    return OrderFinalizer(order_store=order_store, sequences=sequences, dispatcher=dispatcher)


@pytest.fixture
def reconciler(
    order_store: FakeOrderStore,
    pending_orders: PendingOrderService,
    finalizer: OrderFinalizer,
) -> ReconciliationService:
    return ReconciliationService(
        order_store=order_store,
        pending_orders=pending_orders,
        finalizer=finalizer,
        locks=KeyedLock(),
    )


@pytest.fixture
def captured_event() -> Any:
    """Factory for payment.captured webhook bodies."""

    def _make(
        order_number: str | None = "DH-ECOM-0751",
        payment_id: str = "pay_ABC123",
        gateway_order_id: str | None = "order_XYZ789",
        amount: int = 54900,
        **notes: str,
    ) -> dict[str, Any]:
        all_notes = dict(notes)
        if order_number:
            all_notes["order_number"] = order_number
        return {
            "event": "payment.captured",
            "payload": {
                "payment": {
                    "entity": {
                        "id": payment_id,
                        "order_id": gateway_order_id,
                        "amount": amount,
                        "currency": "INR",
                        "status": "captured",
                        "notes": all_notes,
                    }
                }
            },
        }

    return _make


@pytest.fixture
def mock_supabase_client() -> Generator[MagicMock, None, None]:
    """Provide a mocked Supabase client.

    Yields:
        MagicMock: Mocked Supabase client for testing.
    """
    mock_client = MagicMock()

    mock_response = MagicMock()
    mock_response.data = []
    mock_client.table.return_value.select.return_value.limit.return_value.execute.return_value = (
        mock_response
    )

    with (
        patch("src.core.supabase.get_supabase_client", return_value=mock_client),
        patch("src.services.order_store.get_supabase_client", return_value=mock_client),
    ):
        yield mock_client


@pytest.fixture
def client(mock_supabase_client: MagicMock) -> Generator[TestClient, None, None]:
    """Provide a test client for the FastAPI application.

    Args:
        mock_supabase_client: Mocked Supabase client fixture.

    Yields:
        TestClient: FastAPI test client.
    """
    from src.main import app

    with TestClient(app) as test_client:
        yield test_client
