"""Supabase-backed stores for finalized orders and the pending-order ledger.

These are the only places that talk to the ``orders`` and ``pending_orders``
tables. Every row leaving a store has been normalized into a flat dict, so
callers never see the ``{"id": .., "attributes": {..}}`` wrapper some API
versions return. Every storage failure surfaces as ``StoreError``.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any

from supabase import Client

from src.api.middleware.error_handler import DuplicateInvoiceError, DuplicateOrderError, StoreError
from src.core.supabase import get_supabase_client

logger = logging.getLogger(__name__)

ORDERS_TABLE = "orders"
PENDING_ORDERS_TABLE = "pending_orders"

# Postgres unique_violation
UNIQUE_VIOLATION = "23505"

# Rows read by each half of a sequence scan (highest keys and newest rows)
SEQUENCE_SCAN_LIMIT = 20


def normalize_record(row: Any) -> dict[str, Any]:
    """Flatten a row that may come wrapped in an ``attributes`` envelope."""
    if not isinstance(row, dict):
        return {}
    attributes = row.get("attributes")
    if isinstance(attributes, dict):
        flat = dict(attributes)
        if "id" in row:
            flat["id"] = row["id"]
        return flat
    return dict(row)


def _rows(response: Any) -> list[dict[str, Any]]:
    data = getattr(response, "data", None) if response is not None else None
    if not data:
        return []
    if isinstance(data, dict):
        data = [data]
    return [normalize_record(row) for row in data]


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so ``value`` matches literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _is_unique_violation(error: Exception) -> bool:
    return getattr(error, "code", None) == UNIQUE_VIOLATION


def _mentions(error: Exception, column: str) -> bool:
    # PostgREST puts "Key (invoicenum)=(...) already exists." in details
    parts = (getattr(error, "details", None), getattr(error, "message", None), str(error))
    return any(column in str(part) for part in parts if part)


async def _execute(query: Any, action: str) -> Any:
    """Run a PostgREST query off the event loop, wrapping failures."""
    try:
        return await asyncio.to_thread(query.execute)
    except Exception as e:
        logger.error("Storage error during %s: %s", action, str(e))
        raise StoreError(f"Storage error during {action}") from e


async def _sequence_scan(client: Client, table: str, column: str, prefix: str) -> list[str]:
    """Collect candidate sequence keys carrying ``prefix``.

    Keys are text, so once a suffix outgrows its zero padding (``DH-ECOM-10000``)
    it sorts below ``DH-ECOM-9999`` and the highest-key page alone misses it.
    The newest rows by ``created_at`` are read as well and the two pages are
    merged; callers take the numeric max over the result.
    """
    pattern = f"{escape_like(prefix)}%"
    by_key = (
        client.table(table)
        .select(column)
        .like(column, pattern)
        .order(column, desc=True)
        .limit(SEQUENCE_SCAN_LIMIT)
    )
    newest = (
        client.table(table)
        .select(column)
        .like(column, pattern)
        .order("created_at", desc=True)
        .limit(SEQUENCE_SCAN_LIMIT)
    )
    values: list[str] = []
    for query in (by_key, newest):
        for row in _rows(await _execute(query, f"{column} scan")):
            value = row.get(column)
            if value and value not in values:
                values.append(value)
    return values


class OrderStore:
    """Store for finalized orders (``orders`` table)."""

    def __init__(self, client: Client | None = None) -> None:
        self.client = client or get_supabase_client()

    async def find_by_order_number(self, ordernum: str) -> list[dict[str, Any]]:
        """Find finalized orders by business order number."""
        query = self.client.table(ORDERS_TABLE).select("*").eq("ordernum", ordernum)
        return _rows(await _execute(query, "order lookup by ordernum"))

    async def find_by_payment_remarks_contains(self, payment_id: str) -> list[dict[str, Any]]:
        """Find finalized orders whose remarks mention the gateway payment id."""
        query = self.client.table(ORDERS_TABLE).select("*").like("remarks", f"%{escape_like(payment_id)}%")
        return _rows(await _execute(query, "order lookup by payment remarks"))

    async def create(self, data: dict[str, Any]) -> dict[str, Any]:
        """Insert a finalized order.

        Raises:
            DuplicateInvoiceError: If the UNIQUE index on invoicenum rejects the row.
            DuplicateOrderError: If the UNIQUE index on ordernum rejects the row.
            StoreError: On any other storage failure.
        """
        query = self.client.table(ORDERS_TABLE).insert(data)
        try:
            response = await asyncio.to_thread(query.execute)
        except Exception as e:
            if _is_unique_violation(e):
                if _mentions(e, "invoicenum"):
                    raise DuplicateInvoiceError(data.get("invoicenum", "")) from e
                raise DuplicateOrderError(data.get("ordernum", "")) from e
            logger.error("Storage error creating order %s: %s", data.get("ordernum"), str(e))
            raise StoreError("Storage error during order create") from e

        rows = _rows(response)
        if not rows:
            raise StoreError("Order create returned no row")
        return rows[0]

    async def find_latest_ordernums(self, prefix: str) -> list[str]:
        """Return the highest and newest order numbers carrying ``prefix``."""
        return await _sequence_scan(self.client, ORDERS_TABLE, "ordernum", prefix)

    async def find_latest_invoicenums(self, prefix: str) -> list[str]:
        """Return the highest and newest invoice numbers carrying ``prefix``."""
        return await _sequence_scan(self.client, ORDERS_TABLE, "invoicenum", prefix)


class PendingOrderStore:
    """Store for the pending-order ledger (``pending_orders`` table)."""

    def __init__(self, client: Client | None = None) -> None:
        self.client = client or get_supabase_client()

    async def create(self, data: dict[str, Any]) -> dict[str, Any]:
        """Insert a ledger entry and return the stored row.

        Raises:
            DuplicateOrderError: If the UNIQUE index on order_number rejects the row.
            StoreError: On any other storage failure.
        """
        query = self.client.table(PENDING_ORDERS_TABLE).insert(data)
        try:
            response = await asyncio.to_thread(query.execute)
        except Exception as e:
            if _is_unique_violation(e):
                raise DuplicateOrderError(data.get("order_number", "")) from e
            logger.error("Storage error creating pending order %s: %s", data.get("order_number"), str(e))
            raise StoreError("Storage error during pending order create") from e

        rows = _rows(response)
        if not rows:
            raise StoreError("Pending order create returned no row")
        return rows[0]

    async def find_by_order_number(self, order_number: str) -> list[dict[str, Any]]:
        """Find ledger entries by order number, newest first."""
        query = (
            self.client.table(PENDING_ORDERS_TABLE)
            .select("*")
            .eq("order_number", order_number)
            .order("created_at", desc=True)
        )
        return _rows(await _execute(query, "pending order lookup by order number"))

    async def find_by_gateway_order_id(self, gateway_order_id: str) -> list[dict[str, Any]]:
        """Find ledger entries by Razorpay order id, newest first."""
        query = (
            self.client.table(PENDING_ORDERS_TABLE)
            .select("*")
            .eq("razorpay_order_id", gateway_order_id)
            .order("created_at", desc=True)
        )
        return _rows(await _execute(query, "pending order lookup by gateway order id"))

    async def find_by_payment_id(self, payment_id: str) -> list[dict[str, Any]]:
        """Find ledger entries that already recorded a payment reference."""
        query = (
            self.client.table(PENDING_ORDERS_TABLE)
            .select("*")
            .eq("payment_id", payment_id)
            .order("created_at", desc=True)
        )
        return _rows(await _execute(query, "pending order lookup by payment id"))

    async def update(self, record_id: Any, data: dict[str, Any]) -> dict[str, Any] | None:
        """Merge ``data`` into the row with primary key ``record_id``."""
        query = self.client.table(PENDING_ORDERS_TABLE).update(data).eq("id", record_id)
        rows = _rows(await _execute(query, "pending order update"))
        return rows[0] if rows else None

    async def list_recent(self, email: str | None = None) -> list[dict[str, Any]]:
        """List ledger entries newest first, optionally for one customer email."""
        query = self.client.table(PENDING_ORDERS_TABLE).select("*")
        if email:
            query = query.eq("customer_info->>email", email)
        query = query.order("created_at", desc=True)
        return _rows(await _execute(query, "pending order list"))

    async def find_expired(self, cutoff: datetime) -> list[dict[str, Any]]:
        """Find entries still ``pending`` that were created before ``cutoff``."""
        query = (
            self.client.table(PENDING_ORDERS_TABLE)
            .select("*")
            .eq("status", "pending")
            .lt("created_at", cutoff.isoformat())
            .order("created_at")
        )
        return _rows(await _execute(query, "expired pending order scan"))

    async def find_latest_order_numbers(self, prefix: str) -> list[str]:
        """Return the highest and newest ledger order numbers carrying ``prefix``."""
        return await _sequence_scan(self.client, PENDING_ORDERS_TABLE, "order_number", prefix)
