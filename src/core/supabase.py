"""Supabase client for the order and ledger tables."""

import asyncio
import time
from functools import lru_cache
from typing import Any

from supabase import Client, create_client

from src.core.config import get_settings

# Tables reconciliation cannot run without
RECONCILIATION_TABLES = ("orders", "pending_orders")


@lru_cache
def get_supabase_client() -> Client:
    """Return the process-wide Supabase client.

    Built with the secret key, so PostgREST row-level security does not
    apply. Orders and ledger entries are written only by this backend.
    """
    settings = get_settings()
    return create_client(settings.supabase_url, settings.supabase_secret_key)


async def check_table(table: str) -> dict[str, Any]:
    """Read one row id from ``table`` and time the round trip.

    Returns:
        dict: ``healthy``, ``latency_ms`` and, on failure, ``error``.
    """
    start = time.perf_counter()
    try:
        query = get_supabase_client().table(table).select("id").limit(1)
        await asyncio.to_thread(query.execute)
    except Exception as e:
        return {
            "healthy": False,
            "latency_ms": round((time.perf_counter() - start) * 1000, 2),
            "error": f"{table}: {e}",
        }
    return {"healthy": True, "latency_ms": round((time.perf_counter() - start) * 1000, 2)}
