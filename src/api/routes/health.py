"""Liveness and readiness endpoints for the reconciliation service."""

import asyncio

from fastapi import APIRouter, Response, status

from src.core.config import get_settings
from src.core.razorpay import check_razorpay_configuration
from src.core.supabase import RECONCILIATION_TABLES, check_table
from src.schemas.common import CheckResult, HealthResponse, HealthStatus, ReadinessResponse
from src.services.expiry_sweeper import expiry_sweeper_status

router = APIRouter(tags=["health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Liveness check",
    description="Reports that the process is serving requests. Touches no external system.",
)
async def health_check() -> HealthResponse:
    """Report the service name and environment."""
    settings = get_settings()
    return HealthResponse(status=HealthStatus.HEALTHY, service=settings.app_name, environment=settings.app_env)


@router.get(
    "/health/ready",
    response_model=ReadinessResponse,
    responses={
        200: {"description": "Orders can be taken and payments reconciled"},
        503: {"description": "A table, the gateway configuration or the expiry loop is unavailable"},
    },
    summary="Readiness check",
    description="Checks both reconciliation tables, the Razorpay keys and the expiry sweep loop.",
)
async def readiness_check(response: Response) -> ReadinessResponse:
    """Run every readiness check and return 503 if any fails.

    Webhooks cannot be reconciled without both ``orders`` and
    ``pending_orders`` and cannot be verified without the webhook secret,
    so each gets its own entry.
    """
    table_results = await asyncio.gather(*(check_table(table) for table in RECONCILIATION_TABLES))
    checks = [
        CheckResult(
            name=table,
            healthy=result["healthy"],
            latency_ms=result.get("latency_ms"),
            error=result.get("error"),
        )
        for table, result in zip(RECONCILIATION_TABLES, table_results)
    ]

    for name, result in (
        ("razorpay", check_razorpay_configuration()),
        ("expiry_sweeper", expiry_sweeper_status()),
    ):
        checks.append(CheckResult(name=name, healthy=result["healthy"], error=result.get("error")))

    ready = all(check.healthy for check in checks)
    if not ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return ReadinessResponse(status=HealthStatus.HEALTHY if ready else HealthStatus.UNHEALTHY, checks=checks)
