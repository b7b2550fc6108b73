"""Shared response bodies: health reports and the error envelope."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

API_VERSION = "0.1.0"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class HealthStatus(str, Enum):
    """Overall result of a liveness or readiness check."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class HealthResponse(BaseModel):
    """Body of `GET /health`."""

    status: HealthStatus = Field(description="Always healthy while the process serves requests")
    service: str = Field(description="Configured application name")
    environment: str = Field(description="Deployment environment, e.g. production")
    version: str = Field(default=API_VERSION, description="Service version")
    timestamp: datetime = Field(default_factory=_utcnow, description="Server time (UTC)")


class CheckResult(BaseModel):
    """One readiness entry: a table, the gateway keys or the expiry loop."""

    name: str = Field(description="What was checked, e.g. pending_orders or razorpay")
    healthy: bool = Field(description="Whether reconciliation can rely on it")
    latency_ms: float | None = Field(default=None, description="Round trip for table checks, in milliseconds")
    error: str | None = Field(default=None, description="Why the check failed")


class ReadinessResponse(BaseModel):
    """Body of `GET /health/ready`; unhealthy when any check fails."""

    status: HealthStatus = Field(description="unhealthy if any check failed")
    checks: list[CheckResult] = Field(default_factory=list, description="Per-dependency results")
    timestamp: datetime = Field(default_factory=_utcnow, description="Server time (UTC)")


class ErrorDetail(BaseModel):
    """A single problem, e.g. a missing ledger field."""

    loc: list[str] | None = Field(default=None, description="Path of the offending field, e.g. ['customer_info', 'email']")
    msg: str = Field(description="What is wrong")
    type: str = Field(description="Machine-readable kind, e.g. missing")


class ErrorResponse(BaseModel):
    """Error envelope for every non-2xx response.

    ``error`` is the ``error_type`` of the raised ``APIError``, such as
    ``duplicate_order`` or ``storage_unavailable``, so clients can branch on it.
    """

    error: str = Field(description="Error kind, e.g. reconciliation_failed")
    message: str = Field(description="Human-readable summary")
    details: list[ErrorDetail] | None = Field(default=None, description="Per-field problems, when there are any")
    request_id: str | None = Field(default=None, description="Echo of the X-Request-ID header")
    timestamp: datetime = Field(default_factory=_utcnow, description="Server time (UTC)")

    @classmethod
    def from_exception(
        cls,
        error_type: str,
        message: str,
        details: list[dict[str, Any]] | None = None,
        request_id: str | None = None,
    ) -> "ErrorResponse":
        """Build the envelope for an ``APIError``.

        ``details`` entries use the ``loc``/``msg``/``type`` keys that
        ``LedgerValidationError`` produces; anything else is stringified.
        """
        error_details = [
            ErrorDetail(loc=d.get("loc"), msg=d.get("msg", str(d)), type=d.get("type", "error"))
            for d in details or []
        ] or None

        return cls(
            error=error_type,
            message=message,
            details=error_details,
            request_id=request_id,
        )
