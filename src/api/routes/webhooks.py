"""Webhook API routes for payment gateway callbacks."""

import json
import logging

from fastapi import APIRouter, HTTPException, Request, status

from src.core.config import get_settings
from src.core.razorpay import verify_webhook_signature
from src.schemas.webhook import WebhookResponse
from src.services.reconciliation_service import ReconciliationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

SIGNATURE_HEADER = "X-Razorpay-Signature"


@router.post(
    "/razorpay",
    response_model=WebhookResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_200_OK,
    summary="Handle Razorpay webhooks",
    description="Receives Razorpay payment events and reconciles captured payments into orders.",
    responses={
        400: {"description": "Missing or invalid signature, or malformed body"},
        503: {"description": "Reconciliation failed; Razorpay should redeliver"},
    },
)
async def razorpay_webhook(request: Request) -> WebhookResponse:
    """Handle Razorpay webhook events.

    The signature is checked against the raw body when a webhook secret is
    configured. Only ``payment.captured`` does any work; every other event
    is acknowledged and ignored.

    Storage failures during reconciliation surface as 503 through the error
    middleware so that Razorpay retries the delivery. Retries are safe
    because reconciliation is idempotent per order number.

    Args:
        request: FastAPI request object for reading raw body and headers.

    Returns:
        WebhookResponse: Acknowledgement with the reconciliation outcome.

    Raises:
        HTTPException: 400 if the signature is missing or invalid, or the body is not JSON.
    """
    payload = await request.body()
    body = payload.decode("utf-8", errors="replace")

    if get_settings().razorpay_webhook_secret:
        signature = request.headers.get(SIGNATURE_HEADER)
        if not signature:
            logger.error("Missing %s header in webhook request", SIGNATURE_HEADER)
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Missing {SIGNATURE_HEADER} header",
            )
        if not verify_webhook_signature(body, signature):
            logger.error("Invalid Razorpay webhook signature")
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid signature",
            )

    try:
        event = json.loads(body)
    except json.JSONDecodeError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Webhook body is not valid JSON",
        ) from e

    if not isinstance(event, dict):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Webhook body must be a JSON object",
        )

    event_type = event.get("event", "")
    logger.info("Processing Razorpay webhook event: %s", event_type)

    if event_type != "payment.captured":
        return WebhookResponse(status="ok")

    result = await ReconciliationService().handle_event(event)
    logger.info("Webhook for %s: %s", result.order_number, result.message)

    return WebhookResponse(status="ok", message=result.message)
