"""Razorpay client configuration and singleton."""

import logging
from functools import lru_cache
from typing import Any

import razorpay

from src.core.config import get_settings

logger = logging.getLogger(__name__)


@lru_cache
def get_razorpay_client() -> razorpay.Client:
    """Get cached Razorpay client singleton.

    If keys are not configured the client is still returned, but API calls
    will fail with authentication errors.

    Returns:
        razorpay.Client: Client authenticated with the configured key pair.
    """
    settings = get_settings()
    if not settings.razorpay_key_id:
        logger.warning("Razorpay keys not configured. Online payments will not work.")
    return razorpay.Client(auth=(settings.razorpay_key_id, settings.razorpay_key_secret))


def verify_webhook_signature(body: str, signature: str) -> bool:
    """Verify an X-Razorpay-Signature header against the raw webhook body.

    Args:
        body: Raw request body, decoded as UTF-8.
        signature: Value of the X-Razorpay-Signature header.

    Returns:
        bool: True if the signature matches the configured webhook secret.

    Raises:
        ValueError: If no webhook secret is configured.
    """
    settings = get_settings()
    if not settings.razorpay_webhook_secret:
        raise ValueError("Razorpay webhook secret is not configured. Please set RAZORPAY_WEBHOOK_SECRET.")

    try:
        get_razorpay_client().utility.verify_webhook_signature(
            body, signature, settings.razorpay_webhook_secret
        )
        return True
    except razorpay.errors.SignatureVerificationError:
        return False


def verify_payment_signature(gateway_order_id: str, payment_id: str, signature: str) -> bool:
    """Verify the signature returned to the checkout widget's success handler.

    Args:
        gateway_order_id: razorpay_order_id from the widget response.
        payment_id: razorpay_payment_id from the widget response.
        signature: razorpay_signature from the widget response.

    Returns:
        bool: True if the signature is valid for the configured key secret.
    """
    try:
        get_razorpay_client().utility.verify_payment_signature(
            {
                "razorpay_order_id": gateway_order_id,
                "razorpay_payment_id": payment_id,
                "razorpay_signature": signature,
            }
        )
        return True
    except razorpay.errors.SignatureVerificationError:
        return False


def check_razorpay_configuration() -> dict[str, Any]:
    """Check that the Razorpay keys needed for checkout and webhooks are set.

    Returns:
        dict: Status with 'healthy' boolean and optional 'error' message.
    """
    settings = get_settings()
    missing = [
        name
        for name, value in (
            ("RAZORPAY_KEY_ID", settings.razorpay_key_id),
            ("RAZORPAY_KEY_SECRET", settings.razorpay_key_secret),
            ("RAZORPAY_WEBHOOK_SECRET", settings.razorpay_webhook_secret),
        )
        if not value
    ]
    if missing:
        return {"healthy": False, "error": f"Missing {', '.join(missing)}"}
    return {"healthy": True}
