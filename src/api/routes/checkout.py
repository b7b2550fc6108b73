"""Checkout API routes for Razorpay payments and cash on delivery."""

from fastapi import APIRouter, status

from src.schemas.checkout import (
    CancelRequest,
    CheckoutRequest,
    CheckoutResponse,
    PaymentCallbackResponse,
    PaymentFailureRequest,
    PaymentSuccessRequest,
)
from src.services.checkout_service import CheckoutService
from src.services.gateway_service import GatewayService

router = APIRouter(prefix="/checkout", tags=["checkout"])


@router.post(
    "",
    response_model=CheckoutResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start checkout",
    description="Allocates an order number and either opens a Razorpay payment or places a COD order.",
)
async def start_checkout(data: CheckoutRequest) -> CheckoutResponse:
    """Start checkout for a cart.

    Online payments return the options the frontend passes to the Razorpay
    checkout widget. The order itself is only created once Razorpay confirms
    the payment by webhook.

    Args:
        data: Cart, customer details and payment method.

    Returns:
        CheckoutResponse: Order number, amounts and widget options.
    """
    result = await CheckoutService().start_checkout(data)
    return CheckoutResponse(**result)


@router.post(
    "/{order_number}/payment-success",
    response_model=PaymentCallbackResponse,
    summary="Report payment success",
    description="Client hint that the widget reported success. The order is created by the webhook.",
)
async def payment_success(order_number: str, data: PaymentSuccessRequest) -> PaymentCallbackResponse:
    result = await GatewayService().handle_payment_success(
        order_number,
        payment_id=data.razorpay_payment_id,
        gateway_order_id=data.razorpay_order_id,
        signature=data.razorpay_signature,
    )
    return PaymentCallbackResponse(**result)


@router.post(
    "/{order_number}/payment-failure",
    response_model=PaymentCallbackResponse,
    summary="Report payment failure",
)
async def payment_failure(order_number: str, data: PaymentFailureRequest) -> PaymentCallbackResponse:
    reason = f"{data.reason} ({data.error_code})" if data.error_code else data.reason
    result = await GatewayService().handle_payment_failure(order_number, reason)
    return PaymentCallbackResponse(**result)


@router.post(
    "/{order_number}/dismissed",
    response_model=PaymentCallbackResponse,
    summary="Report widget dismissed",
    description="The customer closed the payment widget. The pending order is left unchanged.",
)
async def payment_dismissed(order_number: str) -> PaymentCallbackResponse:
    result = await GatewayService().handle_payment_dismissed(order_number)
    return PaymentCallbackResponse(**result)


@router.post(
    "/{order_number}/cancel",
    response_model=PaymentCallbackResponse,
    summary="Cancel checkout",
)
async def cancel_checkout(order_number: str, data: CancelRequest | None = None) -> PaymentCallbackResponse:
    result = await GatewayService().cancel_payment(order_number, data.reason if data else None)
    return PaymentCallbackResponse(**result)
