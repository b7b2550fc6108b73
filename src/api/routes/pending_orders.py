"""Pending-order ledger API routes."""

from fastapi import APIRouter, Query, status

from src.schemas.pending_order import (
    ExpirySweepResponse,
    GatewayCorrelationUpdate,
    LedgerUpdateResponse,
    PaymentDetailsUpdate,
    PendingOrderCreate,
    PendingOrderCreateResponse,
    PendingOrderListResponse,
    PendingOrderResponse,
)
from src.services.expiry_sweeper import get_expiry_sweeper
from src.services.pending_order_service import PendingOrderService

router = APIRouter(prefix="/pending-orders", tags=["pending-orders"])


@router.post(
    "",
    response_model=PendingOrderCreateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create pending order",
    description="Records checkout intent before payment. Used by clients that allocate their own order numbers.",
)
async def create_pending_order(data: PendingOrderCreate) -> PendingOrderCreateResponse:
    """Create a pending-order ledger entry.

    Args:
        data: Order number, items, totals and customer info.

    Returns:
        PendingOrderCreateResponse: The new row id.
    """
    record_id = await PendingOrderService().create(data.model_dump(exclude_none=True))
    return PendingOrderCreateResponse(id=record_id, order_number=data.order_number or "")


@router.put(
    "/{order_number}/razorpay-order",
    response_model=LedgerUpdateResponse,
    summary="Record Razorpay order id",
)
async def update_razorpay_order(order_number: str, data: GatewayCorrelationUpdate) -> LedgerUpdateResponse:
    updated = await PendingOrderService().update_gateway_correlation(order_number, data.razorpay_order_id)
    return LedgerUpdateResponse(order_number=order_number, updated=updated)


@router.put(
    "/{order_number}/payment-details",
    response_model=LedgerUpdateResponse,
    summary="Record payment details",
    description="Records gateway references and optionally a client-reported status. Clients cannot complete orders.",
)
async def update_payment_details(order_number: str, data: PaymentDetailsUpdate) -> LedgerUpdateResponse:
    updated = await PendingOrderService().update_payment_details(
        order_number,
        gateway_order_id=data.razorpay_order_id,
        payment_id=data.payment_id,
        status=data.status,
        failure_reason=data.failure_reason,
    )
    return LedgerUpdateResponse(order_number=order_number, updated=updated)


@router.get(
    "",
    response_model=PendingOrderListResponse,
    summary="List pending orders",
    description="Newest first, optionally for one customer email.",
)
async def list_pending_orders(email: str | None = Query(default=None)) -> PendingOrderListResponse:
    records = await PendingOrderService().list_pending_orders(email)
    return PendingOrderListResponse(items=[PendingOrderResponse(**record) for record in records])


@router.post(
    "/expire",
    response_model=ExpirySweepResponse,
    summary="Expire stale pending orders",
    description="Runs one expiry sweep immediately.",
)
async def expire_pending_orders() -> ExpirySweepResponse:
    expired = await get_expiry_sweeper().sweep()
    return ExpirySweepResponse(expired=expired)
