"""
Payment endpoints.

Only the bookkeeping side of payments lives here: the amount is checked
against the order total and a record is written. Cash settles immediately
and completes the order; card and QR payments stay PENDING until the
gateway (outside this service) confirms them.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tabletalk.core.config import get_settings
from tabletalk.core.exceptions import ConflictError, PaymentRejectedError
from tabletalk.database import get_db
from tabletalk.dependencies import current_tenant
from tabletalk.models import (
    OrderStatus,
    Payment,
    PaymentMethod,
    PaymentStatus,
    Tenant,
)
from tabletalk.routers.orders import get_tenant_order
from tabletalk.schemas import ErrorResponse, PaymentCreate, PaymentCreateResponse, PaymentResponse
from tabletalk.services.events import OrderEvent, emit_order_event, order_event_payload
from tabletalk.services.orders import transition_order_status

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/payments", tags=["Payments"])


@router.post(
    "",
    response_model=PaymentCreateResponse,
    status_code=201,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
    summary="Record a payment",
)
async def create_payment(
    body: PaymentCreate,
    tenant: Tenant = Depends(current_tenant),
    db: AsyncSession = Depends(get_db),
) -> PaymentCreateResponse:
    tenant_id = tenant.id
    tolerance = get_settings().payment_amount_tolerance
    payload = None

    try:
        order = await get_tenant_order(db, tenant_id, body.order_id)

        if order.payment_status == PaymentStatus.PAID or order.status == OrderStatus.PAID:
            raise PaymentRejectedError("Already paid")
        if order.status == OrderStatus.CANCELLED:
            raise ConflictError("Cannot pay a cancelled order")
        if abs(order.total - body.amount) > tolerance:
            raise PaymentRejectedError(
                f"Payment amount {body.amount:.2f} must match outstanding order total {order.total:.2f}"
            )

        is_cash = body.method == PaymentMethod.CASH
        payment = Payment(
            tenant_id=tenant_id,
            order_id=order.id,
            amount=body.amount,
            method=body.method,
            status=PaymentStatus.PAID if is_cash else PaymentStatus.PENDING,
            paid_at=datetime.now(timezone.utc) if is_cash else None,
            transaction_ref=f"CASH-{uuid.uuid4().hex[:12].upper()}" if is_cash else None,
        )
        db.add(payment)

        if is_cash:
            await transition_order_status(db, order, OrderStatus.PAID)
            payload = order_event_payload(order, order.table.label if order.table else None)

        await db.flush()
        response = PaymentCreateResponse(
            payment=PaymentResponse.model_validate(payment),
            order_status=order.status,
            payment_status=order.payment_status,
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        f"💳 {body.method.value} payment of {body.amount:.2f} recorded for {order.order_number} "
        f"({response.payment.status.value})"
    )
    if payload is not None:
        emit_order_event(tenant_id, OrderEvent.ORDER_STATUS_CHANGED, payload)
    return response


@router.get(
    "",
    response_model=List[PaymentResponse],
    summary="List payments",
)
async def list_payments(
    order_id: Optional[str] = Query(None, alias="orderId"),
    tenant: Tenant = Depends(current_tenant),
    db: AsyncSession = Depends(get_db),
) -> List[PaymentResponse]:
    query = select(Payment).where(Payment.tenant_id == tenant.id)
    if order_id:
        query = query.where(Payment.order_id == order_id)
    result = await db.execute(query.order_by(Payment.created_at.desc(), Payment.id.desc()))
    return [PaymentResponse.model_validate(p) for p in result.scalars().all()]
