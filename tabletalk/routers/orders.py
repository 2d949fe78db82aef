"""
Dashboard order endpoints.

Staff create orders at the counter, list the live board and move orders
through the lifecycle. Status changes on chat-linked orders are narrated
into the guest's chat.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from tabletalk.core.config import get_settings
from tabletalk.core.exceptions import BadRequestError, NotFoundError
from tabletalk.database import get_db
from tabletalk.dependencies import current_tenant
from tabletalk.models import (
    TERMINAL_ORDER_STATUSES,
    MenuItem,
    Order,
    OrderLine,
    OrderStatus,
    Table,
    Tenant,
)
from tabletalk.schemas import (
    ErrorResponse,
    OrderCreate,
    OrderListResponse,
    OrderResponse,
    OrderStatusUpdate,
)
from tabletalk.services.events import OrderEvent, emit_order_event, order_event_payload
from tabletalk.services.orders import commit_with_retry, create_order, transition_order_status

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/orders", tags=["Orders"])


def _table_label(order: Order) -> Optional[str]:
    return order.table.label if order.table else None


async def get_tenant_order(db: AsyncSession, tenant_id: str, order_id: str) -> Order:
    result = await db.execute(
        select(Order)
        .options(selectinload(Order.items), selectinload(Order.table))
        .where(Order.id == order_id, Order.tenant_id == tenant_id)
    )
    order = result.scalar_one_or_none()
    if order is None:
        raise NotFoundError(f"Order {order_id} not found")
    return order


@router.get(
    "",
    response_model=OrderListResponse,
    summary="List Orders",
)
async def list_orders(
    status: Optional[OrderStatus] = Query(None),
    history: bool = Query(False),
    include_closed: bool = Query(False, alias="includeClosed"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    tenant: Tenant = Depends(current_tenant),
    db: AsyncSession = Depends(get_db),
) -> OrderListResponse:
    """Open orders by default; closed ones with ``history=true``; everything with ``includeClosed``."""
    conditions = [Order.tenant_id == tenant.id]
    if status is not None:
        conditions.append(Order.status == status)
    elif history:
        conditions.append(Order.status.in_(TERMINAL_ORDER_STATUSES))
    elif not include_closed:
        conditions.append(Order.status.not_in(TERMINAL_ORDER_STATUSES))

    total_result = await db.execute(select(func.count(Order.id)).where(*conditions))
    total = total_result.scalar() or 0

    result = await db.execute(
        select(Order)
        .options(selectinload(Order.items), selectinload(Order.table))
        .where(*conditions)
        .order_by(Order.created_at.desc(), Order.sequence.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    orders = result.scalars().all()

    return OrderListResponse(
        total=total,
        page=page,
        limit=limit,
        orders=[OrderResponse.from_order(o, _table_label(o)) for o in orders],
    )


@router.post(
    "",
    response_model=OrderResponse,
    status_code=201,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    summary="Create Order (Dashboard)",
)
async def create_dashboard_order(
    body: OrderCreate,
    tenant: Tenant = Depends(current_tenant),
    db: AsyncSession = Depends(get_db),
) -> OrderResponse:
    """
    Create an order keyed in by staff.

    Prices are taken from the current menu, never from the request. The
    order is not linked to any chat session.
    """
    tenant_id = tenant.id
    item_ids = {item.menu_item_id for item in body.items}

    async def unit_of_work(session: AsyncSession) -> tuple[OrderResponse, dict]:
        current = await session.get(Tenant, tenant_id)

        table = None
        if body.table_id:
            table_result = await session.execute(
                select(Table)
                .where(Table.id == body.table_id, Table.tenant_id == tenant_id)
                .with_for_update()
            )
            table = table_result.scalar_one_or_none()
            if table is None:
                raise NotFoundError("Table not found")

        menu_result = await session.execute(
            select(MenuItem).where(
                MenuItem.id.in_(item_ids),
                MenuItem.tenant_id == tenant_id,
                MenuItem.is_available.is_(True),
            )
        )
        menu = {item.id: item for item in menu_result.scalars().all()}
        missing = item_ids - menu.keys()
        if missing:
            raise BadRequestError(f"Menu items not available: {', '.join(sorted(missing))}")

        lines = [
            OrderLine(
                menu_item_id=item.menu_item_id,
                item_name=menu[item.menu_item_id].name,
                unit_price=menu[item.menu_item_id].price,
                quantity=item.quantity,
                line_total=menu[item.menu_item_id].price * item.quantity,
                instructions=item.instructions,
            )
            for item in body.items
        ]
        order = await create_order(
            session,
            current,
            lines,
            table=table,
            order_type=body.type,
            notes=body.notes,
        )
        label = table.label if table else None
        return OrderResponse.from_order(order, label), order_event_payload(order, label)

    response, payload = await commit_with_retry(
        db, unit_of_work, get_settings().order_create_max_attempts
    )
    logger.info(f"✅ Dashboard order {response.order_number} created (total={response.total:.2f})")
    emit_order_event(tenant_id, OrderEvent.ORDER_CREATED, payload)
    return response


@router.patch(
    "",
    response_model=OrderResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Update Order Status",
)
async def update_order_status(
    body: OrderStatusUpdate,
    tenant: Tenant = Depends(current_tenant),
    db: AsyncSession = Depends(get_db),
) -> OrderResponse:
    tenant_id = tenant.id
    try:
        order = await get_tenant_order(db, tenant_id, body.order_id)
        transition = await transition_order_status(db, order, body.status)
        response = OrderResponse.from_order(order, _table_label(order))
        payload = order_event_payload(order, _table_label(order))
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    if transition.changed:
        emit_order_event(tenant_id, OrderEvent.ORDER_STATUS_CHANGED, payload)
    return response
