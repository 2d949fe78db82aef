"""
Order Reconciler

Turns a session cart into a persisted order. Dine-in carts are merged into
the table's open order when there is one, so that several guests chatting
at the same table end up on a single ticket. Takeaway carts always get a
fresh order.

All functions here run inside the caller's transaction. The caller owns
commit, rollback and the retry loop (see ``commit_with_retry``).
"""

import logging
import math
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Sequence, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from tabletalk.core.exceptions import NotFoundError, OrderCreationError
from tabletalk.models import (
    TERMINAL_ORDER_STATUSES,
    Order,
    OrderLine,
    OrderSessionLink,
    OrderStatus,
    OrderType,
    Table,
    TableStatus,
    Tenant,
)
from tabletalk.services.chat.cart import CartLine
from tabletalk.services.orders.lifecycle import TransitionResult, transition_order_status
from tabletalk.services.orders.numbering import format_order_number, next_order_sequence
from tabletalk.services.orders.tables import find_table, normalize_table_label

logger = logging.getLogger(__name__)

T = TypeVar("T")


def round_half_up(value: float) -> float:
    return float(math.floor(value + 0.5))


def compute_totals(subtotal: float, service_charge_percent: float, tax_percent: float) -> tuple[float, float, float]:
    """
    Returns:
        (service_charge, tax, total), charges rounded half-up to whole units
    """
    service_charge = round_half_up(subtotal * (service_charge_percent or 0) / 100)
    tax = round_half_up(subtotal * (tax_percent or 0) / 100)
    return service_charge, tax, subtotal + service_charge + tax


def apply_totals(order: Order, tenant: Tenant) -> None:
    """Recompute every money field of ``order`` from its lines."""
    order.subtotal = sum(line.line_total for line in order.items)
    order.service_charge, order.tax, order.total = compute_totals(
        order.subtotal, tenant.service_charge_percent, tenant.tax_percent
    )


@dataclass
class PlacementResult:
    order: Order
    created: bool
    table_label: Optional[str] = None


async def find_open_order_for_table(db: AsyncSession, table_id: str) -> Optional[Order]:
    """Newest non-terminal order on the table, lines loaded."""
    result = await db.execute(
        select(Order)
        .options(selectinload(Order.items))
        .where(Order.table_id == table_id, Order.status.not_in(TERMINAL_ORDER_STATUSES))
        .order_by(Order.created_at.desc(), Order.sequence.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def find_latest_open_order(db: AsyncSession, tenant_id: str) -> Optional[Order]:
    result = await db.execute(
        select(Order)
        .where(Order.tenant_id == tenant_id, Order.status.not_in(TERMINAL_ORDER_STATUSES))
        .order_by(Order.created_at.desc(), Order.sequence.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def resolve_table(db: AsyncSession, tenant_id: str, raw_label: Optional[str], lock: bool = False) -> Optional[Table]:
    """
    Look up a table by a loosely written label.

    Raises:
        NotFoundError: label given but no such table for this tenant
    """
    if not raw_label:
        return None
    label = normalize_table_label(raw_label)
    table = await find_table(db, tenant_id, label, for_update=lock) if label else None
    if table is None:
        raise NotFoundError(f"Table '{raw_label}' not found")
    return table


def _line_from_cart(line: CartLine) -> OrderLine:
    return OrderLine(
        menu_item_id=line.menu_item_id,
        item_name=line.name,
        unit_price=line.unit_price,
        quantity=line.qty,
        line_total=line.unit_price * line.qty,
    )


async def link_session(db: AsyncSession, order_id: str, session_id: Optional[str]) -> None:
    """Record that ``session_id`` put items into the order, once."""
    if not session_id:
        return
    existing = await db.execute(
        select(OrderSessionLink.id).where(
            OrderSessionLink.order_id == order_id,
            OrderSessionLink.session_id == session_id,
        )
    )
    if existing.first() is None:
        db.add(OrderSessionLink(order_id=order_id, session_id=session_id))


def merge_cart_into_order(order: Order, cart: Sequence[CartLine]) -> None:
    """Same menu item adds quantity, new items append as snapshot lines."""
    by_item = {line.menu_item_id: line for line in order.items if line.menu_item_id}
    for cart_line in cart:
        existing = by_item.get(cart_line.menu_item_id)
        if existing is not None:
            existing.quantity += cart_line.qty
            existing.line_total = existing.unit_price * existing.quantity
        else:
            new_line = _line_from_cart(cart_line)
            order.items.append(new_line)
            by_item[cart_line.menu_item_id] = new_line


async def create_order(
    db: AsyncSession,
    tenant: Tenant,
    lines: Sequence[OrderLine],
    table: Optional[Table] = None,
    chat_session_id: Optional[str] = None,
    order_type: Optional[OrderType] = None,
    notes: Optional[str] = None,
) -> Order:
    """Insert a new CONFIRMED order with the tenant's next number."""
    sequence = await next_order_sequence(db, tenant.id)
    order = Order(
        tenant_id=tenant.id,
        sequence=sequence,
        order_number=format_order_number(sequence),
        order_type=order_type or (OrderType.DINE_IN if table else OrderType.TAKEAWAY),
        table_id=table.id if table else None,
        chat_session_id=chat_session_id,
        status=OrderStatus.CONFIRMED,
        notes=notes,
        items=list(lines),
    )
    apply_totals(order, tenant)
    db.add(order)
    if table is not None:
        table.status = TableStatus.OCCUPIED
    await db.flush()
    await link_session(db, order.id, chat_session_id)
    await db.flush()
    return order


async def place_cart(
    db: AsyncSession,
    tenant: Tenant,
    session_id: str,
    table_label: Optional[str],
    cart: Sequence[CartLine],
) -> PlacementResult:
    """
    Place a session cart.

    The table row is locked before the open-order lookup, which serialises
    concurrent placements for the same table on PostgreSQL.

    Raises:
        NotFoundError: table label does not resolve
        IntegrityError: order number collision (from flush); retry the unit
    """
    table = await resolve_table(db, tenant.id, table_label, lock=True)

    order = await find_open_order_for_table(db, table.id) if table else None
    if order is not None:
        merge_cart_into_order(order, cart)
        order.status = OrderStatus.CONFIRMED
        if order.chat_session_id is None:
            order.chat_session_id = session_id
        await link_session(db, order.id, session_id)
        apply_totals(order, tenant)
        table.status = TableStatus.OCCUPIED
        await db.flush()
        logger.info(f"🔁 Merged {len(cart)} line(s) into {order.order_number} at {table.label}")
        return PlacementResult(order=order, created=False, table_label=table.label)

    order = await create_order(
        db,
        tenant,
        [_line_from_cart(line) for line in cart],
        table=table,
        chat_session_id=session_id,
    )
    where = table.label if table else "takeaway"
    logger.info(f"🆕 Created {order.order_number} ({where}) total={order.total:.2f}")
    return PlacementResult(order=order, created=True, table_label=table.label if table else None)


async def commit_with_retry(
    db: AsyncSession,
    unit_of_work: Callable[[AsyncSession], Awaitable[T]],
    max_attempts: int,
) -> T:
    """
    Run ``unit_of_work`` and commit, retrying the whole unit on IntegrityError.

    A rollback expires every instance in the session, so the unit must
    re-load what it needs by id on each attempt.

    Raises:
        OrderCreationError: all attempts hit a constraint violation
    """
    last_error: Optional[IntegrityError] = None
    for attempt in range(1, max_attempts + 1):
        try:
            result = await unit_of_work(db)
            await db.commit()
            return result
        except IntegrityError as e:
            await db.rollback()
            last_error = e
            logger.warning(f"⚠️ Order write conflict (attempt {attempt}/{max_attempts}): {e.orig}")
        except Exception:
            await db.rollback()
            raise

    logger.error(f"❌ Giving up after {max_attempts} attempts")
    raise OrderCreationError("Could not allocate an order number, please retry") from last_error


async def close_table_order(
    db: AsyncSession,
    tenant_id: str,
    table_label: Optional[str],
    target: OrderStatus,
    issuing_session_id: Optional[str] = None,
) -> Optional[TransitionResult]:
    """
    Pay or cancel the newest open order at a table, from chat.

    Any session's order at the table qualifies. Without a table label the
    newest open order of the tenant is used.

    Returns:
        The transition, or None when there is no open order to close
    """
    if table_label:
        label = normalize_table_label(table_label)
        table = await find_table(db, tenant_id, label, for_update=True) if label else None
        if table is None:
            logger.info(f"No table '{table_label}' to close an order on")
            return None
        order = await find_open_order_for_table(db, table.id)
    else:
        order = await find_latest_open_order(db, tenant_id)

    if order is None:
        return None
    return await transition_order_status(db, order, target, quiet_session_id=issuing_session_id)
