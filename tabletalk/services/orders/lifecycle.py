"""
Order Lifecycle

Status workflow:
    CONFIRMED → PREPARING → READY → OUT_FOR_DELIVERY → PAID

Forward skips are allowed (a counter order can go straight to PAID).
CANCELLED is reachable from any non-terminal status. PAID and CANCELLED
are terminal: nothing leaves them.

A status change also keeps the rest of the world consistent, in the same
transaction: the table is released when its last open order closes, and
every linked chat session gets a narrated update (and is closed on
terminal statuses).
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tabletalk.core.exceptions import InvalidTransitionError
from tabletalk.models import (
    TERMINAL_ORDER_STATUSES,
    ChatMessage,
    ChatSession,
    MessageSender,
    Order,
    OrderSessionLink,
    OrderStatus,
    PaymentStatus,
    SessionState,
)
from tabletalk.services.chat.narration import lifecycle_narration
from tabletalk.services.orders.tables import release_table_if_idle

logger = logging.getLogger(__name__)

STATUS_FLOW = (
    OrderStatus.CONFIRMED,
    OrderStatus.PREPARING,
    OrderStatus.READY,
    OrderStatus.OUT_FOR_DELIVERY,
    OrderStatus.PAID,
)


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    if current in TERMINAL_ORDER_STATUSES:
        return False
    if target == OrderStatus.CANCELLED:
        return True
    return STATUS_FLOW.index(target) > STATUS_FLOW.index(current)


def validate_transition(current: OrderStatus, target: OrderStatus) -> None:
    if not can_transition(current, target):
        raise InvalidTransitionError(
            f"Cannot move order from {current.value} to {target.value}"
        )


async def linked_session_ids(db: AsyncSession, order: Order) -> list[str]:
    """Creating session first, then every session that merged into the order."""
    result = await db.execute(
        select(OrderSessionLink.session_id)
        .where(OrderSessionLink.order_id == order.id)
        .order_by(OrderSessionLink.id)
    )
    ids = list(result.scalars().all())
    if order.chat_session_id and order.chat_session_id not in ids:
        ids.insert(0, order.chat_session_id)
    return ids


@dataclass
class TransitionResult:
    order: Order
    previous_status: OrderStatus
    changed: bool = False
    table_released: bool = False
    session_closed: bool = False


async def transition_order_status(
    db: AsyncSession,
    order: Order,
    target: OrderStatus,
    quiet_session_id: Optional[str] = None,
) -> TransitionResult:
    """
    Move ``order`` to ``target`` and apply the side effects.

    Args:
        db: Session of the caller's open transaction (caller commits)
        order: Order to change
        target: New status
        quiet_session_id: Chat session that should not receive the pushed
            narration, because it is composing its own reply this turn

    Raises:
        InvalidTransitionError: move not allowed by the workflow
    """
    previous = order.status
    if previous == target:
        return TransitionResult(order=order, previous_status=previous)

    validate_transition(previous, target)
    order.status = target
    result = TransitionResult(order=order, previous_status=previous, changed=True)

    terminal = target in TERMINAL_ORDER_STATUSES
    if target == OrderStatus.PAID:
        order.payment_status = PaymentStatus.PAID
    if terminal:
        order.completed_at = datetime.now(timezone.utc)
        result.table_released = await release_table_if_idle(db, order.table_id, order.id)

    narration = lifecycle_narration(order.order_number, target, order.total)
    for session_id in await linked_session_ids(db, order):
        session = await db.get(ChatSession, session_id)
        if session is None:
            continue
        if session.id != quiet_session_id:
            db.add(ChatMessage(
                session_id=session.id,
                sender=MessageSender.BOT,
                content=narration,
                meta={"orderId": order.id, "orderStatus": target.value},
            ))
        if terminal:
            session.state = SessionState.COMPLETED
            session.cart = []
            result.session_closed = True

    logger.info(f"📦 {order.order_number}: {previous.value} → {target.value}")
    await db.flush()
    return result
