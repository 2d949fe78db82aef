"""
Table helpers: label normalisation, lookup and occupancy release.

Labels are stored as PREFIX-NN ("T-01", "A-12"). Guests and the oracle
write them loosely ("table 1", "t1", "T-01"), so every lookup goes through
normalize_table_label first.
"""

import logging
import re
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tabletalk.models import TERMINAL_ORDER_STATUSES, Order, Table, TableStatus

logger = logging.getLogger(__name__)

_LABEL_RE = re.compile(r"^(?:table\s*)?([A-Za-z]{0,2})\s*-?\s*(\d{1,3})$", re.IGNORECASE)


def normalize_table_label(raw: Optional[str]) -> Optional[str]:
    """
    Normalise a loosely written table label.

    >>> normalize_table_label("table 5")
    'T-05'
    >>> normalize_table_label("a3")
    'A-03'
    >>> normalize_table_label("window seat") is None
    True
    """
    if not raw:
        return None
    match = _LABEL_RE.match(raw.strip())
    if not match:
        return None
    prefix = (match.group(1) or "T").upper()
    return f"{prefix}-{int(match.group(2)):02d}"


async def find_table(
    db: AsyncSession,
    tenant_id: str,
    label: str,
    for_update: bool = False,
) -> Optional[Table]:
    query = select(Table).where(Table.tenant_id == tenant_id, Table.label == label)
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def count_other_open_orders(db: AsyncSession, table_id: str, exclude_order_id: str) -> int:
    result = await db.execute(
        select(func.count(Order.id)).where(
            Order.table_id == table_id,
            Order.status.not_in(TERMINAL_ORDER_STATUSES),
            Order.id != exclude_order_id,
        )
    )
    return result.scalar() or 0


async def release_table_if_idle(db: AsyncSession, table_id: Optional[str], closed_order_id: str) -> bool:
    """
    Mark the table AVAILABLE when no other open order references it.

    Must run in the same transaction as the status change that closed
    ``closed_order_id``.

    Returns:
        True if the table was released
    """
    if not table_id:
        return False
    if await count_other_open_orders(db, table_id, closed_order_id) > 0:
        return False

    table = await db.get(Table, table_id)
    if table is None:
        return False
    table.status = TableStatus.AVAILABLE
    logger.info(f"Table {table.label} released")
    return True
