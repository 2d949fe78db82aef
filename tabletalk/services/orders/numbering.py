"""Per-tenant order numbering ("ORD-0001", "ORD-0002", ...)."""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tabletalk.models import Order

ORDER_NUMBER_PREFIX = "ORD-"


async def next_order_sequence(db: AsyncSession, tenant_id: str) -> int:
    """
    Next free sequence for the tenant.

    Two concurrent callers can get the same value; the unique constraint on
    (tenant_id, sequence) rejects the second insert and the caller retries.
    """
    result = await db.execute(
        select(func.max(Order.sequence)).where(Order.tenant_id == tenant_id)
    )
    return (result.scalar() or 0) + 1


def format_order_number(sequence: int) -> str:
    return f"{ORDER_NUMBER_PREFIX}{sequence:04d}"
