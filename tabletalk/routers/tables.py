"""
Table management endpoints.

Table status is never written here: it follows the open orders that
reference the table.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tabletalk.core.exceptions import BadRequestError, ConflictError, NotFoundError
from tabletalk.database import get_db
from tabletalk.dependencies import current_tenant
from tabletalk.models import Table, TableStatus, Tenant
from tabletalk.schemas import ErrorResponse, TableCreate, TableResponse, TableUpdate
from tabletalk.services.orders import normalize_table_label

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tables", tags=["Tables"])


def _clean_label(raw: str) -> str:
    label = normalize_table_label(raw)
    if label is None:
        raise BadRequestError(f"Invalid table label '{raw}', expected something like T-01")
    return label


async def _commit_unique(db: AsyncSession, label: str) -> None:
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError(f"Table {label} already exists")


@router.get("", response_model=List[TableResponse], summary="List tables")
async def list_tables(
    tenant: Tenant = Depends(current_tenant),
    db: AsyncSession = Depends(get_db),
) -> List[TableResponse]:
    result = await db.execute(
        select(Table).where(Table.tenant_id == tenant.id).order_by(Table.label)
    )
    return [TableResponse.model_validate(t) for t in result.scalars().all()]


@router.post(
    "",
    response_model=TableResponse,
    status_code=201,
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Add a table",
)
async def create_table(
    body: TableCreate,
    tenant: Tenant = Depends(current_tenant),
    db: AsyncSession = Depends(get_db),
) -> TableResponse:
    label = _clean_label(body.label)
    table = Table(
        tenant_id=tenant.id,
        label=label,
        capacity=body.capacity,
        status=TableStatus.AVAILABLE,
    )
    db.add(table)
    await _commit_unique(db, label)

    logger.info(f"🪑 Table {label} added (capacity {body.capacity})")
    return TableResponse.model_validate(table)


@router.patch(
    "",
    response_model=TableResponse,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
    summary="Rename or resize a table",
)
async def update_table(
    body: TableUpdate,
    tenant: Tenant = Depends(current_tenant),
    db: AsyncSession = Depends(get_db),
) -> TableResponse:
    result = await db.execute(
        select(Table).where(Table.id == body.id, Table.tenant_id == tenant.id)
    )
    table = result.scalar_one_or_none()
    if table is None:
        raise NotFoundError("Table not found")

    if body.label is not None:
        table.label = _clean_label(body.label)
    if body.capacity is not None:
        table.capacity = body.capacity
    await _commit_unique(db, table.label)

    return TableResponse.model_validate(table)
