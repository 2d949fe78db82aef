"""
FastAPI dependencies shared by the routers.

Dashboard requests name their restaurant in the ``X-Tenant-Slug`` header;
authenticating the caller happens in front of this service.
"""

from fastapi import Depends, Header
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tabletalk.core.exceptions import NotFoundError
from tabletalk.database import get_db
from tabletalk.models import Tenant


async def get_tenant_by_slug(db: AsyncSession, slug: str) -> Tenant:
    result = await db.execute(select(Tenant).where(Tenant.slug == slug.strip().lower()))
    tenant = result.scalar_one_or_none()
    if tenant is None:
        raise NotFoundError(f"Restaurant '{slug}' not found")
    return tenant


async def current_tenant(
    x_tenant_slug: str = Header(..., min_length=1),
    db: AsyncSession = Depends(get_db),
) -> Tenant:
    return await get_tenant_by_slug(db, x_tenant_slug)
