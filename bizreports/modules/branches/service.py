from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from bizreports.modules.branches.models import Branch
from uuid import UUID


async def get_branches(db: AsyncSession, tenant_id: UUID):
    """Sucursales activas de la empresa ordenadas por nombre"""
    result = await db.execute(
        select(Branch).where(
            Branch.tenant_id == tenant_id,
            Branch.is_active.is_(True)
        ).order_by(Branch.name)
    )
    return list(result.scalars().all())
