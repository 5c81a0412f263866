from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID

from bizreports.modules.categories.models import Category


async def get_categories(db: AsyncSession, tenant_id: UUID):
    """
    Categorías activas de la empresa para los selectores de reportes

    Args:
        db: Sesión asíncrona
        tenant_id: ID de la empresa

    Returns:
        List[Category]: Categorías ordenadas por nombre
    """
    result = await db.execute(
        select(Category).where(
            Category.tenant_id == tenant_id,
            Category.is_active.is_(True)
        ).order_by(Category.name)
    )
    return list(result.scalars().all())
