"""
Saved Reports Service

Stores report configurations per tenant and user so they can be listed and
executed again later.
"""

import logging
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from .base import store_error_message
from .builder import execute_report
from ..exceptions import QueryExecutionError, SavedReportNotExecutable, SavedReportNotFound
from ..models import SavedReport
from ..schemas import (
    InventarioFilters,
    ReportConfig,
    ReportResult,
    SavedReportCreate,
    SavedReportModule,
)

logger = logging.getLogger(__name__)


def serialize_config(module: SavedReportModule, config: Dict[str, Any]) -> Dict[str, Any]:
    """Canonical JSON form (camelCase, ISO dates) of a saved configuration"""
    model = ReportConfig if module == SavedReportModule.CUSTOM else InventarioFilters
    return model.model_validate(config).model_dump(mode="json", by_alias=True)


class SavedReportService:
    """Service for saved report configurations"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def save_report(self, tenant_id: UUID, user_id: UUID, data: SavedReportCreate) -> SavedReport:
        report = SavedReport(
            tenant_id=tenant_id,
            user_id=user_id,
            name=data.name,
            description=data.description,
            module=data.module.value,
            filters=serialize_config(data.module, data.config),
        )
        try:
            self.db.add(report)
            await self.db.commit()
            await self.db.refresh(report)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Error saving report '{data.name}' for tenant {tenant_id}: {e}")
            raise QueryExecutionError("reportes_guardados", store_error_message(e)) from e

        logger.info(f"Saved report {report.id} ({report.module}) for tenant {tenant_id}")
        return report

    async def get_saved_reports(
        self,
        tenant_id: UUID,
        module: Optional[SavedReportModule] = None
    ) -> List[SavedReport]:
        """Saved reports of the tenant, newest first"""
        query = select(SavedReport).where(SavedReport.tenant_id == tenant_id)
        if module:
            query = query.where(SavedReport.module == module.value)
        query = query.order_by(SavedReport.created_at.desc(), SavedReport.name)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_saved_report(self, tenant_id: UUID, report_id: UUID) -> SavedReport:
        result = await self.db.execute(
            select(SavedReport).where(
                SavedReport.id == report_id,
                SavedReport.tenant_id == tenant_id
            )
        )
        report = result.scalar_one_or_none()
        if report is None:
            raise SavedReportNotFound(report_id)
        return report

    async def delete_saved_report(self, tenant_id: UUID, report_id: UUID) -> bool:
        """Delete a saved report; False when it does not exist for the tenant"""
        try:
            report = await self.get_saved_report(tenant_id, report_id)
        except SavedReportNotFound:
            return False

        await self.db.delete(report)
        await self.db.commit()
        logger.info(f"Deleted saved report {report_id} for tenant {tenant_id}")
        return True

    async def run_saved_report(self, tenant_id: UUID, report_id: UUID) -> ReportResult:
        """
        Execute a saved ad-hoc report.

        Only ``personalizado`` reports hold a builder configuration; inventory
        filters are replayed through the inventory endpoints instead.
        """
        report = await self.get_saved_report(tenant_id, report_id)
        if report.module != SavedReportModule.CUSTOM.value:
            raise SavedReportNotExecutable(report.id, report.module)

        config = ReportConfig.model_validate(report.filters)
        return await execute_report(self.db, tenant_id, config)
