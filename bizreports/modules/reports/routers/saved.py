"""
Saved Reports Router

Endpoints to store, list, delete and re-run report configurations.
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, Response, status

from bizreports.dependencies.companyDependencies import TenantId
from bizreports.dependencies.dbDependecies import async_db_dependency
from bizreports.dependencies.userDependencies import user_id_dependency
from ..exceptions import ReportError, to_http_exception
from ..schemas import ReportResult, SavedReportCreate, SavedReportModule, SavedReportResponse
from ..services.saved import SavedReportService


router = APIRouter(prefix="/reports/saved", tags=["Reports"])


@router.get("", response_model=List[SavedReportResponse])
async def list_saved_reports(
    tenant_id: TenantId,
    db: async_db_dependency,
    module: Optional[SavedReportModule] = Query(None, description="Filter by report module")
):
    """Saved reports of the current company, newest first."""
    service = SavedReportService(db)
    return await service.get_saved_reports(tenant_id, module)


@router.post("", response_model=SavedReportResponse, status_code=status.HTTP_201_CREATED)
async def create_saved_report(
    data: SavedReportCreate,
    tenant_id: TenantId,
    user_id: user_id_dependency,
    db: async_db_dependency
):
    try:
        return await SavedReportService(db).save_report(tenant_id, user_id, data)
    except ReportError as e:
        raise to_http_exception(e)


@router.get("/{report_id}", response_model=SavedReportResponse)
async def get_saved_report(report_id: UUID, tenant_id: TenantId, db: async_db_dependency):
    try:
        return await SavedReportService(db).get_saved_report(tenant_id, report_id)
    except ReportError as e:
        raise to_http_exception(e)


@router.delete("/{report_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_saved_report(report_id: UUID, tenant_id: TenantId, db: async_db_dependency):
    deleted = await SavedReportService(db).delete_saved_report(tenant_id, report_id)
    if not deleted:
        raise HTTPException(404, f"Reporte guardado '{report_id}' no encontrado")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{report_id}/run", response_model=ReportResult)
async def run_saved_report(report_id: UUID, tenant_id: TenantId, db: async_db_dependency):
    """Execute a saved ``personalizado`` report with its stored configuration."""
    try:
        return await SavedReportService(db).run_saved_report(tenant_id, report_id)
    except ReportError as e:
        raise to_http_exception(e)
