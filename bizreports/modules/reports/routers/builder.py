"""
Report Builder Router

FastAPI router for the ad-hoc report builder: source catalog and
execution of report configurations (JSON or CSV).
"""

from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query

from bizreports.dependencies.companyDependencies import TenantId
from bizreports.dependencies.dbDependecies import async_db_dependency
from ..exceptions import ReportError, to_http_exception
from ..schemas import ReportConfig, ReportSource
from ..services.builder import ReportBuilderService
from ..sources import get_source, get_sources
from ..utils import create_csv_response, report_result_headers


router = APIRouter(prefix="/reports/builder", tags=["Reports"])


@router.get("/sources", response_model=List[ReportSource])
async def list_sources():
    """Catalog of reportable sources with their columns."""
    return get_sources()


@router.get("/sources/{source_id}", response_model=ReportSource)
async def get_source_detail(source_id: str):
    source = get_source(source_id)
    if source is None:
        raise HTTPException(404, f"Fuente de datos '{source_id}' no encontrada")
    return source


@router.post("/execute", response_model=None)
async def execute_report(
    config: ReportConfig,
    tenant_id: TenantId,
    db: async_db_dependency,
    export: Optional[str] = Query(None, pattern="^(csv)$", description="Export format: csv")
):
    """
    Execute a report configuration for the current company.

    Returns the normalized result, or a CSV download when ``export=csv``.
    """
    try:
        service = ReportBuilderService(db=db, tenant_id=tenant_id)
        result = await service.execute_report(config)
    except ReportError as e:
        raise to_http_exception(e)

    if export == "csv":
        filename = f"reporte_{config.source_id}_{config.date_from:%Y%m%d}_{config.date_to:%Y%m%d}.csv"
        headers = report_result_headers(result, get_source(config.source_id))
        return create_csv_response(result.rows, filename, headers)

    return result