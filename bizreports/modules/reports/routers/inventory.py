"""
Inventory Reports Router

FastAPI router for the inventory rollups: KPIs, classified stock,
movements, movements per day, stock per category and turnover, plus the
branch and category lookups used by the report filters.
"""

from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from bizreports.core.config import settings
from bizreports.dependencies.companyDependencies import TenantId
from bizreports.dependencies.dbDependecies import async_db_dependency
from bizreports.modules.branches.service import get_branches
from bizreports.modules.categories.service import get_categories
from ..exceptions import ReportError, to_http_exception
from ..schemas import (
    InventarioFilters,
    InventarioKPI,
    LookupItem,
    MovimientoPorDia,
    MovimientoStock,
    RotacionProducto,
    StockPorCategoria,
    StockProducto,
    StockStatus,
)
from ..services.inventory import InventoryReportService
from ..utils import (
    CSV_HEADERS,
    create_csv_response,
    prepare_movements_by_day_csv,
    prepare_movements_csv,
    prepare_stock_by_category_csv,
    prepare_stock_csv,
    prepare_turnover_csv,
)


router = APIRouter(prefix="/reports/inventory", tags=["Reports"])


def get_inventory_filters(
    date_from: date = Query(..., description="Start date for movements and sales"),
    date_to: date = Query(..., description="End date for movements and sales"),
    branch_id: Optional[UUID] = Query(None, description="Optional branch filter"),
    category_id: Optional[UUID] = Query(None, description="Filter by product category"),
    stock_status: Optional[StockStatus] = Query(None, description="Filter by stock status")
) -> InventarioFilters:
    try:
        return InventarioFilters(
            date_from=date_from,
            date_to=date_to,
            branch_id=branch_id,
            category_id=category_id,
            stock_status=stock_status
        )
    except ValidationError as e:
        raise RequestValidationError(e.errors(include_url=False, include_context=False, include_input=False))


def _filename(report: str, filters: InventarioFilters) -> str:
    return f"{report}_{filters.date_from:%Y%m%d}_{filters.date_to:%Y%m%d}.csv"


@router.get("/kpis", response_model=InventarioKPI)
async def get_inventory_kpis(
    tenant_id: TenantId,
    db: async_db_dependency,
    filters: InventarioFilters = Depends(get_inventory_filters)
):
    """Inventory KPI summary for the company (optionally one branch)."""
    try:
        return await InventoryReportService(db=db, tenant_id=tenant_id).get_kpis(filters)
    except ReportError as e:
        raise to_http_exception(e)


@router.get("/stock", response_model=None)
async def get_inventory_stock(
    tenant_id: TenantId,
    db: async_db_dependency,
    filters: InventarioFilters = Depends(get_inventory_filters),
    export: Optional[str] = Query(None, pattern="^(csv)$", description="Export format: csv")
):
    """Classified stock per product and branch, critical first."""
    try:
        items: List[StockProducto] = await InventoryReportService(
            db=db, tenant_id=tenant_id
        ).get_stock_productos(filters)
    except ReportError as e:
        raise to_http_exception(e)

    if export == "csv":
        return create_csv_response(prepare_stock_csv(items), _filename("stock", filters), CSV_HEADERS["stock"])
    return items


@router.get("/movements", response_model=None)
async def get_inventory_movements(
    tenant_id: TenantId,
    db: async_db_dependency,
    filters: InventarioFilters = Depends(get_inventory_filters),
    limit: int = Query(settings.MOVEMENTS_DEFAULT_LIMIT, ge=1, le=1000, description="Number of movements to return"),
    export: Optional[str] = Query(None, pattern="^(csv)$", description="Export format: csv")
):
    """Most recent stock movements in the period."""
    try:
        items: List[MovimientoStock] = await InventoryReportService(
            db=db, tenant_id=tenant_id
        ).get_movimientos(filters, limit=limit)
    except ReportError as e:
        raise to_http_exception(e)

    if export == "csv":
        return create_csv_response(
            prepare_movements_csv(items), _filename("movimientos", filters), CSV_HEADERS["movements"]
        )
    return items


@router.get("/movements-by-day", response_model=None)
async def get_inventory_movements_by_day(
    tenant_id: TenantId,
    db: async_db_dependency,
    filters: InventarioFilters = Depends(get_inventory_filters),
    export: Optional[str] = Query(None, pattern="^(csv)$", description="Export format: csv")
):
    try:
        items: List[MovimientoPorDia] = await InventoryReportService(
            db=db, tenant_id=tenant_id
        ).get_movimientos_por_dia(filters)
    except ReportError as e:
        raise to_http_exception(e)

    if export == "csv":
        return create_csv_response(
            prepare_movements_by_day_csv(items),
            _filename("movimientos_por_dia", filters),
            CSV_HEADERS["movements_by_day"]
        )
    return items


@router.get("/stock-by-category", response_model=None)
async def get_inventory_stock_by_category(
    tenant_id: TenantId,
    db: async_db_dependency,
    filters: InventarioFilters = Depends(get_inventory_filters),
    export: Optional[str] = Query(None, pattern="^(csv)$", description="Export format: csv")
):
    try:
        items: List[StockPorCategoria] = await InventoryReportService(
            db=db, tenant_id=tenant_id
        ).get_stock_por_categoria(filters)
    except ReportError as e:
        raise to_http_exception(e)

    if export == "csv":
        return create_csv_response(
            prepare_stock_by_category_csv(items),
            _filename("stock_por_categoria", filters),
            CSV_HEADERS["stock_by_category"]
        )
    return items


@router.get("/turnover", response_model=None)
async def get_inventory_turnover(
    tenant_id: TenantId,
    db: async_db_dependency,
    filters: InventarioFilters = Depends(get_inventory_filters),
    limit: int = Query(settings.TURNOVER_DEFAULT_LIMIT, ge=1, le=500, description="Number of products to rank"),
    export: Optional[str] = Query(None, pattern="^(csv)$", description="Export format: csv")
):
    """Products ranked by turnover (units sold / stock on hand)."""
    try:
        items: List[RotacionProducto] = await InventoryReportService(
            db=db, tenant_id=tenant_id
        ).get_rotacion_productos(filters, limit=limit)
    except ReportError as e:
        raise to_http_exception(e)

    if export == "csv":
        return create_csv_response(
            prepare_turnover_csv(items), _filename("rotacion", filters), CSV_HEADERS["turnover"]
        )
    return items


@router.get("/branches", response_model=List[LookupItem])
async def list_branches(tenant_id: TenantId, db: async_db_dependency):
    return await get_branches(db, tenant_id)


@router.get("/categories", response_model=List[LookupItem])
async def list_categories(tenant_id: TenantId, db: async_db_dependency):
    return await get_categories(db, tenant_id)
