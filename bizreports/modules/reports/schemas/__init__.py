"""
Pydantic schemas for Reports module

Defines the contracts of the report builder (sources, configs, results),
the inventory rollups and the saved reports. Builder configs and inventory
filters accept camelCase keys as well as the Python field names, so configs
serialized by the web client can be replayed unchanged.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from bizreports.core.config import settings


# Report builder enums
class ColumnType(str, Enum):
    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    BOOLEAN = "boolean"


class FilterOperator(str, Enum):
    EQ = "eq"
    NEQ = "neq"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    LIKE = "like"
    IS_NULL = "is_null"


class ReportMetric(str, Enum):
    COUNT = "count"
    SUM = "sum"
    AVG = "avg"


class CamelModel(BaseModel):
    """Base model that reads and writes camelCase keys"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Source registry
class ColumnDef(CamelModel):
    """Column exposed by a report source"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    key: str
    label: str
    type: ColumnType = ColumnType.TEXT
    aggregatable: bool = Field(False, description="Legal as a sum/avg target")


class ReportSource(CamelModel):
    """Reportable entity with its fixed time dimension"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    label: str
    table: str
    date_field: str
    columns: Tuple[ColumnDef, ...]

    def get_column(self, key: Optional[str]) -> Optional[ColumnDef]:
        for column in self.columns:
            if column.key == key:
                return column
        return None

    @property
    def column_keys(self) -> List[str]:
        return [column.key for column in self.columns]


# Report builder request/response
class ReportFilter(CamelModel):
    """Single filter over a source column"""
    column: str = Field("", description="Column key of the active source")
    operator: FilterOperator = FilterOperator.EQ
    value: Any = None


class ReportConfig(CamelModel):
    """Declarative specification of one ad-hoc report"""
    source_id: str = Field(..., description="Registered source id")
    columns: List[str] = Field(default_factory=list, description="Empty means every column")
    filters: List[ReportFilter] = Field(default_factory=list)
    group_by: Optional[str] = None
    metric: Optional[ReportMetric] = None
    metric_column: Optional[str] = None
    date_from: date = Field(..., description="Start date (inclusive)")
    date_to: date = Field(..., description="End date (inclusive, whole day)")
    limit: int = Field(
        default_factory=lambda: settings.REPORT_DEFAULT_LIMIT,
        ge=1,
        le=settings.REPORT_MAX_LIMIT,
        description="Maximum rows fetched (aggregation works on these rows only)"
    )

    @field_validator("group_by", "metric_column", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @model_validator(mode="after")
    def validate_date_range(self):
        if self.date_from > self.date_to:
            raise ValueError("date_to must be greater than or equal to date_from")
        return self


class ReportResult(BaseModel):
    """Final output of the report builder"""
    columns: List[str]
    rows: List[Dict[str, Any]]
    total: int = Field(description="Matched rows, or produced groups when aggregated")
    aggregated: bool = False


# Inventory rollups
class StockStatus(str, Enum):
    CRITICAL = "critico"
    LOW = "bajo"
    NORMAL = "normal"
    OVER = "sobre"


class InventarioFilters(CamelModel):
    """Filters shared by every inventory rollup"""
    branch_id: Optional[UUID] = Field(None, description="Optional branch filter")
    category_id: Optional[UUID] = Field(None, description="Filter by product category")
    stock_status: Optional[StockStatus] = Field(None, description="Filter by stock status")
    date_from: date = Field(..., description="Start date for movements and sales")
    date_to: date = Field(..., description="End date for movements and sales")

    @model_validator(mode="after")
    def validate_date_range(self):
        if self.date_from > self.date_to:
            raise ValueError("date_to must be greater than or equal to date_from")
        return self


class InventarioKPI(CamelModel):
    """Inventory KPI summary"""
    total_productos: int = 0
    total_unidades: Decimal = Decimal("0")
    valor_inventario: Decimal = Decimal("0")
    productos_stock_critico: int = 0
    productos_stock_bajo: int = 0
    productos_stock_normal: int = 0
    productos_sobrestock: int = 0
    movimientos_entrada: Decimal = Decimal("0")
    movimientos_salida: Decimal = Decimal("0")


class StockProducto(BaseModel):
    """Classified stock snapshot of a product in a branch"""
    product_id: UUID
    product_name: str
    sku: str
    category_name: Optional[str]
    branch_id: UUID
    branch_name: str
    qty_on_hand: Decimal
    qty_reserved: Decimal
    qty_available: Decimal
    min_level: Decimal
    avg_cost: Decimal
    valor_total: Decimal
    stock_status: StockStatus


class MovimientoStock(BaseModel):
    """Inventory movement with resolved names"""
    id: UUID
    product_name: str
    branch_name: str
    direction: str
    qty: Decimal
    unit_cost: Decimal
    source: str
    note: Optional[str]
    created_at: datetime


class MovimientoPorDia(BaseModel):
    """Inbound/outbound quantities of one calendar day"""
    fecha: date
    entradas: Decimal
    salidas: Decimal


class StockPorCategoria(BaseModel):
    """Stock valuation of one category"""
    category_id: Optional[UUID]
    category_name: str
    total_productos: int
    total_unidades: Decimal
    valor_total: Decimal


class RotacionProducto(BaseModel):
    """Turnover of one product over the period"""
    product_id: UUID
    product_name: str
    sku: str
    stock_actual: Decimal
    unidades_vendidas: Decimal
    rotacion: float = Field(ge=0, description="unidades_vendidas / stock_actual, 0 without stock")


# Saved reports
class SavedReportModule(str, Enum):
    CUSTOM = "personalizado"
    INVENTORY = "inventario"


class SavedReportCreate(BaseModel):
    """Request to store a report configuration"""
    name: str = Field(..., min_length=1, max_length=150)
    description: Optional[str] = Field(None, max_length=255)
    module: SavedReportModule = SavedReportModule.CUSTOM
    config: Dict[str, Any] = Field(..., description="ReportConfig or InventarioFilters")

    @field_validator("name")
    @classmethod
    def strip_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("name cannot be blank")
        return v

    @model_validator(mode="after")
    def validate_config(self):
        if self.module == SavedReportModule.CUSTOM:
            ReportConfig.model_validate(self.config)
        else:
            InventarioFilters.model_validate(self.config)
        return self


class SavedReportResponse(BaseModel):
    """Stored report configuration"""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    name: str
    description: Optional[str]
    module: str
    filters: Dict[str, Any]
    is_favorite: bool
    created_at: datetime


# Lookups
class LookupItem(BaseModel):
    """Selector entry (branch or category)"""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
