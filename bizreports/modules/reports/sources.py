"""
Source registry for the report builder.

Static catalog of the reportable entities. It is the single source of truth
for the legal columns of a source and for the date column every query on it
is bounded by.
"""

from typing import Dict, List, Optional

from .schemas import ColumnDef, ColumnType, ReportSource


def _col(key: str, label: str, type: ColumnType = ColumnType.TEXT, aggregatable: bool = False) -> ColumnDef:
    return ColumnDef(key=key, label=label, type=type, aggregatable=aggregatable)


REPORT_SOURCES: List[ReportSource] = [
    ReportSource(
        id="ventas",
        label="Ventas",
        table="sales",
        date_field="sale_date",
        columns=(
            _col("id", "ID"),
            _col("number", "Número"),
            _col("sale_date", "Fecha", ColumnType.DATE),
            _col("status", "Estado"),
            _col("payment_status", "Estado de pago"),
            _col("branch_id", "Sucursal"),
            _col("customer_id", "Cliente"),
            _col("user_id", "Vendedor"),
            _col("subtotal", "Subtotal", ColumnType.NUMBER, aggregatable=True),
            _col("tax_total", "Impuestos", ColumnType.NUMBER, aggregatable=True),
            _col("discount_total", "Descuentos", ColumnType.NUMBER, aggregatable=True),
            _col("total", "Total", ColumnType.NUMBER, aggregatable=True),
        ),
    ),
    ReportSource(
        id="movimientos",
        label="Movimientos de inventario",
        table="stock_movements",
        date_field="created_at",
        columns=(
            _col("id", "ID"),
            _col("created_at", "Fecha", ColumnType.DATE),
            _col("product_id", "Producto"),
            _col("branch_id", "Sucursal"),
            _col("direction", "Dirección"),
            _col("source", "Origen"),
            _col("qty", "Cantidad", ColumnType.NUMBER, aggregatable=True),
            _col("unit_cost", "Costo unitario", ColumnType.NUMBER, aggregatable=True),
            _col("note", "Nota"),
        ),
    ),
    ReportSource(
        id="pagos",
        label="Pagos",
        table="payments",
        date_field="payment_date",
        columns=(
            _col("id", "ID"),
            _col("payment_date", "Fecha", ColumnType.DATE),
            _col("sale_id", "Venta"),
            _col("branch_id", "Sucursal"),
            _col("method", "Método"),
            _col("status", "Estado"),
            _col("reference", "Referencia"),
            _col("amount", "Monto", ColumnType.NUMBER, aggregatable=True),
        ),
    ),
    ReportSource(
        id="reservas",
        label="Reservas",
        table="reservations",
        date_field="check_in",
        columns=(
            _col("id", "ID"),
            _col("code", "Código"),
            _col("check_in", "Entrada", ColumnType.DATE),
            _col("check_out", "Salida", ColumnType.DATE),
            _col("guest_name", "Huésped"),
            _col("space_name", "Espacio"),
            _col("channel", "Canal"),
            _col("status", "Estado"),
            _col("occupants", "Ocupantes", ColumnType.NUMBER, aggregatable=True),
            _col("total_amount", "Total", ColumnType.NUMBER, aggregatable=True),
        ),
    ),
]

_SOURCES_BY_ID: Dict[str, ReportSource] = {source.id: source for source in REPORT_SOURCES}


def get_sources() -> List[ReportSource]:
    """Return every registered source"""
    return list(REPORT_SOURCES)


def get_source(source_id: str) -> Optional[ReportSource]:
    """Return the source with the given id, or None when it is not registered"""
    return _SOURCES_BY_ID.get(source_id)
