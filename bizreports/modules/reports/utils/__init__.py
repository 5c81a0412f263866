"""
Utilities for Reports module

Provides CSV export functionality and the row preparation helpers used
by the report routers.
"""

import csv
import io
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID

from fastapi import Response

from ..schemas import (
    MovimientoPorDia,
    MovimientoStock,
    ReportResult,
    ReportSource,
    RotacionProducto,
    StockPorCategoria,
    StockProducto,
)


def create_csv_response(
    data: List[Dict[str, Any]],
    filename: str,
    headers: Optional[Dict[str, str]] = None
) -> Response:
    """
    Create a CSV response from a list of dictionaries.

    Args:
        data: List of dictionaries with report data
        filename: Name for the CSV file
        headers: Optional mapping of field names to CSV headers

    Returns:
        FastAPI Response with CSV content
    """
    output = io.StringIO()

    # Use headers mapping if provided, otherwise use keys from first row
    if headers:
        fieldnames = list(headers.keys())
        csv_headers = list(headers.values())
    else:
        fieldnames = list(data[0].keys()) if data else []
        csv_headers = fieldnames

    if fieldnames:
        writer = csv.DictWriter(output, fieldnames=fieldnames, extrasaction="ignore")

        # Write header row with custom names
        writer.writerow(dict(zip(fieldnames, csv_headers)))

        for row in data:
            writer.writerow({key: format_csv_value(row.get(key)) for key in fieldnames})

    csv_content = output.getvalue()
    output.close()

    return Response(
        content=csv_content,
        media_type="text/csv",
        headers={
            "Content-Disposition": f"attachment; filename={filename}",
            "Content-Type": "text/csv; charset=utf-8"
        }
    )


def format_csv_value(value: Any) -> str:
    """
    Format a value for CSV export.

    Args:
        value: Value to format

    Returns:
        String representation suitable for CSV
    """
    if value is None:
        return ""
    elif isinstance(value, bool):
        return "Sí" if value else "No"
    elif isinstance(value, Decimal):
        return str(value)
    elif isinstance(value, (date, datetime)):
        return value.isoformat()
    elif isinstance(value, UUID):
        return str(value)
    elif isinstance(value, Enum):
        return str(value.value)
    else:
        return str(value)


def report_result_headers(result: ReportResult, source: Optional[ReportSource] = None) -> Dict[str, str]:
    """Column labels of a builder result; computed columns keep their key"""
    headers = {}
    for key in result.columns:
        column = source.get_column(key) if source else None
        headers[key] = column.label if column else key
    return headers


def prepare_stock_csv(items: Sequence[StockProducto]) -> List[Dict[str, Any]]:
    """Prepare classified stock data for CSV export"""
    return [item.model_dump() for item in items]


def prepare_movements_csv(items: Sequence[MovimientoStock]) -> List[Dict[str, Any]]:
    """Prepare stock movements data for CSV export"""
    return [item.model_dump() for item in items]


def prepare_movements_by_day_csv(items: Sequence[MovimientoPorDia]) -> List[Dict[str, Any]]:
    return [item.model_dump() for item in items]


def prepare_stock_by_category_csv(items: Sequence[StockPorCategoria]) -> List[Dict[str, Any]]:
    return [item.model_dump() for item in items]


def prepare_turnover_csv(items: Sequence[RotacionProducto]) -> List[Dict[str, Any]]:
    """Prepare product turnover data for CSV export"""
    return [
        {**item.model_dump(), "rotacion": round(item.rotacion, 4)}
        for item in items
    ]


# CSV Headers mapping for different report types
CSV_HEADERS = {
    "stock": {
        "product_name": "Producto",
        "sku": "SKU",
        "category_name": "Categoría",
        "branch_name": "Sucursal",
        "qty_on_hand": "Stock",
        "qty_reserved": "Reservado",
        "qty_available": "Disponible",
        "min_level": "Stock mínimo",
        "avg_cost": "Costo promedio",
        "valor_total": "Valor total",
        "stock_status": "Estado"
    },
    "movements": {
        "created_at": "Fecha",
        "product_name": "Producto",
        "branch_name": "Sucursal",
        "direction": "Tipo",
        "qty": "Cantidad",
        "unit_cost": "Costo unitario",
        "source": "Origen",
        "note": "Nota"
    },
    "movements_by_day": {
        "fecha": "Fecha",
        "entradas": "Entradas",
        "salidas": "Salidas"
    },
    "stock_by_category": {
        "category_name": "Categoría",
        "total_productos": "Productos",
        "total_unidades": "Unidades",
        "valor_total": "Valor total"
    },
    "turnover": {
        "product_name": "Producto",
        "sku": "SKU",
        "stock_actual": "Stock actual",
        "unidades_vendidas": "Unidades vendidas",
        "rotacion": "Rotación"
    }
}
