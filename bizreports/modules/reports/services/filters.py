"""
Filter compiler for the report builder

Turns the filters of a ReportConfig into SQLAlchemy predicates over the
source table. Values are coerced according to the declared column type
before being bound, so user input never reaches the SQL text.
"""

from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, List, Optional
from uuid import UUID

from sqlalchemy import Column, String, Table, cast
from sqlalchemy.sql.elements import ColumnElement
from sqlalchemy.types import Date, DateTime, Integer, Uuid

from ..exceptions import QueryExecutionError
from ..schemas import ColumnDef, ColumnType, FilterOperator, ReportFilter, ReportSource
from .base import date_bounds

_TRUE_VALUES = ("true", "1", "yes", "si", "sí", "on")
_FALSE_VALUES = ("false", "0", "no", "off")


def is_blank(value: Any) -> bool:
    """A filter value that has not been specified yet"""
    if value is None:
        return True
    return isinstance(value, str) and not value.strip()


def parse_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float, Decimal)):
        return value != 0
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    return None


def resolve_column(source: ReportSource, table: Table, key: str) -> Column:
    """Table column for a key the source declares; anything else is a query error"""
    column = table.c.get(key) if source.get_column(key) is not None else None
    if column is None:
        raise QueryExecutionError(source.id, f'column "{key}" does not exist')
    return column


def coerce_value(source: ReportSource, column: Column, column_def: Optional[ColumnDef], value: Any) -> Any:
    """Convert a raw filter value to the Python type the column binds"""
    try:
        if isinstance(column.type, Uuid):
            return value if isinstance(value, UUID) else UUID(str(value))
        if column_def is None:
            return value
        if column_def.type == ColumnType.NUMBER:
            number = Decimal(str(value))
            if isinstance(column.type, Integer):
                return int(number) if number == number.to_integral_value() else float(number)
            return number
        if column_def.type == ColumnType.DATE:
            if isinstance(value, datetime):
                parsed = value
            elif isinstance(value, date):
                parsed = datetime.combine(value, datetime.min.time())
            else:
                parsed = datetime.fromisoformat(str(value).strip())
            if isinstance(column.type, Date) and not isinstance(column.type, DateTime):
                return parsed.date()
            if getattr(column.type, "timezone", False) and parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed
        if column_def.type == ColumnType.BOOLEAN:
            parsed = parse_bool(value)
            if parsed is None:
                raise ValueError(f"'{value}' is not a boolean")
            return parsed
        return str(value)
    except (ValueError, TypeError, InvalidOperation) as e:
        raise QueryExecutionError(
            source.id, f'invalid value {value!r} for column "{column.key}": {e}'
        ) from e


def compile_filter(source: ReportSource, table: Table, report_filter: ReportFilter) -> Optional[ColumnElement]:
    """Predicate for one filter, or None when the filter is incomplete"""
    if not report_filter.column or not report_filter.column.strip():
        return None
    if is_blank(report_filter.value):
        return None

    column = resolve_column(source, table, report_filter.column)
    column_def = source.get_column(report_filter.column)
    operator = report_filter.operator

    if operator == FilterOperator.IS_NULL:
        # "false" asks for rows where the column is present
        if parse_bool(report_filter.value) is False:
            return column.isnot(None)
        return column.is_(None)

    if operator == FilterOperator.LIKE:
        target = column if isinstance(column.type, String) else cast(column, String)
        return target.icontains(str(report_filter.value), autoescape=True)

    value = coerce_value(source, column, column_def, report_filter.value)
    if operator == FilterOperator.EQ:
        return column == value
    if operator == FilterOperator.NEQ:
        return column != value
    if operator == FilterOperator.GT:
        return column > value
    if operator == FilterOperator.GTE:
        return column >= value
    if operator == FilterOperator.LT:
        return column < value
    if operator == FilterOperator.LTE:
        return column <= value
    raise QueryExecutionError(source.id, f"unsupported operator {operator!r}")


def compile_filters(source: ReportSource, table: Table, filters: List[ReportFilter]) -> List[ColumnElement]:
    """Predicates for every complete filter, in order"""
    predicates = []
    for report_filter in filters:
        predicate = compile_filter(source, table, report_filter)
        if predicate is not None:
            predicates.append(predicate)
    return predicates


def date_range_clause(source: ReportSource, table: Table, date_from: date, date_to: date) -> List[ColumnElement]:
    """Mandatory bound on the source's date field, end day included"""
    column = resolve_column(source, table, source.date_field)
    start, end = date_bounds(date_from, date_to)
    return [column >= start, column <= end]
