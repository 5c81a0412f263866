"""
In-memory aggregation for the report builder.

The reducer works over the rows already fetched by the query executor, so
it sees at most ``ReportConfig.limit`` rows, not the whole matching set.
Full-set aggregation belongs in the store (GROUP BY), not in this reducer.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from ..exceptions import InvalidAggregationSpec
from ..schemas import ReportConfig, ReportMetric, ReportSource

EMPTY_GROUP_KEY = "(vacío)"
COUNT_KEY = "_count"


def validate_aggregation(source: ReportSource, config: ReportConfig) -> None:
    """Reject group_by/metric/metric_column combinations before querying"""
    if not config.group_by:
        return

    details = dict(
        group_by=config.group_by,
        metric=config.metric.value if config.metric else None,
        metric_column=config.metric_column,
    )

    if source.get_column(config.group_by) is None:
        raise InvalidAggregationSpec(
            f"la columna '{config.group_by}' no pertenece a la fuente '{source.id}'", **details
        )
    if config.metric is None:
        raise InvalidAggregationSpec("se requiere una métrica para agrupar", **details)

    if config.metric_column:
        metric_def = source.get_column(config.metric_column)
        if metric_def is None:
            raise InvalidAggregationSpec(
                f"la columna '{config.metric_column}' no pertenece a la fuente '{source.id}'", **details
            )
    else:
        metric_def = None

    if config.metric in (ReportMetric.SUM, ReportMetric.AVG):
        if metric_def is None:
            raise InvalidAggregationSpec(
                f"la métrica '{config.metric.value}' requiere una columna", **details
            )
        if not metric_def.aggregatable:
            raise InvalidAggregationSpec(
                f"la columna '{config.metric_column}' no es agregable", **details
            )


def should_aggregate(config: ReportConfig) -> bool:
    if not config.group_by or config.metric is None:
        return False
    if config.metric == ReportMetric.COUNT:
        return True
    return bool(config.metric_column)


def metric_key(metric: ReportMetric, metric_column: Optional[str]) -> str:
    """Output key of the metric value, e.g. ``sum_total``"""
    if metric_column:
        return f"{metric.value}_{metric_column}"
    return metric.value


def group_key(value: Any) -> str:
    if value is None:
        return EMPTY_GROUP_KEY
    key = str(value)
    return key if key.strip() else EMPTY_GROUP_KEY


def to_number(value: Any) -> Decimal:
    """Numeric value of a cell; anything non-numeric counts as 0"""
    if value is None or isinstance(value, bool):
        return Decimal(int(value or 0))
    try:
        number = Decimal(str(value).strip())
    except InvalidOperation:
        return Decimal("0")
    return number if number.is_finite() else Decimal("0")


def aggregate_rows(
    rows: List[Dict[str, Any]],
    group_by: str,
    metric: ReportMetric,
    metric_column: Optional[str] = None
) -> List[Dict[str, Any]]:
    """
    Group rows by ``group_by`` and reduce each bucket with ``metric``.

    Rows without a value for the group column are kept under
    ``EMPTY_GROUP_KEY`` so the bucket counts add up to ``len(rows)``.
    Output rows are sorted by the metric value, highest first.
    """
    buckets: Dict[str, List[Decimal]] = {}
    for row in rows:
        key = group_key(row.get(group_by))
        value = to_number(row.get(metric_column)) if metric_column else Decimal("0")
        buckets.setdefault(key, []).append(value)

    value_key = metric_key(metric, metric_column)
    result = []
    for key, values in buckets.items():
        if metric == ReportMetric.COUNT:
            metric_value = len(values)
        elif metric == ReportMetric.SUM:
            metric_value = float(sum(values, Decimal("0")))
        else:
            metric_value = float(sum(values, Decimal("0")) / len(values))
        result.append({
            group_by: key,
            value_key: metric_value,
            COUNT_KEY: len(values),
        })

    result.sort(key=lambda item: item[value_key], reverse=True)
    return result
