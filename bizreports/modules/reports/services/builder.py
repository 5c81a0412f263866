"""
Report Builder Service

Compiles a declarative ReportConfig into a tenant-scoped query against one
of the registered sources, executes it and optionally aggregates the rows.
"""

import logging
from typing import Any, Dict, List
from uuid import UUID

from sqlalchemy import Table, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from bizreports.database.database import Base
# Model modules register the source tables in Base.metadata
import bizreports.modules.branches.models  # noqa: F401
import bizreports.modules.categories.models  # noqa: F401
import bizreports.modules.products.models  # noqa: F401
import bizreports.modules.reservations.models  # noqa: F401
import bizreports.modules.sales.models  # noqa: F401

from .aggregation import aggregate_rows, should_aggregate, validate_aggregation
from .base import BaseReportService
from .filters import compile_filters, date_range_clause, resolve_column
from ..exceptions import QueryExecutionError, SourceNotFound
from ..schemas import ReportConfig, ReportResult, ReportSource
from ..sources import get_source

logger = logging.getLogger(__name__)

TENANT_COLUMN = "tenant_id"


def normalize_result(
    rows: List[Dict[str, Any]],
    requested_columns: List[str],
    total: int,
    aggregated: bool
) -> ReportResult:
    """Final ReportResult; columns come from the first row when there is one"""
    columns = list(rows[0].keys()) if rows else list(requested_columns)
    return ReportResult(columns=columns, rows=rows, total=total, aggregated=aggregated)


class ReportBuilderService(BaseReportService):
    """Service for executing ad-hoc report configurations"""

    def __init__(self, db: AsyncSession, tenant_id: UUID):
        super().__init__(db, tenant_id)

    def _get_table(self, source: ReportSource) -> Table:
        table = Base.metadata.tables.get(source.table)
        if table is None:
            raise QueryExecutionError(source.id, f'relation "{source.table}" does not exist')
        return table

    def _select_columns(self, source: ReportSource, table: Table, config: ReportConfig) -> List:
        keys = list(config.columns) or [column_def.key for column_def in source.columns]
        if should_aggregate(config):
            # The reducer needs the grouping and metric values even when not displayed
            for extra in (config.group_by, config.metric_column):
                if extra and extra not in keys:
                    keys.append(extra)
        return [resolve_column(source, table, key) for key in keys]

    async def execute_report(self, config: ReportConfig) -> ReportResult:
        """
        Execute a report configuration.

        Rows are scoped to the service tenant, filtered, bounded by the
        source date field (end day included), ordered most recent first and
        capped at ``config.limit``. When grouping is requested the capped
        rows are aggregated in memory, so groups reflect at most ``limit``
        rows.
        """
        source = get_source(config.source_id)
        if source is None:
            raise SourceNotFound(config.source_id)

        validate_aggregation(source, config)

        table = self._get_table(source)
        conditions = [table.c[TENANT_COLUMN] == self.tenant_id]
        conditions.extend(compile_filters(source, table, config.filters))
        conditions.extend(date_range_clause(source, table, config.date_from, config.date_to))

        date_column = resolve_column(source, table, source.date_field)
        query = (
            select(*self._select_columns(source, table, config))
            .where(*conditions)
            .order_by(date_column.desc(), *[pk.asc() for pk in table.primary_key.columns])
            .limit(config.limit)
        )
        count_query = select(func.count()).select_from(table).where(*conditions)

        logger.debug(
            f"Executing report source={source.id} tenant={self.tenant_id} "
            f"filters={len(config.filters)} limit={config.limit}"
        )

        total = (await self._execute(source.id, count_query)).scalar_one()
        result = await self._execute(source.id, query)
        rows = [dict(row) for row in result.mappings().all()]

        if should_aggregate(config):
            grouped = aggregate_rows(rows, config.group_by, config.metric, config.metric_column)
            return normalize_result(grouped, config.columns, total=len(grouped), aggregated=True)

        return normalize_result(rows, config.columns, total=total, aggregated=False)


async def execute_report(db: AsyncSession, tenant_id: UUID, config: ReportConfig) -> ReportResult:
    """Shortcut for ``ReportBuilderService(db, tenant_id).execute_report(config)``"""
    return await ReportBuilderService(db, tenant_id).execute_report(config)
