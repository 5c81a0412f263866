"""
Base service class for Reports module

Provides common functionality for all report services including
tenant filtering, date bounds and store error wrapping.
"""

import logging
from datetime import date, datetime, time, timezone
from typing import Optional, Tuple
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions import QueryExecutionError

logger = logging.getLogger(__name__)

# dateTo is inclusive up to its last millisecond
END_OF_DAY = time(23, 59, 59, 999000)


def date_bounds(date_from: date, date_to: date) -> Tuple[datetime, datetime]:
    """Return the [start, end] datetimes covering both days completely (UTC)"""
    start = datetime.combine(date_from, time.min, tzinfo=timezone.utc)
    end = datetime.combine(date_to, END_OF_DAY, tzinfo=timezone.utc)
    return start, end


def store_error_message(error: SQLAlchemyError) -> str:
    """Underlying driver message of a store error"""
    orig = getattr(error, "orig", None)
    return str(orig) if orig is not None else str(error)


class BaseReportService:
    """Base service class for all report services"""

    def __init__(self, db: AsyncSession, tenant_id: UUID, branch_id: Optional[UUID] = None):
        self.db = db
        self.tenant_id = tenant_id
        self.branch_id = branch_id

    def _apply_date_filter(self, query, date_field, date_from: date, date_to: date):
        """Apply inclusive date range filter to a query"""
        start, end = date_bounds(date_from, date_to)
        return query.where(date_field >= start, date_field <= end)

    def _apply_branch_filter(self, query, branch_field, branch_id: Optional[UUID] = None):
        """Apply branch filter to a query"""
        target_branch_id = branch_id or self.branch_id
        if target_branch_id:
            return query.where(branch_field == target_branch_id)
        return query

    async def _execute(self, report: str, statement):
        """Execute a statement, re-raising store failures with the report name"""
        try:
            return await self.db.execute(statement)
        except SQLAlchemyError as e:
            reason = store_error_message(e)
            logger.error(f"Report '{report}' failed for tenant {self.tenant_id}: {reason}")
            raise QueryExecutionError(report, reason) from e
