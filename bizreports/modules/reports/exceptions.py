"""
Custom exceptions for the reports engine.

The engine raises these tagged errors and never hides store failures;
routers translate them into HTTP responses.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class ReportError(Exception):
    """Base exception for all reporting errors"""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class SourceNotFound(ReportError):
    """Raised when a config references a source that is not registered"""

    def __init__(self, source_id: str):
        super().__init__(
            f"Fuente de datos '{source_id}' no encontrada",
            "SOURCE_NOT_FOUND",
            {"source_id": source_id}
        )


class InvalidAggregationSpec(ReportError):
    """Raised when group_by/metric/metric_column do not form a legal pairing"""

    def __init__(self, reason: str, group_by: Optional[str] = None,
                 metric: Optional[str] = None, metric_column: Optional[str] = None):
        super().__init__(
            f"Agrupación inválida: {reason}",
            "INVALID_AGGREGATION",
            {"group_by": group_by, "metric": metric, "metric_column": metric_column}
        )


class QueryExecutionError(ReportError):
    """Raised when the store rejects a report query; keeps the original message"""

    def __init__(self, report: str, reason: str):
        self.reason = reason
        super().__init__(
            f"Error ejecutando el reporte '{report}': {reason}",
            "QUERY_EXECUTION_ERROR",
            {"report": report, "reason": reason}
        )


class SavedReportNotExecutable(ReportError):
    """Raised when a saved report has no builder configuration to run"""

    def __init__(self, report_id: Any, module: str):
        super().__init__(
            f"El reporte guardado del módulo '{module}' no se ejecuta con el constructor",
            "SAVED_REPORT_NOT_EXECUTABLE",
            {"report_id": str(report_id), "module": module}
        )


class SavedReportNotFound(ReportError):
    """Raised when a saved report does not exist for the tenant"""

    def __init__(self, report_id: Any):
        super().__init__(
            f"Reporte guardado '{report_id}' no encontrado",
            "SAVED_REPORT_NOT_FOUND",
            {"report_id": str(report_id)}
        )


def to_http_exception(error: ReportError) -> HTTPException:
    """HTTPException equivalent of an engine error, for the routers"""
    if isinstance(error, (SourceNotFound, SavedReportNotFound)):
        status_code = status.HTTP_404_NOT_FOUND
    elif isinstance(error, (InvalidAggregationSpec, SavedReportNotExecutable)):
        status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    else:
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    return HTTPException(
        status_code=status_code,
        detail={"message": error.message, "error_code": error.error_code, "details": error.details}
    )
