"""
Services package for Reports module

Exports all report service classes for easy importing.
"""

from .builder import ReportBuilderService, execute_report
from .inventory import InventoryReportService, classify_stock
from .saved import SavedReportService

__all__ = [
    "ReportBuilderService",
    "InventoryReportService",
    "SavedReportService",
    "execute_report",
    "classify_stock"
]
