"""
Business logic services.

Each service handles one step of report generation.
"""

from services.fifo_allocation_service import FifoAllocationService, get_fifo_allocation_service
from services.report_data_source import SupabaseReportDataSource, get_report_data_source
from services.report_renderer import ExcelReportRenderer, PdfReportRenderer, get_report_renderer
from services.report_storage_service import ReportStorageService, get_report_storage_service
from services.production_report_service import (
    ProductionReportService,
    get_production_report_service,
    ReportWindow,
)

__all__ = [
    "FifoAllocationService",
    "get_fifo_allocation_service",
    "SupabaseReportDataSource",
    "get_report_data_source",
    "PdfReportRenderer",
    "ExcelReportRenderer",
    "get_report_renderer",
    "ReportStorageService",
    "get_report_storage_service",
    "ProductionReportService",
    "get_production_report_service",
    "ReportWindow",
]
