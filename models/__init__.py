"""
Pydantic models for validation and serialization.
"""

from models.base import BaseSchema
from models.production_report import (
    ReportFormat,
    ReportRequest,
    ReportMaterialLine,
    ReportRunBlock,
    ReportGroup,
    ProductionReport,
    StoredReport,
    ReportRunInfo,
    ReportGenerationResult,
)

__all__ = [
    # Base
    "BaseSchema",
    # Production report
    "ReportFormat",
    "ReportRequest",
    "ReportMaterialLine",
    "ReportRunBlock",
    "ReportGroup",
    "ProductionReport",
    "StoredReport",
    "ReportRunInfo",
    "ReportGenerationResult",
]
