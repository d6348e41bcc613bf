"""
Production traceability report schemas.

The structured report (ProductionReport -> ReportGroup -> ReportRunBlock ->
ReportMaterialLine) is the only input renderers receive. It carries no
wall-clock data, so the same snapshot and window always serialize identically.
"""

from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import ConfigDict, Field

from models.base import BaseSchema


class ReportFormat(str, Enum):
    """Document formats the renderers can produce."""
    PDF = "pdf"
    XLSX = "xlsx"


# ===================
# REQUEST
# ===================

class ReportRequest(BaseSchema):
    """
    Report request.

    Accepts both the short wire names ("from", "to", "userId") and the
    Python field names.
    """
    model_config = ConfigDict(populate_by_name=True)

    from_date: date = Field(
        default=date(2025, 6, 1),
        alias="from",
        description="First day of the report window (inclusive)"
    )
    to_date: date = Field(
        default=date(2025, 6, 30),
        alias="to",
        description="Last day of the report window (inclusive)"
    )
    tenant_id: Optional[str] = Field(
        None,
        alias="userId",
        description="Restrict every dataset to this owner"
    )
    format: ReportFormat = Field(
        default=ReportFormat.PDF,
        description="Document format"
    )
    store: bool = Field(
        default=False,
        description="Upload the document to Storage and return its URL"
    )


# ===================
# STRUCTURED REPORT
# ===================

class ReportMaterialLine(BaseSchema):
    """One raw material consumed by a production run."""

    raw_material_id: int
    raw_material_name: str
    unit: str
    lots_used: str = Field(..., description="Lot numbers joined with '/', or the no-eligible-lot marker")
    quantity_required: float


class ReportRunBlock(BaseSchema):
    """One production run with its material lines."""

    production_run_id: int
    formula_id: int
    formula_name: str
    batch_label: str
    quantity_produced: float
    produced_at: datetime
    lines: list[ReportMaterialLine] = []


class ReportGroup(BaseSchema):
    """Production runs sharing a batch label."""

    batch_label: str
    runs: list[ReportRunBlock] = []


class ProductionReport(BaseSchema):
    """Window-scoped, display-ready traceability report."""

    from_date: date
    to_date: date
    tenant_id: Optional[str] = None
    groups: list[ReportGroup] = []

    @property
    def run_count(self) -> int:
        return sum(len(g.runs) for g in self.groups)

    @property
    def is_empty(self) -> bool:
        return not self.groups


# ===================
# RESULT
# ===================

class StoredReport(BaseSchema):
    """Where a persisted document lives."""

    bucket: str
    path: str
    url: str


class ReportRunInfo(BaseSchema):
    """Diagnostics for a single report invocation."""

    renderer: str
    document_format: ReportFormat
    raw_materials_loaded: int = 0
    formulas_loaded: int = 0
    lots_loaded: int = 0
    production_runs_loaded: int = 0
    production_runs_in_window: int = 0
    groups: int = 0
    shortfalls: int = 0
    document_bytes: int = 0
    generated_at: datetime
    elapsed_ms: int = 0


class ReportGenerationResult(BaseSchema):
    """Rendered document plus the explicit run info for this invocation."""

    document: bytes
    content_type: str
    filename: str
    report: ProductionReport
    run_info: ReportRunInfo
    stored: Optional[StoredReport] = None
