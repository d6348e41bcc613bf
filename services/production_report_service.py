"""
Production report service — FIFO traceability report for a date window.

Pipeline for one request:
1. LOAD raw materials, lots, formulas and every production run before the
   cutoff (the day after 'to'), concurrently
2. NORMALIZE rows into typed records
3. ALLOCATE the whole history to lots, oldest lot first
4. AGGREGATE the runs inside [from, to] by batch label, using the
   full-history allocation
5. RENDER the structured report, optionally STORE the document

Nothing is kept between requests. Each call returns its own ReportRunInfo.
"""

import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import date, datetime, time as dt_time, timedelta, timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo

import structlog

from config import settings
from exceptions import DataLoadError, InvalidReportWindowError
from models.production_report import (
    ProductionReport,
    ReportGenerationResult,
    ReportGroup,
    ReportMaterialLine,
    ReportRequest,
    ReportRunBlock,
    ReportRunInfo,
)
from parsers.production_records import (
    Formula,
    NormalizedRecords,
    ProductionRun,
    RawMaterial,
    normalize_records,
)
from services.fifo_allocation_service import (
    AllocationResult,
    FifoAllocationService,
    get_fifo_allocation_service,
)
from services.report_data_source import ReportDataSource, get_report_data_source
from services.report_renderer import ReportRenderer, get_report_renderer
from services.report_storage_service import ReportStorageService, get_report_storage_service

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ReportWindow:
    """Half-open interval [start, end) of local calendar days."""
    start: datetime
    end: datetime

    @classmethod
    def from_dates(cls, from_date: date, to_date: date, tz: tzinfo) -> "ReportWindow":
        """Whole days from 'from' through 'to', inclusive, in local time."""
        return cls(
            start=datetime.combine(from_date, dt_time.min, tzinfo=tz),
            end=datetime.combine(to_date + timedelta(days=1), dt_time.min, tzinfo=tz),
        )

    def contains(self, moment: Optional[datetime]) -> bool:
        return moment is not None and self.start <= moment < self.end


def material_display(raw_material_id: int, raw_materials_by_id: dict[int, RawMaterial]) -> tuple[str, str]:
    """(name, unit) for a raw material, with a placeholder when unknown."""
    material = raw_materials_by_id.get(raw_material_id)
    if material is None:
        return f"Material #{raw_material_id}", ""
    return material.name, material.unit


def formula_display(formula_id: int, formulas_by_id: dict[int, Formula]) -> str:
    formula = formulas_by_id.get(formula_id)
    return formula.name if formula is not None else f"Formula {formula_id}"


def build_report_groups(
    production_runs: list[ProductionRun],
    allocation: AllocationResult,
    raw_materials_by_id: dict[int, RawMaterial],
    formulas_by_id: dict[int, Formula],
    window: ReportWindow,
) -> list[ReportGroup]:
    """
    Group the runs inside the window by batch label.

    Ordering:
    - groups by their earliest run, ties by batch label
    - runs inside a group by production time (load order on ties)
    - material lines by raw material id

    Args:
        production_runs: Full history; runs outside the window are skipped
        allocation: Full-history allocation for those runs
        raw_materials_by_id: Names and units
        formulas_by_id: Formula names
        window: Local-calendar report window

    Returns:
        Ordered report groups
    """
    runs_by_batch: dict[str, list[ProductionRun]] = {}
    for run in production_runs:
        if not window.contains(run.produced_at):
            continue
        runs_by_batch.setdefault(run.batch_label, []).append(run)

    for runs in runs_by_batch.values():
        runs.sort(key=lambda run: run.produced_at)

    ordered_batches = sorted(
        runs_by_batch.items(),
        key=lambda item: (item[1][0].produced_at, item[0]),
    )

    groups = []
    for batch_label, runs in ordered_batches:
        blocks = []
        for run in runs:
            lines = []
            for raw_material_id in sorted(run.consumption):
                name, unit = material_display(raw_material_id, raw_materials_by_id)
                lines.append(ReportMaterialLine(
                    raw_material_id=raw_material_id,
                    raw_material_name=name,
                    unit=unit,
                    lots_used=allocation.get(run.id, raw_material_id).label,
                    quantity_required=run.consumption[raw_material_id],
                ))

            blocks.append(ReportRunBlock(
                production_run_id=run.id,
                formula_id=run.formula_id,
                formula_name=formula_display(run.formula_id, formulas_by_id),
                batch_label=run.batch_label,
                quantity_produced=run.quantity_produced,
                produced_at=run.produced_at,
                lines=lines,
            ))

        groups.append(ReportGroup(batch_label=batch_label, runs=blocks))

    return groups


@dataclass
class _AssembledReport:
    report: ProductionReport
    records: NormalizedRecords
    allocation: AllocationResult


class ProductionReportService:
    """
    Builds FIFO traceability reports.

    Collaborators are injectable; by default they come from the module
    singletons backed by Supabase.
    """

    def __init__(
        self,
        data_source: Optional[ReportDataSource] = None,
        allocator: Optional[FifoAllocationService] = None,
        storage: Optional[ReportStorageService] = None,
        tz: Optional[tzinfo] = None,
    ):
        self.data_source = data_source or get_report_data_source()
        self.allocator = allocator or get_fifo_allocation_service()
        self._storage = storage
        self.tz = tz or ZoneInfo(settings.report_timezone)

    @property
    def storage(self) -> ReportStorageService:
        if self._storage is None:
            self._storage = get_report_storage_service()
        return self._storage

    # ===================
    # DATA LOAD
    # ===================

    def load_records(self, tenant_id: Optional[str], cutoff_exclusive: datetime) -> NormalizedRecords:
        """
        Fetch the four datasets concurrently and normalize them.

        Raises:
            DataLoadError: If any dataset fails; nothing partial is returned
        """
        loaders = {
            "materias_primas": lambda: self.data_source.load_raw_materials(tenant_id),
            "lotes": lambda: self.data_source.load_lots(tenant_id),
            "formulas": lambda: self.data_source.load_formulas(tenant_id),
            "producoes": lambda: self.data_source.load_production_runs(tenant_id, cutoff_exclusive),
        }

        with ThreadPoolExecutor(max_workers=len(loaders)) as executor:
            futures = {name: executor.submit(loader) for name, loader in loaders.items()}

        rows: dict[str, list[dict]] = {}
        failures: dict[str, str] = {}
        for name, future in futures.items():
            try:
                rows[name] = future.result()
            except Exception as e:
                failures[name] = str(e)

        if failures:
            logger.error(
                "report_data_load_failed",
                tenant_id=tenant_id,
                failures=failures,
            )
            raise DataLoadError(
                sorted(failures),
                "; ".join(f"{name}: {error}" for name, error in sorted(failures.items())),
            )

        logger.info(
            "report_data_loaded",
            tenant_id=tenant_id,
            raw_materials=len(rows["materias_primas"]),
            lots=len(rows["lotes"]),
            formulas=len(rows["formulas"]),
            production_runs=len(rows["producoes"]),
        )

        return normalize_records(
            raw_materials=rows["materias_primas"],
            formulas=rows["formulas"],
            production_runs=rows["producoes"],
            lots=rows["lotes"],
            tz=self.tz,
        )

    # ===================
    # REPORT
    # ===================

    def _assemble(self, request: ReportRequest) -> _AssembledReport:
        if request.from_date > request.to_date:
            raise InvalidReportWindowError(
                request.from_date.isoformat(),
                request.to_date.isoformat(),
            )

        window = ReportWindow.from_dates(request.from_date, request.to_date, self.tz)
        records = self.load_records(request.tenant_id, window.end)

        allocation = self.allocator.allocate(records.production_runs, records.lots)

        groups = build_report_groups(
            records.production_runs,
            allocation,
            records.raw_materials_by_id,
            records.formulas_by_id,
            window,
        )
        report = ProductionReport(
            from_date=request.from_date,
            to_date=request.to_date,
            tenant_id=request.tenant_id,
            groups=groups,
        )

        logger.info(
            "report_aggregated",
            from_date=request.from_date.isoformat(),
            to_date=request.to_date.isoformat(),
            groups=len(groups),
            runs_in_window=report.run_count,
        )

        return _AssembledReport(report=report, records=records, allocation=allocation)

    def build_report(self, request: ReportRequest) -> ProductionReport:
        """
        Build the structured report without rendering it.

        Raises:
            InvalidReportWindowError: If 'from' is after 'to'
            DataLoadError: If any dataset cannot be fetched
        """
        return self._assemble(request).report

    def generate(
        self,
        request: ReportRequest,
        renderer: Optional[ReportRenderer] = None,
        filename_prefix: str = "fifo",
    ) -> ReportGenerationResult:
        """
        Build, render and optionally store a report.

        Args:
            request: Window, tenant, format and storage choice
            renderer: Override the renderer picked from request.format
            filename_prefix: Leading part of the download name

        Returns:
            ReportGenerationResult with the document and its run info

        Raises:
            InvalidReportWindowError: If 'from' is after 'to'
            DataLoadError: If any dataset cannot be fetched
            RenderError: If rendering fails
            StorageError: If storage was requested and the upload fails
        """
        started = time.perf_counter()
        renderer = renderer or get_report_renderer(request.format)

        logger.info(
            "report_generation_started",
            from_date=request.from_date.isoformat(),
            to_date=request.to_date.isoformat(),
            tenant_id=request.tenant_id,
            format=request.format.value,
            store=request.store,
        )

        assembled = self._assemble(request)
        report = assembled.report

        document = renderer.render(report)
        logger.info(
            "report_rendered",
            renderer=renderer.name,
            size_bytes=len(document),
        )

        period = f"{request.from_date.isoformat()}_a_{request.to_date.isoformat()}"
        stored = None
        if request.store:
            stored = self.storage.persist(
                document,
                location_hint=f"personalizado_{period}",
                content_type=renderer.content_type,
                extension=renderer.extension,
            )

        records = assembled.records
        run_info = ReportRunInfo(
            renderer=renderer.name,
            document_format=request.format,
            raw_materials_loaded=len(records.raw_materials_by_id),
            formulas_loaded=len(records.formulas_by_id),
            lots_loaded=len(records.lots),
            production_runs_loaded=len(records.production_runs),
            production_runs_in_window=report.run_count,
            groups=len(report.groups),
            shortfalls=assembled.allocation.shortfall_count,
            document_bytes=len(document),
            generated_at=datetime.now(timezone.utc),
            elapsed_ms=int((time.perf_counter() - started) * 1000),
        )

        logger.info("report_generation_complete", **run_info.model_dump(mode="json"))

        return ReportGenerationResult(
            document=document,
            content_type=renderer.content_type,
            filename=f"{filename_prefix}_{period}.{renderer.extension}",
            report=report,
            run_info=run_info,
            stored=stored,
        )


# Singleton
_production_report_service: Optional[ProductionReportService] = None


def get_production_report_service() -> ProductionReportService:
    """Get or create ProductionReportService instance."""
    global _production_report_service
    if _production_report_service is None:
        _production_report_service = ProductionReportService()
    return _production_report_service
