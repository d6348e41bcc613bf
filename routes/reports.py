"""
Production report API routes.

GET  /api/reports/fifo            Render inline (use from a <form target="_blank">)
POST /api/reports/fifo            Render from a JSON body (use from fetch())
GET  /api/reports/personalizado   Same as GET /fifo, named personalizado_<from>_a_<to>
POST /api/reports/personalizado   Same as POST /fifo, named personalizado_<from>_a_<to>
POST /api/reports/fifo/preview    Structured report as JSON, no rendering
GET  /api/reports/renderer-check  Render an empty report to check the renderer

Errors use the standard {"error": {...}} format; details.phase names the
step that failed (data_load, render, storage).
"""

import time
from datetime import date
from typing import Optional

import structlog
from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse, RedirectResponse, Response

from exceptions import AppError
from models.production_report import (
    ProductionReport,
    ReportFormat,
    ReportGenerationResult,
    ReportRequest,
)
from services.production_report_service import get_production_report_service
from services.report_renderer import get_report_renderer

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/reports", tags=["Reports"])


# ===================
# EXCEPTION HANDLER
# ===================

def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(status_code=e.status_code, content=e.to_dict())
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
            }
        },
    )


def _document_response(result: ReportGenerationResult, extra_headers: Optional[dict] = None) -> Response:
    headers = {"Content-Disposition": f'inline; filename="{result.filename}"'}
    headers.update(extra_headers or {})
    return Response(content=result.document, media_type=result.content_type, headers=headers)


def _render_inline(request: ReportRequest, filename_prefix: str) -> Response:
    """Document inline, or a redirect to its public URL when stored."""
    result = get_production_report_service().generate(request, filename_prefix=filename_prefix)

    if result.stored:
        return RedirectResponse(result.stored.url, status_code=307)

    return _document_response(result)


def _render_from_body(request: Optional[ReportRequest], filename_prefix: str) -> Response:
    """Document with X-Render-Time, or {"ok", "url", "ms"} when stored."""
    started = time.perf_counter()
    result = get_production_report_service().generate(
        request or ReportRequest(),
        filename_prefix=filename_prefix,
    )
    elapsed_ms = int((time.perf_counter() - started) * 1000)

    if result.stored:
        return JSONResponse(content={"ok": True, "url": result.stored.url, "ms": elapsed_ms})

    return _document_response(result, {"X-Render-Time": f"{elapsed_ms}ms"})


# ===================
# ROUTES
# ===================

@router.get("/fifo")
async def get_fifo_report(
    from_date: date = Query(date(2025, 6, 1), alias="from", description="First day (YYYY-MM-DD)"),
    to_date: date = Query(date(2025, 6, 30), alias="to", description="Last day (YYYY-MM-DD)"),
    tenant_id: Optional[str] = Query(None, alias="userId", description="Owner filter"),
    format: ReportFormat = Query(ReportFormat.PDF, description="Document format"),
    store: bool = Query(False, description="Store the document and redirect to it"),
):
    """
    Render the FIFO traceability report for a window.

    Returns the document inline, or redirects to its public URL when
    store=true.
    """
    try:
        request = ReportRequest(
            from_date=from_date,
            to_date=to_date,
            tenant_id=tenant_id,
            format=format,
            store=store,
        )
        return _render_inline(request, "fifo")
    except Exception as e:
        return handle_error(e)


@router.post("/fifo")
async def post_fifo_report(request: Optional[ReportRequest] = None):
    """
    Render the FIFO traceability report from a JSON body.

    Body: {"from": "YYYY-MM-DD", "to": "YYYY-MM-DD", "userId"?, "format"?, "store"?}
    Missing fields fall back to the defaults of ReportRequest.
    """
    try:
        return _render_from_body(request, "fifo")
    except Exception as e:
        return handle_error(e)


@router.get("/personalizado")
async def get_custom_report(
    from_date: date = Query(date(2025, 6, 1), alias="from", description="First day (YYYY-MM-DD)"),
    to_date: date = Query(date(2025, 6, 30), alias="to", description="Last day (YYYY-MM-DD)"),
    tenant_id: Optional[str] = Query(None, alias="userId", description="Owner filter"),
    format: ReportFormat = Query(ReportFormat.PDF, description="Document format"),
    store: bool = Query(False, description="Store the document and redirect to it"),
):
    """Same report as GET /fifo, downloaded as personalizado_<from>_a_<to>."""
    try:
        request = ReportRequest(
            from_date=from_date,
            to_date=to_date,
            tenant_id=tenant_id,
            format=format,
            store=store,
        )
        return _render_inline(request, "personalizado")
    except Exception as e:
        return handle_error(e)


@router.post("/personalizado")
async def post_custom_report(request: Optional[ReportRequest] = None):
    """Same report as POST /fifo, downloaded as personalizado_<from>_a_<to>."""
    try:
        return _render_from_body(request, "personalizado")
    except Exception as e:
        return handle_error(e)


@router.post("/fifo/preview", response_model=ProductionReport)
async def preview_fifo_report(request: Optional[ReportRequest] = None):
    """Return the structured report that would be rendered."""
    try:
        return get_production_report_service().build_report(request or ReportRequest())
    except Exception as e:
        return handle_error(e)


@router.get("/renderer-check")
async def renderer_check(
    format: ReportFormat = Query(ReportFormat.PDF, description="Renderer to check"),
):
    """Render an empty report to confirm the renderer works in this runtime."""
    started = time.perf_counter()
    try:
        renderer = get_report_renderer(format)
        today = date.today()
        document = renderer.render(ProductionReport(from_date=today, to_date=today))
        return {
            "ok": True,
            "renderer": renderer.name,
            "format": format.value,
            "bytes": len(document),
            "ms": int((time.perf_counter() - started) * 1000),
        }
    except Exception as e:
        return handle_error(e)
