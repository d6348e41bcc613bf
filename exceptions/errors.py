"""
Custom exception classes for the application.

Each report phase (data load, render, storage) has its own error so callers
can tell which step failed.
"""

from typing import Optional, Any
from datetime import datetime, timezone


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "DATA_LOAD_ERROR")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class ExternalServiceError(AppError):
    """External service failure (503)."""

    def __init__(
        self,
        service: str,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code or f"{service.upper()}_ERROR",
            message=message,
            status_code=503,
            details={"service": service, **(details or {})}
        )


# ===================
# REPORT ERRORS
# ===================

class InvalidReportWindowError(ValidationError):
    """Report window ends before it starts."""

    def __init__(self, from_date: str, to_date: str):
        super().__init__(
            code="INVALID_REPORT_WINDOW",
            message="Report 'from' date must not be after 'to' date",
            details={"from": from_date, "to": to_date}
        )


class DataLoadError(ExternalServiceError):
    """One or more source datasets could not be fetched."""

    def __init__(self, datasets: list[str], message: str):
        super().__init__(
            service="supabase",
            code="DATA_LOAD_ERROR",
            message=f"Failed to load report data: {message}",
            details={"phase": "data_load", "datasets": datasets}
        )


class RenderError(AppError):
    """Document rendering failed (500)."""

    def __init__(self, renderer: str, message: str):
        super().__init__(
            code="RENDER_ERROR",
            message=f"Failed to render report: {message}",
            status_code=500,
            details={"phase": "render", "renderer": renderer}
        )


class StorageError(ExternalServiceError):
    """Uploading the rendered document failed."""

    def __init__(self, bucket: str, path: str, message: str):
        super().__init__(
            service="storage",
            code="STORAGE_ERROR",
            message=f"Failed to store report: {message}",
            details={"phase": "storage", "bucket": bucket, "path": path}
        )
