"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    ValidationError,
    ExternalServiceError,

    # Reports
    InvalidReportWindowError,
    DataLoadError,
    RenderError,
    StorageError,
)

__all__ = [
    # Base
    "AppError",
    "ValidationError",
    "ExternalServiceError",

    # Reports
    "InvalidReportWindowError",
    "DataLoadError",
    "RenderError",
    "StorageError",
]
