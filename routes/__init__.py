"""
API route modules.

Each module defines routes for one domain area.
"""

from routes.reports import router as reports_router

__all__ = [
    "reports_router",
]
