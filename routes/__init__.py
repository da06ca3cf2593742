"""
API route modules.

Each module defines routes for one domain area.
"""

from routes.imports import router as imports_router
from routes.kpi import router as kpi_router
from routes.diagnostics import router as diagnostics_router

__all__ = [
    "imports_router",
    "kpi_router",
    "diagnostics_router",
]
