"""
Shared route helpers: error conversion and service dependencies.

Services are built per request around the lifespan-owned client
returned by get_db.
"""

from datetime import date
from fastapi import Depends
from fastapi.responses import JSONResponse
import structlog
from supabase import Client

from config.database import get_db
from config.settings import get_settings
from services.sales_import_service import SalesImportService
from services.channel_unifier import ChannelUnifier
from services.kpi_summary_service import KpiSummaryService
from services.annual_plan_service import AnnualPlanService
from services.reconciliation_auditor import ReconciliationAuditor
from utils.fiscal import fiscal_year_start
from exceptions import AppError

logger = structlog.get_logger(__name__)


# ===================
# EXCEPTION HANDLER
# ===================

def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


# ===================
# DEPENDENCIES
# ===================

def get_sales_import_service(db: Client = Depends(get_db)) -> SalesImportService:
    return SalesImportService(db)


def get_channel_unifier(db: Client = Depends(get_db)) -> ChannelUnifier:
    return ChannelUnifier(db)


def get_kpi_summary_service(db: Client = Depends(get_db)) -> KpiSummaryService:
    return KpiSummaryService(db)


def get_annual_plan_service(db: Client = Depends(get_db)) -> AnnualPlanService:
    return AnnualPlanService(db)


def get_reconciliation_auditor(db: Client = Depends(get_db)) -> ReconciliationAuditor:
    return ReconciliationAuditor(db)


def current_fiscal_year() -> int:
    """Calendar year the current fiscal year started in."""
    start_month = get_settings().fiscal_year_start_month
    return fiscal_year_start(date.today().replace(day=1), start_month).year
