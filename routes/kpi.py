"""
KPI API routes.

Unified monthly channel series, month-over-month summary (JSON and CSV)
and the annual channel plan.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
import structlog

from config.settings import get_settings
from models.kpi import (
    ChannelSeriesPoint,
    UnifiedSeriesResponse,
    KpiSummaryResponse,
    AnnualPlanRequest,
    AnnualPlanResponse,
)
from models.ledger import WriteResult
from services.channel_unifier import ChannelUnifier
from services.kpi_summary_service import KpiSummaryService
from services.annual_plan_service import AnnualPlanService
from routes.common import (
    handle_error,
    get_channel_unifier,
    get_kpi_summary_service,
    get_annual_plan_service,
    current_fiscal_year,
)
from utils.fiscal import parse_month, fiscal_year_window, fiscal_year_label

logger = structlog.get_logger(__name__)

router = APIRouter()


# ===================
# UNIFIED SERIES
# ===================

@router.get("/unified", response_model=list[ChannelSeriesPoint])
async def get_unified_month(
    month: str = Query(..., description="YYYY-MM"),
    unifier: ChannelUnifier = Depends(get_channel_unifier),
):
    """
    Unified channel amounts for one month.

    Each cell names the source table it was taken from.
    """
    try:
        return unifier.unify(parse_month(month))
    except Exception as e:
        return handle_error(e)


@router.get("/unified/fiscal-year", response_model=UnifiedSeriesResponse)
async def get_unified_fiscal_year(
    fiscal_year: Optional[int] = Query(None, ge=2000, le=2100, description="Calendar year the fiscal year starts in"),
    unifier: ChannelUnifier = Depends(get_channel_unifier),
):
    try:
        start_month = get_settings().fiscal_year_start_month
        start, end = fiscal_year_window(fiscal_year or current_fiscal_year(), start_month)
        return UnifiedSeriesResponse(
            fiscal_year=fiscal_year_label(start, start_month),
            start_month=start,
            end_month=end,
            data=unifier.unify_range(start, end),
        )
    except Exception as e:
        return handle_error(e)


# ===================
# SUMMARY
# ===================

@router.get("/summary", response_model=KpiSummaryResponse)
async def get_summary(
    month: str = Query(..., description="YYYY-MM"),
    service: KpiSummaryService = Depends(get_kpi_summary_service),
):
    """prev, curr, diff, diff_pct and YTD per channel."""
    try:
        return service.summarize(parse_month(month))
    except Exception as e:
        return handle_error(e)


@router.get("/summary.csv")
async def export_summary_csv(
    month: str = Query(..., description="YYYY-MM"),
    service: KpiSummaryService = Depends(get_kpi_summary_service),
):
    """
    Download the monthly summary as CSV.

    Columns: channel_code, prev, curr, diff, diff_pct, YTD
    """
    try:
        report_month = parse_month(month)
        csv_text = service.to_csv(service.summarize(report_month))

        filename = f"kpi_summary_{report_month.strftime('%Y-%m')}.csv"
        logger.info("kpi_summary_exported", month=report_month.isoformat())

        return Response(
            content=csv_text,
            media_type="text/csv; charset=utf-8",
            headers={"Content-Disposition": f"attachment; filename={filename}"}
        )
    except Exception as e:
        return handle_error(e)


# ===================
# ANNUAL PLAN
# ===================

@router.get("/annual-plan", response_model=AnnualPlanResponse)
async def get_annual_plan(
    fiscal_year_start: Optional[int] = Query(None, ge=2000, le=2100),
    service: AnnualPlanService = Depends(get_annual_plan_service),
):
    try:
        return service.get(fiscal_year_start or current_fiscal_year())
    except Exception as e:
        return handle_error(e)


@router.post("/annual-plan", response_model=WriteResult)
async def save_annual_plan(
    data: AnnualPlanRequest,
    service: AnnualPlanService = Depends(get_annual_plan_service),
):
    """Save all targets of a plan in one transaction."""
    try:
        return service.save(data)
    except Exception as e:
        return handle_error(e)
