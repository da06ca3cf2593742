"""
KPI reconciliation diagnostics API routes.

Read-only audits of the KPI source tables for one fiscal year.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query
import structlog

from models.kpi import ZeroAnomaly, LabelVariantsResponse
from services.reconciliation_auditor import ReconciliationAuditor, parse_source
from routes.common import handle_error, get_reconciliation_auditor, current_fiscal_year

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get("/kpi/final-vs-computed")
async def get_final_vs_computed(
    fiscal_year: Optional[int] = Query(None, ge=2000, le=2100),
    auditor: ReconciliationAuditor = Depends(get_reconciliation_auditor),
):
    """
    final - computed per (month, channel) and per month TOTAL.

    Only non-zero differences are listed.
    """
    try:
        report = auditor.final_vs_computed(fiscal_year or current_fiscal_year())
        return report.to_dict()
    except Exception as e:
        return handle_error(e)


@router.get("/kpi/zero-anomalies", response_model=list[ZeroAnomaly])
async def get_zero_anomalies(
    source: str = Query("final", description="actuals, final or computed"),
    fiscal_year: Optional[int] = Query(None, ge=2000, le=2100),
    auditor: ReconciliationAuditor = Depends(get_reconciliation_auditor),
):
    """Months where a canonical channel is zero but the month has sales."""
    try:
        return auditor.zero_anomalies(parse_source(source), fiscal_year or current_fiscal_year())
    except Exception as e:
        return handle_error(e)


@router.get("/kpi/label-variants", response_model=LabelVariantsResponse)
async def get_label_variants(
    source: str = Query("final", description="actuals, final or computed"),
    fiscal_year: Optional[int] = Query(None, ge=2000, le=2100),
    auditor: ReconciliationAuditor = Depends(get_reconciliation_auditor),
):
    try:
        return auditor.label_variants(parse_source(source), fiscal_year or current_fiscal_year())
    except Exception as e:
        return handle_error(e)


@router.get("/health")
async def health_check():
    """Simple health check for the diagnostics service."""
    return {
        "status": "healthy",
        "service": "diagnostics"
    }
