"""
KPI reconciliation schemas.

Channel sales arrive from three sources of decreasing authority
(actuals > final > computed). The unified series takes every
(channel, month) cell from exactly one of them.
"""

from datetime import date
from enum import Enum
from typing import Optional
from pydantic import Field

from models.base import BaseSchema


class ChannelCode(str, Enum):
    """Canonical sales channel buckets."""
    WEB = "WEB"
    WHOLESALE = "WHOLESALE"
    STORE = "STORE"
    SHOKU = "SHOKU"
    OTHER = "OTHER"


CHANNEL_ORDER = [ChannelCode.WEB, ChannelCode.WHOLESALE, ChannelCode.STORE, ChannelCode.SHOKU]


class KpiSource(str, Enum):
    """KPI source tables, most authoritative first."""
    ACTUALS = "actuals"
    FINAL = "final"
    COMPUTED = "computed"


class ChannelSeriesPoint(BaseSchema):
    """One cell of the unified monthly series."""

    channel: ChannelCode
    month: date
    amount: float
    source_table: str = Field(..., description="Table the amount was taken from")


class UnifiedSeriesResponse(BaseSchema):
    fiscal_year: str
    start_month: date
    end_month: date
    data: list[ChannelSeriesPoint]


# ===================
# SUMMARY
# ===================

class KpiSummaryRow(BaseSchema):
    """Month-over-month and year-to-date figures for one channel."""

    channel_code: str
    prev: float = 0
    curr: float = 0
    diff: float = 0
    diff_pct: Optional[float] = None
    ytd: float = 0


class KpiSummaryResponse(BaseSchema):
    month: date
    previous_month: date
    fiscal_year: str
    rows: list[KpiSummaryRow]
    total: KpiSummaryRow


# ===================
# ANNUAL PLAN
# ===================

class AnnualTarget(BaseSchema):
    channel_code: ChannelCode
    month: date
    target_amount: float = Field(..., ge=0)


class AnnualPlanRequest(BaseSchema):
    fiscal_year_start: int = Field(..., ge=2000, le=2100, description="Calendar year the fiscal year starts in")
    targets: list[AnnualTarget] = Field(default_factory=list)


class AnnualPlanCell(BaseSchema):
    channel_code: ChannelCode
    month: date
    target_amount: Optional[float] = None
    actual_amount: Optional[float] = None


class AnnualPlanResponse(BaseSchema):
    fiscal_year: str
    fiscal_year_start: int
    data: list[AnnualPlanCell]


# ===================
# AUDIT
# ===================

class DeltaCell(BaseSchema):
    """final - computed for one (month, channel), TOTAL included."""

    month: date
    channel: str
    final: float
    computed: float
    delta: float


class ZeroAnomaly(BaseSchema):
    """Canonical channel at zero while the month has sales."""

    month: date
    channel: ChannelCode
    month_total: float


class LabelVariantStats(BaseSchema):
    channel: ChannelCode
    raw_variants: list[str]
    total: float
    first_month: Optional[date] = None
    last_month: Optional[date] = None


class UnknownLabelMonth(BaseSchema):
    month: date
    labels: list[str]
    amount: float


class LabelVariantsResponse(BaseSchema):
    source: KpiSource
    channels: list[LabelVariantStats]
    unknown_by_month: list[UnknownLabelMonth]
