"""
KPI monthly summary.

Per canonical channel: previous month, current month, difference,
difference percentage and fiscal year-to-date, all taken from the
unified channel series. Exported as JSON or CSV.
"""

from datetime import date
from typing import Optional
import structlog
import pandas as pd
from supabase import Client

from config.settings import Settings, get_settings
from models.kpi import ChannelCode, CHANNEL_ORDER, KpiSummaryRow, KpiSummaryResponse
from services.channel_unifier import ChannelUnifier
from utils.fiscal import fiscal_year_start, fiscal_year_label, previous_month

logger = structlog.get_logger(__name__)

CSV_COLUMNS = ["channel_code", "prev", "curr", "diff", "diff_pct", "YTD"]


def _pct(diff: float, prev: float) -> Optional[float]:
    if not prev:
        return None
    return round(diff / prev * 100, 1)


def _format_amount(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.2f}"


class KpiSummaryService:
    """Month-over-month channel summary."""

    def __init__(self, db: Client, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.unifier = ChannelUnifier(db)

    def summarize(self, month: date) -> KpiSummaryResponse:
        """
        Summary for a report month.

        Args:
            month: First day of the report month

        Returns:
            KpiSummaryResponse with one row per channel and a total row
        """
        start_month = self.settings.fiscal_year_start_month
        fy_start = fiscal_year_start(month, start_month)
        prev_month = previous_month(month)

        points = self.unifier.unify_range(min(fy_start, prev_month), month)

        curr: dict[ChannelCode, float] = {}
        prev: dict[ChannelCode, float] = {}
        ytd: dict[ChannelCode, float] = {}
        for point in points:
            if point.month == month:
                curr[point.channel] = curr.get(point.channel, 0.0) + point.amount
            if point.month == prev_month:
                prev[point.channel] = prev.get(point.channel, 0.0) + point.amount
            if fy_start <= point.month <= month:
                ytd[point.channel] = ytd.get(point.channel, 0.0) + point.amount

        channels = list(CHANNEL_ORDER)
        if ChannelCode.OTHER in curr or ChannelCode.OTHER in prev or ChannelCode.OTHER in ytd:
            channels.append(ChannelCode.OTHER)

        rows = []
        for channel in channels:
            c = curr.get(channel, 0.0)
            p = prev.get(channel, 0.0)
            rows.append(KpiSummaryRow(
                channel_code=channel.value,
                prev=p,
                curr=c,
                diff=c - p,
                diff_pct=_pct(c - p, p),
                ytd=ytd.get(channel, 0.0),
            ))

        total_prev = sum(r.prev for r in rows)
        total_curr = sum(r.curr for r in rows)
        total = KpiSummaryRow(
            channel_code="TOTAL",
            prev=total_prev,
            curr=total_curr,
            diff=total_curr - total_prev,
            diff_pct=_pct(total_curr - total_prev, total_prev),
            ytd=sum(r.ytd for r in rows),
        )

        logger.info("kpi_summary_built", month=month.isoformat(), channels=len(rows))

        return KpiSummaryResponse(
            month=month,
            previous_month=prev_month,
            fiscal_year=fiscal_year_label(month, start_month),
            rows=rows,
            total=total,
        )

    @staticmethod
    def to_csv(summary: KpiSummaryResponse) -> str:
        """
        Render a summary as CSV.

        diff_pct is written as "12.5%" and left empty when the previous
        month is zero.
        """
        records = []
        for row in summary.rows + [summary.total]:
            records.append({
                "channel_code": row.channel_code,
                "prev": _format_amount(row.prev),
                "curr": _format_amount(row.curr),
                "diff": _format_amount(row.diff),
                "diff_pct": f"{row.diff_pct:.1f}%" if row.diff_pct is not None else "",
                "YTD": _format_amount(row.ytd),
            })

        df = pd.DataFrame(records, columns=CSV_COLUMNS)
        return df.to_csv(index=False, lineterminator="\n")
