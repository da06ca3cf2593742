"""
Annual channel plan.

Monthly sales targets per canonical channel for one fiscal year. A plan
is saved with the AtomicBatchWriter: either every target of the request
is stored or none is.
"""

from typing import Optional
import structlog
from supabase import Client

from config.database import fetch_all
from config.settings import Settings, get_settings
from models.kpi import (
    CHANNEL_ORDER,
    AnnualPlanRequest,
    AnnualPlanCell,
    AnnualPlanResponse,
)
from models.ledger import WriteResult
from services.channel_unifier import ChannelUnifier, to_month
from services.ledger_writer import AtomicBatchWriter
from utils.fiscal import fiscal_year_window, fiscal_year_label, iter_months, month_key
from exceptions import DatabaseError, ValidationError

logger = structlog.get_logger(__name__)

PLAN_TABLE = "kpi_annual_targets"
PLAN_CONFLICT_KEY = "fiscal_year_start,channel_code,month_date"


class AnnualPlanService:
    """Read and save annual channel targets."""

    def __init__(self, db: Client, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or get_settings()
        self.table = PLAN_TABLE
        self.unifier = ChannelUnifier(db)

    def get(self, fiscal_year_start: int) -> AnnualPlanResponse:
        """
        Targets and unified actuals for every canonical channel and month
        of the fiscal year.
        """
        start, end = fiscal_year_window(fiscal_year_start, self.settings.fiscal_year_start_month)

        try:
            rows = fetch_all(
                lambda: self.db.table(self.table)
                .select("channel_code, month_date, target_amount")
                .eq("fiscal_year_start", fiscal_year_start)
                .order("channel_code")
                .order("month_date")
            )
        except Exception as e:
            logger.error("annual_plan_read_failed", fiscal_year_start=fiscal_year_start, error=str(e))
            raise DatabaseError("select", str(e))

        targets = {}
        for row in rows:
            month = to_month(row.get("month_date"))
            if month is not None and row.get("target_amount") is not None:
                targets[(row["channel_code"], month)] = float(row["target_amount"])

        actuals = {
            (point.channel.value, point.month): point.amount
            for point in self.unifier.unify_range(start, end)
        }

        cells = [
            AnnualPlanCell(
                channel_code=channel,
                month=month,
                target_amount=targets.get((channel.value, month)),
                actual_amount=actuals.get((channel.value, month)),
            )
            for channel in CHANNEL_ORDER
            for month in iter_months(start, end)
        ]

        return AnnualPlanResponse(
            fiscal_year=fiscal_year_label(start, self.settings.fiscal_year_start_month),
            fiscal_year_start=fiscal_year_start,
            data=cells,
        )

    def save(self, request: AnnualPlanRequest) -> WriteResult:
        """
        Upsert all targets of a plan in one transaction.

        Raises:
            ValidationError: If a target month is outside the fiscal year
        """
        start, end = fiscal_year_window(request.fiscal_year_start, self.settings.fiscal_year_start_month)

        rows = []
        for target in request.targets:
            month = to_month(target.month)
            if month < start or month > end:
                raise ValidationError(
                    message="Target month is outside the fiscal year",
                    code="PLAN_MONTH_OUT_OF_RANGE",
                    details={
                        "month": month.isoformat(),
                        "fiscal_year_start": month_key(start),
                        "fiscal_year_end": month_key(end),
                    }
                )
            rows.append({
                "fiscal_year_start": request.fiscal_year_start,
                "channel_code": target.channel_code.value,
                "month_date": month_key(month),
                "target_amount": target.target_amount,
            })

        writer = AtomicBatchWriter(self.db, self.table, PLAN_CONFLICT_KEY)
        result = writer.write(rows, key=lambda row: f"{row['channel_code']}:{row['month_date']}")

        logger.info(
            "annual_plan_saved",
            fiscal_year_start=request.fiscal_year_start,
            targets=len(rows),
            rolled_back=result.rolled_back
        )
        return result
