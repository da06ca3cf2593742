"""
Channel unifier.

Three tables report monthly sales per channel: actuals (joined to the
channel dimension), final and computed. Their channel labels are free text
("ＥＣ", "卸売", "直営店", ...) and are normalized into the canonical
buckets WEB, WHOLESALE, STORE, SHOKU and OTHER.

Each unified (channel, month) cell is taken from exactly one source, by
priority:

    WEB        ledger web amount (if non-zero) > actuals > final > computed
    WHOLESALE  wholesale_sales + oem_sales      > actuals > final > computed
    others     actuals > final > computed

Rows of one source that land in the same cell are summed. Amounts from
different sources are never added together.
"""

from datetime import date
import re
from typing import Optional, Union
import structlog
import pandas as pd
from supabase import Client

from config.database import fetch_all
from models.kpi import ChannelCode, CHANNEL_ORDER, KpiSource, ChannelSeriesPoint
from services.ledger_writer import LEDGER_TABLE
from utils.fiscal import add_months, month_key
from utils.text_utils import normalize_label
from exceptions import DatabaseError

logger = structlog.get_logger(__name__)

ACTUALS_TABLE = "kpi_sales_actuals_monthly"
CHANNEL_DIM_TABLE = "kpi_channel_dim"
FINAL_TABLE = "kpi_sales_monthly_final"
COMPUTED_TABLE = "kpi_sales_monthly_computed"
WHOLESALE_TABLE = "wholesale_sales"
OEM_TABLE = "oem_sales"
WHOLESALE_SOURCE = f"{WHOLESALE_TABLE}+{OEM_TABLE}"

SOURCE_TABLES = {
    KpiSource.ACTUALS: ACTUALS_TABLE,
    KpiSource.FINAL: FINAL_TABLE,
    KpiSource.COMPUTED: COMPUTED_TABLE,
}

# Checked in order; first hit wins
_CHANNEL_PATTERNS = [
    (ChannelCode.WEB, re.compile(r"WEB|(?<![A-Z])EC(?![A-Z])|ONLINE|オンラ|ネット")),
    (ChannelCode.WHOLESALE, re.compile(r"WHOLE|卸|OEM")),
    (ChannelCode.STORE, re.compile(r"STORE|店舗|直営|店頭|SHOP")),
    (ChannelCode.SHOKU, re.compile(r"SHOKU|道の駅")),
]

_CHANNEL_SORT = {code: index for index, code in enumerate(CHANNEL_ORDER + [ChannelCode.OTHER])}

Cells = dict[tuple[ChannelCode, date], float]


def normalize_channel_label(raw: Optional[str]) -> ChannelCode:
    """
    Map a raw channel label to its canonical bucket.

    - "web" → WEB
    - "ＥＣ" → WEB
    - "卸売" → WHOLESALE
    - "直営店" → STORE
    - "道の駅 A" → SHOKU
    - anything else → OTHER
    """
    label = normalize_label(raw)
    if not label:
        return ChannelCode.OTHER

    for code, pattern in _CHANNEL_PATTERNS:
        if pattern.search(label):
            return code
    return ChannelCode.OTHER


def to_month(value: Union[str, date, None]) -> Optional[date]:
    """First day of the month of a date or ISO date string."""
    if value is None:
        return None
    if isinstance(value, date):
        return date(value.year, value.month, 1)
    text = str(value)
    if len(text) < 7:
        return None
    try:
        return date(int(text[0:4]), int(text[5:7]), 1)
    except ValueError:
        return None


def _to_float(value) -> float:
    if value is None:
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


class KpiSourceReader:
    """
    Reads the KPI source tables as normalized rows.

    Every row is {month, raw_label, channel, amount}.
    """

    def __init__(self, db: Client):
        self.db = db

    def fetch(self, source: KpiSource, start: date, end: date) -> list[dict]:
        """Rows of one source between start and end months, inclusive."""
        if source == KpiSource.ACTUALS:
            rows = self._fetch_actuals(start, end)
        else:
            rows = self._select(
                SOURCE_TABLES[source],
                "fiscal_month, channel_code, actual_amount_yen",
                "fiscal_month",
                start,
                end,
                tiebreak="channel_code",
            )

        normalized = []
        for row in rows:
            month = to_month(row.get("fiscal_month"))
            if month is None:
                continue
            raw_label = row.get("channel_code") or ""
            normalized.append({
                "month": month,
                "raw_label": raw_label,
                "channel": normalize_channel_label(raw_label),
                "amount": _to_float(row.get("actual_amount_yen")),
            })
        return normalized

    def cells(self, source: KpiSource, start: date, end: date) -> Cells:
        """Amounts of one source summed per (channel, month)."""
        cells: Cells = {}
        for row in self.fetch(source, start, end):
            key = (row["channel"], row["month"])
            cells[key] = cells.get(key, 0.0) + row["amount"]
        return cells

    def web_ledger_amounts(self, start: date, end: date) -> dict[date, float]:
        """Sum of every channel amount column of the sales ledger, per month."""
        rows = self._select(LEDGER_TABLE, "*", "report_month", start, end, tiebreak="product_id")

        amounts: dict[date, float] = {}
        for row in rows:
            month = to_month(row.get("report_month"))
            if month is None:
                continue
            total = sum(
                _to_float(value)
                for column, value in row.items()
                if column.endswith("_amount")
            )
            amounts[month] = amounts.get(month, 0.0) + total
        return amounts

    def wholesale_amounts(self, start: date, end: date) -> dict[date, float]:
        """
        Wholesale (quantity x unit_price) and OEM (amount) per month,
        full-outer-joined on month and summed.
        """
        wholesale = pd.DataFrame(
            self._select(
                WHOLESALE_TABLE, "sale_date, quantity, unit_price", "sale_date", start, end, tiebreak="id"
            ),
            columns=["sale_date", "quantity", "unit_price"],
        )
        oem = pd.DataFrame(
            self._select(OEM_TABLE, "sale_date, amount", "sale_date", start, end, tiebreak="id"),
            columns=["sale_date", "amount"],
        )

        wholesale["month"] = wholesale["sale_date"].map(to_month).astype(object)
        wholesale["wholesale_amount"] = (
            pd.to_numeric(wholesale["quantity"], errors="coerce").fillna(0)
            * pd.to_numeric(wholesale["unit_price"], errors="coerce").fillna(0)
        )
        oem["month"] = oem["sale_date"].map(to_month).astype(object)
        oem["oem_amount"] = pd.to_numeric(oem["amount"], errors="coerce").fillna(0)

        merged = pd.merge(
            wholesale.dropna(subset=["month"]).groupby("month")["wholesale_amount"].sum().reset_index(),
            oem.dropna(subset=["month"]).groupby("month")["oem_amount"].sum().reset_index(),
            on="month",
            how="outer",
        ).fillna(0)

        return {
            row["month"]: float(row["wholesale_amount"] + row["oem_amount"])
            for row in merged.to_dict("records")
        }

    def _fetch_actuals(self, start: date, end: date) -> list[dict]:
        actuals = self._select(
            ACTUALS_TABLE,
            "fiscal_month, channel_id, actual_amount_yen",
            "fiscal_month",
            start,
            end,
            tiebreak="channel_id",
        )

        try:
            dim = fetch_all(
                lambda: self.db.table(CHANNEL_DIM_TABLE)
                .select("channel_id, channel_code")
                .order("channel_id")
            )
        except Exception as e:
            logger.error("channel_dim_read_failed", error=str(e))
            raise DatabaseError("select", str(e))

        codes = {row["channel_id"]: row.get("channel_code") for row in dim}

        joined = []
        for row in actuals:
            code = codes.get(row.get("channel_id"))
            if code is None:
                continue  # Inner join on the channel dimension
            joined.append({**row, "channel_code": code})
        return joined

    def _select(
        self,
        table: str,
        columns: str,
        month_column: str,
        start: date,
        end: date,
        tiebreak: str,
    ) -> list[dict]:
        """Rows with month_column in [start, end], read page by page."""
        def query():
            return (
                self.db.table(table)
                .select(columns)
                .gte(month_column, month_key(start))
                .lt(month_column, month_key(add_months(end, 1)))
                .order(month_column)
                .order(tiebreak)
            )

        try:
            return fetch_all(query)
        except Exception as e:
            logger.error("kpi_source_read_failed", table=table, error=str(e))
            raise DatabaseError("select", str(e))


class ChannelUnifier:
    """Builds the unified monthly channel series."""

    def __init__(self, db: Client):
        self.reader = KpiSourceReader(db)

    def unify(self, month: date) -> list[ChannelSeriesPoint]:
        """Unified cells for one month."""
        return self.unify_range(month, month)

    def unify_range(self, start: date, end: date) -> list[ChannelSeriesPoint]:
        """
        Unified cells for every month from start to end, inclusive.

        Returns:
            Points sorted by month, then WEB, WHOLESALE, STORE, SHOKU, OTHER
        """
        web = {
            (ChannelCode.WEB, month): amount
            for month, amount in self.reader.web_ledger_amounts(start, end).items()
            if amount != 0
        }
        wholesale = {
            (ChannelCode.WHOLESALE, month): amount
            for month, amount in self.reader.wholesale_amounts(start, end).items()
        }

        layers: list[tuple[str, Cells]] = [
            (LEDGER_TABLE, web),
            (WHOLESALE_SOURCE, wholesale),
        ]
        for source in (KpiSource.ACTUALS, KpiSource.FINAL, KpiSource.COMPUTED):
            layers.append((SOURCE_TABLES[source], self.reader.cells(source, start, end)))

        points: dict[tuple[ChannelCode, date], ChannelSeriesPoint] = {}
        for source_table, cells in layers:
            for (channel, month), amount in cells.items():
                if (channel, month) in points:
                    continue
                points[(channel, month)] = ChannelSeriesPoint(
                    channel=channel,
                    month=month,
                    amount=amount,
                    source_table=source_table,
                )

        logger.info(
            "channel_series_unified",
            start=month_key(start),
            end=month_key(end),
            cells=len(points)
        )

        return sorted(
            points.values(),
            key=lambda p: (p.month, _CHANNEL_SORT[p.channel])
        )
