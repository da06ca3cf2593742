"""
Reconciliation auditor.

Read-only diagnostics over one fiscal year of KPI sources:

- final vs computed deltas per (month, channel), plus TOTAL
- months where a canonical channel is zero while the month has sales
- raw label variants per canonical bucket and unknown labels per month
"""

from dataclasses import dataclass
from datetime import date
from typing import Optional
import structlog
import pandas as pd
from supabase import Client

from config.settings import Settings, get_settings
from models.kpi import (
    ChannelCode,
    CHANNEL_ORDER,
    KpiSource,
    DeltaCell,
    ZeroAnomaly,
    LabelVariantStats,
    UnknownLabelMonth,
    LabelVariantsResponse,
)
from services.channel_unifier import KpiSourceReader
from utils.fiscal import fiscal_year_window, fiscal_year_label, iter_months
from exceptions import InvalidSourceError

logger = structlog.get_logger(__name__)

ALL_CHANNELS = [c.value for c in CHANNEL_ORDER + [ChannelCode.OTHER]]
TOTAL = "TOTAL"


@dataclass
class FinalVsComputedReport:
    fiscal_year: str
    months: list[date]
    cells: list[DeltaCell]

    def to_dict(self) -> dict:
        return {
            "fiscal_year": self.fiscal_year,
            "months": [m.isoformat() for m in self.months],
            "cells": [c.model_dump(mode="json") for c in self.cells],
        }


def parse_source(value: str) -> KpiSource:
    try:
        return KpiSource((value or "").strip().lower())
    except ValueError:
        raise InvalidSourceError(value, [s.value for s in KpiSource])


def _frame(rows: list[dict]) -> pd.DataFrame:
    return pd.DataFrame(rows, columns=["month", "raw_label", "channel", "amount"])


def _pivot(frame: pd.DataFrame, months: list[date]) -> pd.DataFrame:
    """Amount per month x canonical channel, zero-filled."""
    if frame.empty:
        return pd.DataFrame(0.0, index=months, columns=ALL_CHANNELS)

    frame = frame.assign(channel=frame["channel"].map(lambda c: ChannelCode(c).value))
    pivot = pd.pivot_table(
        frame,
        index="month",
        columns="channel",
        values="amount",
        aggfunc="sum",
        fill_value=0.0,
    )
    return pivot.reindex(index=months, columns=ALL_CHANNELS, fill_value=0.0).fillna(0.0)


class ReconciliationAuditor:
    """KPI source diagnostics."""

    def __init__(self, db: Client, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.reader = KpiSourceReader(db)

    def _window(self, fiscal_year: int) -> tuple[date, date, list[date]]:
        start, end = fiscal_year_window(fiscal_year, self.settings.fiscal_year_start_month)
        return start, end, iter_months(start, end)

    def final_vs_computed(self, fiscal_year: int) -> FinalVsComputedReport:
        """
        final - computed per (month, channel) and per month TOTAL.

        Only non-zero cells are reported.
        """
        start, end, months = self._window(fiscal_year)

        final = _pivot(_frame(self.reader.fetch(KpiSource.FINAL, start, end)), months)
        computed = _pivot(_frame(self.reader.fetch(KpiSource.COMPUTED, start, end)), months)
        delta = final - computed

        cells = []
        for month in months:
            for channel in ALL_CHANNELS:
                value = round(float(delta.at[month, channel]), 2)
                if value != 0:
                    cells.append(DeltaCell(
                        month=month,
                        channel=channel,
                        final=float(final.at[month, channel]),
                        computed=float(computed.at[month, channel]),
                        delta=value,
                    ))

            final_total = float(final.loc[month].sum())
            computed_total = float(computed.loc[month].sum())
            total_delta = round(final_total - computed_total, 2)
            if total_delta != 0:
                cells.append(DeltaCell(
                    month=month,
                    channel=TOTAL,
                    final=final_total,
                    computed=computed_total,
                    delta=total_delta,
                ))

        logger.info("final_vs_computed_audited", fiscal_year=fiscal_year, cells=len(cells))

        return FinalVsComputedReport(
            fiscal_year=fiscal_year_label(start, self.settings.fiscal_year_start_month),
            months=months,
            cells=cells,
        )

    def zero_anomalies(self, source: KpiSource, fiscal_year: int) -> list[ZeroAnomaly]:
        """Canonical channels at zero in months whose total is positive."""
        start, end, months = self._window(fiscal_year)
        pivot = _pivot(_frame(self.reader.fetch(source, start, end)), months)

        anomalies = []
        for month in months:
            month_total = float(pivot.loc[month].sum())
            if month_total <= 0:
                continue
            for channel in CHANNEL_ORDER:
                if float(pivot.at[month, channel.value]) == 0:
                    anomalies.append(ZeroAnomaly(
                        month=month,
                        channel=channel,
                        month_total=month_total,
                    ))

        logger.info(
            "zero_anomalies_audited",
            source=source.value,
            fiscal_year=fiscal_year,
            anomalies=len(anomalies)
        )
        return anomalies

    def label_variants(self, source: KpiSource, fiscal_year: int) -> LabelVariantsResponse:
        """Raw labels behind each canonical bucket, and unknown labels by month."""
        start, end, _ = self._window(fiscal_year)
        frame = _frame(self.reader.fetch(source, start, end))

        channels = []
        unknown = []
        if not frame.empty:
            frame["channel"] = frame["channel"].map(lambda c: ChannelCode(c).value)

            for channel in ALL_CHANNELS:
                rows = frame[frame["channel"] == channel]
                if rows.empty:
                    continue
                channels.append(LabelVariantStats(
                    channel=ChannelCode(channel),
                    raw_variants=sorted(rows["raw_label"].unique().tolist()),
                    total=float(rows["amount"].sum()),
                    first_month=rows["month"].min(),
                    last_month=rows["month"].max(),
                ))

            others = frame[frame["channel"] == ChannelCode.OTHER.value]
            for month, rows in others.groupby("month", sort=True):
                unknown.append(UnknownLabelMonth(
                    month=month,
                    labels=sorted(rows["raw_label"].unique().tolist()),
                    amount=float(rows["amount"].sum()),
                ))

        return LabelVariantsResponse(
            source=source,
            channels=channels,
            unknown_by_month=unknown,
        )
