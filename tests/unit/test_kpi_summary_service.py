"""
Unit tests for the KPI monthly summary.
"""

from datetime import date

import pytest

from services.channel_unifier import FINAL_TABLE
from services.kpi_summary_service import KpiSummaryService

SEP = date(2025, 9, 1)


def _kpi(month: str, label: str, amount: float) -> dict:
    return {"fiscal_month": month, "channel_code": label, "actual_amount_yen": amount}


@pytest.fixture
def service(mock_supabase, settings):
    mock_supabase.set_table_data(FINAL_TABLE, [
        _kpi("2025-08-01", "WEB", 100),
        _kpi("2025-08-01", "店舗", 200),
        _kpi("2025-09-01", "EC", 150),
        _kpi("2025-09-01", "直営店", 200),
        _kpi("2025-09-01", "道の駅", 50),
    ])
    return KpiSummaryService(mock_supabase, settings)


class TestSummarize:
    """Tests for summarize."""

    def test_rows_in_channel_order(self, service):
        summary = service.summarize(SEP)

        assert [r.channel_code for r in summary.rows] == ["WEB", "WHOLESALE", "STORE", "SHOKU"]
        assert summary.previous_month == date(2025, 8, 1)
        assert summary.fiscal_year == "FY26"

    def test_month_over_month(self, service):
        rows = {r.channel_code: r for r in service.summarize(SEP).rows}

        assert rows["WEB"].prev == 100
        assert rows["WEB"].curr == 150
        assert rows["WEB"].diff == 50
        assert rows["WEB"].diff_pct == 50.0
        assert rows["WEB"].ytd == 250

    def test_zero_previous_month_has_no_pct(self, service):
        rows = {r.channel_code: r for r in service.summarize(SEP).rows}

        assert rows["SHOKU"].diff == 50
        assert rows["SHOKU"].diff_pct is None
        assert rows["WHOLESALE"].diff_pct is None

    def test_total_row(self, service):
        total = service.summarize(SEP).total

        assert total.channel_code == "TOTAL"
        assert total.prev == 300
        assert total.curr == 400
        assert total.diff_pct == 33.3
        assert total.ytd == 700

    def test_ytd_starts_at_fiscal_year(self, mock_supabase, settings):
        """July belongs to the previous fiscal year."""
        mock_supabase.set_table_data(FINAL_TABLE, [
            _kpi("2025-07-01", "WEB", 500),
            _kpi("2025-08-01", "WEB", 100),
        ])

        rows = {r.channel_code: r for r in KpiSummaryService(mock_supabase, settings).summarize(date(2025, 8, 1)).rows}

        assert rows["WEB"].prev == 500
        assert rows["WEB"].ytd == 100

    def test_other_only_when_present(self, mock_supabase, settings):
        mock_supabase.set_table_data(FINAL_TABLE, [_kpi("2025-09-01", "催事", 10)])

        summary = KpiSummaryService(mock_supabase, settings).summarize(SEP)

        assert summary.rows[-1].channel_code == "OTHER"
        assert summary.total.curr == 10


class TestCsvExport:
    """Tests for to_csv."""

    def test_csv(self, service):
        csv_text = KpiSummaryService.to_csv(service.summarize(SEP))

        assert csv_text == (
            "channel_code,prev,curr,diff,diff_pct,YTD\n"
            "WEB,100,150,50,50.0%,250\n"
            "WHOLESALE,0,0,0,,0\n"
            "STORE,200,200,0,0.0%,400\n"
            "SHOKU,0,50,50,,50\n"
            "TOTAL,300,400,100,33.3%,700\n"
        )

    def test_fractional_amounts(self, mock_supabase, settings):
        mock_supabase.set_table_data(FINAL_TABLE, [_kpi("2025-09-01", "WEB", 10.5)])

        csv_text = KpiSummaryService.to_csv(KpiSummaryService(mock_supabase, settings).summarize(SEP))

        assert "WEB,0,10.50,10.50,,10.50" in csv_text
