"""
Unit tests for the channel unifier.

Covers label normalization, source priority per channel and the
one-source-per-cell rule.
"""

from datetime import date

import pytest

from models.kpi import ChannelCode, KpiSource
from services.channel_unifier import (
    ACTUALS_TABLE,
    CHANNEL_DIM_TABLE,
    COMPUTED_TABLE,
    FINAL_TABLE,
    OEM_TABLE,
    WHOLESALE_SOURCE,
    WHOLESALE_TABLE,
    ChannelUnifier,
    KpiSourceReader,
    normalize_channel_label,
    to_month,
)
from services.ledger_writer import LEDGER_TABLE
from exceptions import DatabaseError

AUG = date(2025, 8, 1)
SEP = date(2025, 9, 1)


def _kpi(month: str, label: str, amount: float) -> dict:
    return {"fiscal_month": month, "channel_code": label, "actual_amount_yen": amount}


@pytest.fixture
def unifier(mock_supabase):
    mock_supabase.set_table_data(CHANNEL_DIM_TABLE, [
        {"channel_id": 1, "channel_code": "WEB"},
        {"channel_id": 2, "channel_code": "卸売"},
        {"channel_id": 3, "channel_code": "直営店"},
        {"channel_id": 4, "channel_code": "道の駅"},
    ])
    return ChannelUnifier(mock_supabase)


def _by_channel(points) -> dict:
    return {p.channel: p for p in points}


# ===================
# LABELS
# ===================

class TestNormalizeChannelLabel:
    """Tests for normalize_channel_label."""

    @pytest.mark.parametrize("raw,expected", [
        ("web", ChannelCode.WEB),
        ("ＥＣ", ChannelCode.WEB),
        ("EC", ChannelCode.WEB),
        ("ECサイト", ChannelCode.WEB),
        ("EC通販", ChannelCode.WEB),
        ("楽天EC", ChannelCode.WEB),
        ("Online Store", ChannelCode.WEB),
        ("オンラインショップ", ChannelCode.WEB),
        ("ネット販売", ChannelCode.WEB),
        ("wholesale", ChannelCode.WHOLESALE),
        ("卸売", ChannelCode.WHOLESALE),
        ("OEM", ChannelCode.WHOLESALE),
        ("直営店", ChannelCode.STORE),
        ("店舗", ChannelCode.STORE),
        ("店頭販売", ChannelCode.STORE),
        ("Shop", ChannelCode.STORE),
        ("shoku", ChannelCode.SHOKU),
        ("道の駅 A", ChannelCode.SHOKU),
        ("ECO", ChannelCode.OTHER),
        ("催事", ChannelCode.OTHER),
        ("", ChannelCode.OTHER),
        (None, ChannelCode.OTHER),
    ])
    def test_labels(self, raw, expected):
        assert normalize_channel_label(raw) == expected


class TestToMonth:
    """Tests for to_month."""

    @pytest.mark.parametrize("value,expected", [
        ("2025-09-15", SEP),
        ("2025-09-01T00:00:00+00:00", SEP),
        (date(2025, 9, 30), SEP),
        ("2025", None),
        ("garbage-xx", None),
        (None, None),
    ])
    def test_to_month(self, value, expected):
        assert to_month(value) == expected


# ===================
# SOURCE PRIORITY
# ===================

class TestSourcePriority:
    """Each cell comes from the most authoritative source holding it."""

    def test_actuals_beat_final_and_computed(self, unifier, mock_supabase):
        mock_supabase.set_table_data(ACTUALS_TABLE, [
            {"fiscal_month": "2025-09-01", "channel_id": 3, "actual_amount_yen": 1000},
        ])
        mock_supabase.set_table_data(FINAL_TABLE, [_kpi("2025-09-01", "店舗", 900)])
        mock_supabase.set_table_data(COMPUTED_TABLE, [
            _kpi("2025-09-01", "STORE", 700),
            _kpi("2025-09-01", "道の駅", 300),
        ])

        cells = _by_channel(unifier.unify(SEP))

        assert cells[ChannelCode.STORE].amount == 1000
        assert cells[ChannelCode.STORE].source_table == ACTUALS_TABLE
        assert cells[ChannelCode.SHOKU].amount == 300
        assert cells[ChannelCode.SHOKU].source_table == COMPUTED_TABLE

    def test_sources_are_never_added(self, unifier, mock_supabase):
        mock_supabase.set_table_data(FINAL_TABLE, [_kpi("2025-09-01", "STORE", 900)])
        mock_supabase.set_table_data(COMPUTED_TABLE, [_kpi("2025-09-01", "STORE", 700)])

        cells = _by_channel(unifier.unify(SEP))

        assert cells[ChannelCode.STORE].amount == 900

    def test_labels_in_one_source_are_summed(self, unifier, mock_supabase):
        mock_supabase.set_table_data(FINAL_TABLE, [
            _kpi("2025-09-01", "EC", 100),
            _kpi("2025-09-01", "Online", 50),
        ])

        cells = _by_channel(unifier.unify(SEP))

        assert cells[ChannelCode.WEB].amount == 150
        assert cells[ChannelCode.WEB].source_table == FINAL_TABLE

    def test_ledger_amounts_win_for_web(self, unifier, mock_supabase):
        mock_supabase.set_table_data(LEDGER_TABLE, [
            {"product_id": "p1", "report_month": "2025-09-01", "rakuten_count": 2, "rakuten_amount": 2400.0},
            {"product_id": "p2", "report_month": "2025-09-01", "amazon_count": 1, "amazon_amount": 800.0,
             "yahoo_count": 1, "yahoo_amount": None},
        ])
        mock_supabase.set_table_data(ACTUALS_TABLE, [
            {"fiscal_month": "2025-09-01", "channel_id": 1, "actual_amount_yen": 5000},
        ])

        cells = _by_channel(unifier.unify(SEP))

        assert cells[ChannelCode.WEB].amount == 3200.0
        assert cells[ChannelCode.WEB].source_table == LEDGER_TABLE

    def test_zero_ledger_falls_back(self, unifier, mock_supabase):
        mock_supabase.set_table_data(LEDGER_TABLE, [
            {"product_id": "p3", "report_month": "2025-09-01", "rakuten_count": 2, "rakuten_amount": None},
        ])
        mock_supabase.set_table_data(FINAL_TABLE, [_kpi("2025-09-01", "WEB", 100)])

        cells = _by_channel(unifier.unify(SEP))

        assert cells[ChannelCode.WEB].amount == 100
        assert cells[ChannelCode.WEB].source_table == FINAL_TABLE

    def test_wholesale_and_oem_joined(self, unifier, mock_supabase):
        mock_supabase.set_table_data(WHOLESALE_TABLE, [
            {"sale_date": "2025-09-03", "quantity": 2, "unit_price": 500},
            {"sale_date": "2025-09-20", "quantity": 1, "unit_price": 250},
        ])
        mock_supabase.set_table_data(OEM_TABLE, [
            {"sale_date": "2025-09-10", "amount": 300},
            {"sale_date": "2025-08-10", "amount": 40},
        ])
        mock_supabase.set_table_data(ACTUALS_TABLE, [
            {"fiscal_month": "2025-09-01", "channel_id": 2, "actual_amount_yen": 9999},
        ])

        points = unifier.unify_range(AUG, SEP)
        cells = {(p.channel, p.month): p for p in points}

        assert cells[(ChannelCode.WHOLESALE, SEP)].amount == 1550.0
        assert cells[(ChannelCode.WHOLESALE, SEP)].source_table == WHOLESALE_SOURCE
        assert cells[(ChannelCode.WHOLESALE, AUG)].amount == 40.0

    def test_unknown_labels_go_to_other(self, unifier, mock_supabase):
        mock_supabase.set_table_data(FINAL_TABLE, [_kpi("2025-09-01", "催事", 80)])

        cells = _by_channel(unifier.unify(SEP))

        assert cells[ChannelCode.OTHER].amount == 80


# ===================
# RANGE AND ORDER
# ===================

class TestUnifyRange:
    """Tests for unify_range."""

    def test_sorted_by_month_then_channel(self, unifier, mock_supabase):
        mock_supabase.set_table_data(FINAL_TABLE, [
            _kpi("2025-09-01", "催事", 1),
            _kpi("2025-09-01", "道の駅", 1),
            _kpi("2025-09-01", "WEB", 1),
            _kpi("2025-08-01", "STORE", 1),
        ])

        points = unifier.unify_range(AUG, SEP)

        assert [(p.month, p.channel) for p in points] == [
            (AUG, ChannelCode.STORE),
            (SEP, ChannelCode.WEB),
            (SEP, ChannelCode.SHOKU),
            (SEP, ChannelCode.OTHER),
        ]

    def test_months_outside_range_excluded(self, unifier, mock_supabase):
        mock_supabase.set_table_data(FINAL_TABLE, [
            _kpi("2025-07-01", "WEB", 1),
            _kpi("2025-10-01", "WEB", 1),
        ])

        assert unifier.unify(SEP) == []

    def test_actuals_without_dimension_row_are_dropped(self, mock_supabase):
        mock_supabase.set_table_data(ACTUALS_TABLE, [
            {"fiscal_month": "2025-09-01", "channel_id": 99, "actual_amount_yen": 1000},
        ])

        rows = KpiSourceReader(mock_supabase).fetch(KpiSource.ACTUALS, SEP, SEP)

        assert rows == []

    def test_read_failure(self, unifier, mock_supabase):
        mock_supabase.fail_table(FINAL_TABLE, Exception("timeout"))

        with pytest.raises(DatabaseError):
            unifier.unify(SEP)


class TestLargeSources:
    """Sources larger than one PostgREST response are read in full."""

    def test_ledger_amounts_past_response_cap(self, mock_supabase):
        mock_supabase.set_table_data(LEDGER_TABLE, [
            {"product_id": f"p{i:04d}", "report_month": "2025-09-01", "amazon_count": 1, "amazon_amount": 100}
            for i in range(1200)
        ])
        mock_supabase.cap_rows(1000)

        amounts = KpiSourceReader(mock_supabase).web_ledger_amounts(SEP, SEP)

        assert amounts == {SEP: 120000.0}

    def test_wholesale_past_response_cap(self, mock_supabase):
        mock_supabase.set_table_data(WHOLESALE_TABLE, [
            {"id": i, "sale_date": "2025-09-15", "quantity": 1, "unit_price": 10}
            for i in range(2500)
        ])
        mock_supabase.cap_rows(1000)

        amounts = KpiSourceReader(mock_supabase).wholesale_amounts(SEP, SEP)

        assert amounts == {SEP: 25000.0}
        assert mock_supabase.table(WHOLESALE_TABLE).select_calls == 3

    def test_kpi_rows_past_response_cap(self, mock_supabase):
        mock_supabase.set_table_data(COMPUTED_TABLE, [
            _kpi("2025-09-01", f"WEB-{i}", 1) for i in range(1001)
        ])
        mock_supabase.cap_rows(1000)

        cells = KpiSourceReader(mock_supabase).cells(KpiSource.COMPUTED, SEP, SEP)

        assert cells == {(ChannelCode.WEB, SEP): 1001.0}
