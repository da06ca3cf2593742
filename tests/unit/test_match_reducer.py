"""
Unit tests for the run-scoped match reducer.
"""

import pytest

from models.matching import MatchType
from models.product import CatalogProduct
from parsers.tabular_parser import (
    ListingParseResult,
    ListingRow,
    MalformedRow,
    SkippedRow,
    parse_listing_file,
)
from services.match_reducer import reduce_matches
from services.title_matcher import TitleMatcher, MatchRunState
from tests.factories import ListingFileFactory, SIMPLE_ADAPTER


@pytest.fixture
def matcher(catalog_rows):
    return TitleMatcher([CatalogProduct(**row) for row in catalog_rows])


def _parsed(*rows: tuple[str, int]) -> ListingParseResult:
    return ListingParseResult(
        channel="simple",
        rows=[
            ListingRow(row_number=i + 2, title=title, quantity=quantity)
            for i, (title, quantity) in enumerate(rows)
        ],
    )


# ===================
# BUCKETS
# ===================

class TestBuckets:
    """Each row lands in exactly one bucket."""

    def test_matched_and_unmatched(self, matcher):
        reduced = reduce_matches(
            _parsed(("Widget A", 5), ("Totally Unknown Gadget", 1)),
            matcher,
            MatchRunState(),
        )

        assert [m.product_id for m in reduced.matched] == ["p1"]
        assert reduced.matched[0].quantity == 5
        assert [u.source_title for u in reduced.unmatched] == ["Totally Unknown Gadget"]
        assert reduced.unmatched[0].quantity == 1
        assert reduced.duplicates == []

    def test_blank_titles_are_set_aside(self, matcher):
        reduced = reduce_matches(
            _parsed(("Widget A", 5), ("", 4), ("   ", 2)),
            matcher,
            MatchRunState(),
        )

        assert reduced.blank_title.count == 2
        assert reduced.blank_title.quantity == 6
        assert reduced.blank_title.rows == [3, 4]
        assert len(reduced.results) == 1

    def test_unmatched_rows_grouped_by_title(self, matcher):
        reduced = reduce_matches(
            _parsed(("Mystery Box", 1), ("Mystery Box", 3)),
            matcher,
            MatchRunState(),
        )

        assert len(reduced.unmatched) == 1
        assert reduced.unmatched[0].quantity == 4
        assert reduced.unmatched[0].row_count == 2

    def test_same_title_twice_sums_without_duplicate(self, matcher):
        reduced = reduce_matches(
            _parsed(("Widget A", 2), ("Widget A", 3)),
            matcher,
            MatchRunState(),
        )

        assert reduced.matched[0].quantity == 5
        assert reduced.matched[0].row_count == 2
        assert reduced.matched[0].is_duplicate is False
        assert reduced.duplicates == []


# ===================
# DUPLICATES
# ===================

class TestDuplicates:
    """Different titles resolving to one product."""

    def test_two_titles_one_product(self, matcher):
        reduced = reduce_matches(
            _parsed(("Widget A Pack", 2), ("Widget A (Set)", 3)),
            matcher,
            MatchRunState(),
        )

        assert len(reduced.duplicates) == 1
        group = reduced.duplicates[0]
        assert group.product_id == "p1"
        assert group.total_quantity == 5
        assert group.original_quantities == {"Widget A Pack": 2, "Widget A (Set)": 3}
        assert reduced.matched[0].is_duplicate is True
        assert reduced.summary.duplicate_group_count == 1

    def test_weakest_match_type_is_reported(self, matcher):
        reduced = reduce_matches(
            _parsed(("Widget A", 1), ("Widget A Pack", 1)),
            matcher,
            MatchRunState(),
        )

        assert reduced.matched[0].match_type == MatchType.HIGH
        assert set(reduced.matched[0].source_titles) == {"Widget A", "Widget A Pack"}

    def test_repeat_flag_on_second_title(self, matcher):
        reduced = reduce_matches(
            _parsed(("Widget A", 1), ("Widget A Pack", 1)),
            matcher,
            MatchRunState(),
        )

        assert [r.repeat_match for r in reduced.results] == [False, True]


# ===================
# SUMMARY
# ===================

class TestSummary:
    """Counts and quantity conservation."""

    def test_quantities_reconcile(self, matcher):
        parsed = ListingParseResult(
            channel="simple",
            rows=[
                ListingRow(2, "Widget A", 5),
                ListingRow(3, "Gizmo Deluxe", 2),
                ListingRow(4, "Totally Unknown Gadget", 1),
                ListingRow(5, "", 4),
            ],
            malformed_rows=[MalformedRow(6, "Expected at least 2 columns, got 1")],
            skipped_rows=[SkippedRow(7, "Returned", -1)],
        )

        summary = reduce_matches(parsed, matcher, MatchRunState()).summary

        assert summary.total_rows == 6
        assert summary.processed_rows == 4
        assert summary.malformed_rows == 1
        assert summary.skipped_rows == 1
        assert summary.matched_count == 2
        assert summary.unmatched_count == 1
        assert summary.blank_title_count == 1
        assert summary.matched_quantity == 7
        assert summary.unmatched_quantity == 1
        assert summary.blank_title_quantity == 4
        assert summary.total_quantity == 12
        assert summary.quantity_reconciled is True

    def test_learned_count(self, catalog_rows):
        matcher = TitleMatcher(
            [CatalogProduct(**row) for row in catalog_rows],
            learned={"ウィジェット赤": "p1"},
        )

        summary = reduce_matches(_parsed(("ウィジェット赤", 1)), matcher, MatchRunState()).summary

        assert summary.learned_count == 1

    def test_from_parsed_file(self, matcher):
        text = ListingFileFactory.build_simple([
            ("Widget A", "5"),
            ("Widget A Pack", "2"),
            ("", "1"),
            ("Mystery Box", "3"),
        ])

        reduced = reduce_matches(parse_listing_file(text, SIMPLE_ADAPTER), matcher, MatchRunState())

        assert reduced.summary.total_quantity == 11
        assert reduced.summary.quantity_reconciled is True
        assert reduced.matched[0].quantity == 7
