"""
Run-scoped match reducer.

Turns the parsed rows of one file into the operator's review buckets:

- blank titles are set aside before matching
- matched rows are grouped by product; a product reached by more than one
  distinct title becomes a duplicate group
- unmatched rows are grouped by title and get fuzzy suggestions

Quantities are conserved: matched + unmatched + blank equals the sum of
all rows with a positive quantity.
"""

from dataclasses import dataclass, field
import structlog

from models.matching import (
    MatchType,
    MATCH_TYPE_RANK,
    MatchResult,
    MatchedEntry,
    UnmatchedEntry,
    DuplicateGroup,
    BlankTitleInfo,
    MalformedRowInfo,
    ImportSummary,
)
from parsers.tabular_parser import ListingParseResult
from services.title_matcher import TitleMatcher, MatchRunState

logger = structlog.get_logger(__name__)


@dataclass
class ReducedImport:
    """Review buckets for one import run."""
    matched: list[MatchedEntry] = field(default_factory=list)
    unmatched: list[UnmatchedEntry] = field(default_factory=list)
    duplicates: list[DuplicateGroup] = field(default_factory=list)
    blank_title: BlankTitleInfo = field(default_factory=BlankTitleInfo)
    malformed_rows: list[MalformedRowInfo] = field(default_factory=list)
    results: list[MatchResult] = field(default_factory=list)
    summary: ImportSummary = field(default_factory=ImportSummary)


@dataclass
class _ProductGroup:
    product_id: str
    product_name: str
    match_type: MatchType
    score: float
    title_quantities: dict[str, int] = field(default_factory=dict)
    row_count: int = 0

    def add(self, result: MatchResult) -> None:
        self.title_quantities[result.source_title] = (
            self.title_quantities.get(result.source_title, 0) + result.quantity
        )
        self.row_count += 1
        # Report the weakest evidence seen for the product
        if MATCH_TYPE_RANK[result.match_type] > MATCH_TYPE_RANK[self.match_type]:
            self.match_type = result.match_type
        self.score = min(self.score, result.score)

    @property
    def quantity(self) -> int:
        return sum(self.title_quantities.values())

    @property
    def is_duplicate(self) -> bool:
        return len(self.title_quantities) > 1


def reduce_matches(
    parse_result: ListingParseResult,
    matcher: TitleMatcher,
    run_state: MatchRunState,
) -> ReducedImport:
    """
    Match every parsed row and reduce the results into review buckets.

    Args:
        parse_result: Parsed rows of one file
        matcher: Matcher built for this run
        run_state: Claims made in this run

    Returns:
        ReducedImport with matched, unmatched, duplicates and summary
    """
    reduced = ReducedImport(
        malformed_rows=[
            MalformedRowInfo(row=m.row, reason=m.reason)
            for m in parse_result.malformed_rows
        ]
    )

    products: dict[str, _ProductGroup] = {}
    unmatched: dict[str, UnmatchedEntry] = {}
    blank = BlankTitleInfo()

    for row in parse_result.rows:
        if not row.title.strip():
            blank.count += 1
            blank.quantity += row.quantity
            blank.rows.append(row.row_number)
            continue

        result = matcher.match(row.title, row.quantity, run_state)
        reduced.results.append(result)

        if result.is_matched:
            group = products.get(result.product_id)
            if group is None:
                group = _ProductGroup(
                    product_id=result.product_id,
                    product_name=result.product_name or "",
                    match_type=result.match_type,
                    score=result.score,
                )
                products[result.product_id] = group
            group.add(result)
        else:
            entry = unmatched.get(result.source_title)
            if entry is None:
                entry = UnmatchedEntry(source_title=result.source_title, quantity=0, row_count=0)
                unmatched[result.source_title] = entry
            entry.quantity += result.quantity
            entry.row_count += 1

    for group in products.values():
        reduced.matched.append(MatchedEntry(
            product_id=group.product_id,
            product_name=group.product_name,
            quantity=group.quantity,
            match_type=group.match_type,
            score=group.score,
            source_titles=list(group.title_quantities),
            row_count=group.row_count,
            is_duplicate=group.is_duplicate,
        ))
        if group.is_duplicate:
            reduced.duplicates.append(DuplicateGroup(
                product_id=group.product_id,
                product_name=group.product_name,
                source_titles=list(group.title_quantities),
                total_quantity=group.quantity,
                original_quantities=dict(group.title_quantities),
            ))

    for entry in unmatched.values():
        entry.suggestions = matcher.suggest(entry.source_title)
        reduced.unmatched.append(entry)

    reduced.blank_title = blank
    reduced.summary = _summarize(parse_result, reduced)

    if not reduced.summary.quantity_reconciled:
        logger.error(
            "import_quantity_mismatch",
            channel=parse_result.channel,
            total=reduced.summary.total_quantity,
            matched=reduced.summary.matched_quantity,
            unmatched=reduced.summary.unmatched_quantity,
            blank=reduced.summary.blank_title_quantity
        )

    return reduced


def _summarize(parse_result: ListingParseResult, reduced: ReducedImport) -> ImportSummary:
    matched_quantity = sum(m.quantity for m in reduced.matched)
    unmatched_quantity = sum(u.quantity for u in reduced.unmatched)
    total_quantity = parse_result.total_quantity

    return ImportSummary(
        total_rows=parse_result.total_rows,
        malformed_rows=len(parse_result.malformed_rows),
        skipped_rows=len(parse_result.skipped_rows),
        processed_rows=len(parse_result.rows),
        matched_rows=sum(m.row_count for m in reduced.matched),
        unmatched_rows=sum(u.row_count for u in reduced.unmatched),
        matched_count=len(reduced.matched),
        unmatched_count=len(reduced.unmatched),
        blank_title_count=reduced.blank_title.count,
        duplicate_group_count=len(reduced.duplicates),
        learned_count=sum(1 for r in reduced.results if r.match_type == MatchType.LEARNED),
        matched_quantity=matched_quantity,
        unmatched_quantity=unmatched_quantity,
        blank_title_quantity=reduced.blank_title.quantity,
        total_quantity=total_quantity,
        quantity_reconciled=(
            matched_quantity + unmatched_quantity + reduced.blank_title.quantity == total_quantity
        ),
    )
