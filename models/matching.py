"""
Title matching schemas.

A parse preview returns every data row in exactly one bucket:
matched (grouped by product), unmatched (grouped by title) or blank title.
"""

from datetime import date
from enum import Enum
from typing import Optional
from pydantic import Field

from models.base import BaseSchema


class MatchType(str, Enum):
    """How a title was resolved, strongest first."""
    EXACT = "exact"
    LEARNED = "learned"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    NONE = "none"


# Lower rank = stronger evidence
MATCH_TYPE_RANK = {
    MatchType.EXACT: 0,
    MatchType.LEARNED: 1,
    MatchType.HIGH: 2,
    MatchType.MEDIUM: 3,
    MatchType.LOW: 4,
    MatchType.NONE: 5,
}


class MatchResult(BaseSchema):
    """Outcome of matching one listing title."""

    source_title: str
    quantity: int = 0
    product_id: Optional[str] = None
    product_name: Optional[str] = None
    match_type: MatchType = MatchType.NONE
    score: float = Field(0, ge=0, le=100)
    repeat_match: bool = Field(
        False,
        description="Product was already claimed by a different title in this run"
    )

    @property
    def is_matched(self) -> bool:
        return self.product_id is not None


class ProductSuggestion(BaseSchema):
    """Candidate product for an unmatched title."""

    product_id: str
    product_name: str
    score: float


class MatchedEntry(BaseSchema):
    """All rows of one run that resolved to the same product."""

    product_id: str
    product_name: str
    quantity: int
    match_type: MatchType
    score: float
    source_titles: list[str]
    row_count: int
    is_duplicate: bool = False


class UnmatchedEntry(BaseSchema):
    """All rows of one run sharing an unmatched title."""

    source_title: str
    quantity: int
    row_count: int
    suggestions: list[ProductSuggestion] = Field(default_factory=list)


class DuplicateGroup(BaseSchema):
    """More than one distinct title resolved to the same product."""

    product_id: str
    product_name: str
    source_titles: list[str]
    total_quantity: int
    original_quantities: dict[str, int] = Field(
        default_factory=dict,
        description="Quantity contributed by each title"
    )


class BlankTitleInfo(BaseSchema):
    """Rows whose title was empty or whitespace."""

    count: int = 0
    quantity: int = 0
    rows: list[int] = Field(default_factory=list)


class MalformedRowInfo(BaseSchema):
    row: int
    reason: str


class ImportSummary(BaseSchema):
    """Counts shown to the operator before confirming."""

    total_rows: int = 0
    malformed_rows: int = 0
    skipped_rows: int = 0
    processed_rows: int = 0
    matched_rows: int = 0
    unmatched_rows: int = 0
    matched_count: int = 0
    unmatched_count: int = 0
    blank_title_count: int = 0
    duplicate_group_count: int = 0
    learned_count: int = 0
    matched_quantity: int = 0
    unmatched_quantity: int = 0
    blank_title_quantity: int = 0
    total_quantity: int = 0
    quantity_reconciled: bool = True


class ImportPreviewResponse(BaseSchema):
    """Parse preview for one uploaded marketplace file."""

    channel: str
    report_month: Optional[date] = None
    filename: Optional[str] = None
    matched: list[MatchedEntry] = Field(default_factory=list)
    unmatched: list[UnmatchedEntry] = Field(default_factory=list)
    duplicates: list[DuplicateGroup] = Field(default_factory=list)
    blank_title_info: BlankTitleInfo = Field(default_factory=BlankTitleInfo)
    malformed_rows: list[MalformedRowInfo] = Field(default_factory=list)
    summary: ImportSummary = Field(default_factory=ImportSummary)
