"""
Title matcher.

Resolves a free-text marketplace listing title to a catalog product.
Tiers are tried in order and the first hit wins:

1. exact    normalized title equals a normalized product name
2. learned  the channel's learned mapping names a product in the catalog
3. fuzzy    rapidfuzz token_set_ratio, graded high / medium / low

A MatchRunState is created for each import run and passed in explicitly.
It records which product each title claimed so repeat claims of the same
product by different titles can be flagged.
"""

from dataclasses import dataclass, field
from typing import Optional
import structlog
from rapidfuzz import fuzz

from config.settings import Settings
from models.matching import MatchType, MatchResult, ProductSuggestion
from models.product import CatalogProduct
from utils.text_utils import normalize_title

logger = structlog.get_logger(__name__)

CONTAINMENT_SCORE = 90
MIN_CONTAINMENT_LENGTH = 3  # Shorter strings are contained in too many titles


@dataclass(frozen=True)
class MatchThresholds:
    """Minimum scores for each fuzzy confidence grade."""
    high: int = 90
    medium: int = 75
    low: int = 60
    suggestion_min: int = 50

    @classmethod
    def from_settings(cls, settings: Settings) -> "MatchThresholds":
        return cls(
            high=settings.match_high_threshold,
            medium=settings.match_medium_threshold,
            low=settings.match_low_threshold,
            suggestion_min=settings.suggestion_min_score,
        )

    def grade(self, score: float) -> MatchType:
        if score >= self.high:
            return MatchType.HIGH
        if score >= self.medium:
            return MatchType.MEDIUM
        if score >= self.low:
            return MatchType.LOW
        return MatchType.NONE


@dataclass
class MatchRunState:
    """Products claimed so far in one import run."""
    claimed: dict[str, str] = field(default_factory=dict)  # product_id -> first title

    def claim(self, product_id: str, title: str) -> bool:
        """
        Record that title resolved to product_id.

        Returns:
            True if a different title already claimed this product
        """
        first = self.claimed.setdefault(product_id, title)
        return first != title


def score_title(title_key: str, name_key: str) -> float:
    """
    Similarity of two normalized strings, 0-100.

    token_set_ratio, raised to CONTAINMENT_SCORE when one string
    contains the other.
    """
    if not title_key or not name_key:
        return 0.0

    score = fuzz.token_set_ratio(title_key, name_key)

    shorter, longer = sorted((title_key, name_key), key=len)
    if len(shorter) >= MIN_CONTAINMENT_LENGTH and shorter in longer:
        score = max(score, CONTAINMENT_SCORE)

    return float(score)


class TitleMatcher:
    """
    Matches listing titles against a fixed catalog snapshot.

    Built once per run from the catalog and the channel's learned
    mappings; holds no state between runs.
    """

    def __init__(
        self,
        catalog: list[CatalogProduct],
        learned: Optional[dict[str, str]] = None,
        thresholds: Optional[MatchThresholds] = None,
    ):
        self.catalog = catalog
        self.learned = learned or {}
        self.thresholds = thresholds or MatchThresholds()

        self._by_id = {p.id: p for p in catalog}
        self._names: list[tuple[CatalogProduct, str]] = []
        self._exact: dict[str, CatalogProduct] = {}

        for product in catalog:
            key = normalize_title(product.name)
            if not key:
                continue
            self._names.append((product, key))
            self._exact.setdefault(key, product)  # First in catalog order wins

    def match(
        self,
        title: str,
        quantity: int = 0,
        run_state: Optional[MatchRunState] = None,
    ) -> MatchResult:
        """
        Resolve one title.

        Args:
            title: Raw listing title
            quantity: Units on the row, carried into the result
            run_state: Claims made so far in this run

        Returns:
            MatchResult; product_id is None when nothing scored above low
        """
        source_title = (title or "").strip()
        key = normalize_title(source_title)

        product, match_type, score = self._resolve(key)

        if product is None:
            return MatchResult(
                source_title=source_title,
                quantity=quantity,
                match_type=MatchType.NONE,
                score=score,
            )

        repeat = run_state.claim(product.id, source_title) if run_state is not None else False

        return MatchResult(
            source_title=source_title,
            quantity=quantity,
            product_id=product.id,
            product_name=product.name,
            match_type=match_type,
            score=score,
            repeat_match=repeat,
        )

    def _resolve(self, key: str) -> tuple[Optional[CatalogProduct], MatchType, float]:
        if not key:
            return None, MatchType.NONE, 0.0

        exact = self._exact.get(key)
        if exact is not None:
            return exact, MatchType.EXACT, 100.0

        learned_id = self.learned.get(key)
        if learned_id is not None:
            learned = self._by_id.get(learned_id)
            if learned is not None:
                return learned, MatchType.LEARNED, 100.0
            logger.warning("learned_mapping_stale", title=key, product_id=learned_id)

        best: Optional[CatalogProduct] = None
        best_score = 0.0
        for product, name_key in self._names:
            score = score_title(key, name_key)
            if score > best_score:
                best, best_score = product, score

        grade = self.thresholds.grade(best_score)
        if grade is MatchType.NONE:
            return None, MatchType.NONE, best_score
        return best, grade, best_score

    def suggest(self, title: str, limit: int = 3) -> list[ProductSuggestion]:
        """
        Best catalog candidates for an unmatched title.

        Returns:
            Up to limit suggestions scoring at least suggestion_min,
            best first
        """
        key = normalize_title(title)
        if not key:
            return []

        suggestions = []
        for product, name_key in self._names:
            score = score_title(key, name_key)
            if score >= self.thresholds.suggestion_min:
                suggestions.append(ProductSuggestion(
                    product_id=product.id,
                    product_name=product.name,
                    score=round(score, 1)
                ))

        suggestions.sort(key=lambda s: s.score, reverse=True)
        return suggestions[:limit]
