"""
Pydantic models for validation and serialization.
"""

from models.base import BaseSchema
from models.product import CatalogProduct
from models.matching import (
    MatchType,
    MATCH_TYPE_RANK,
    MatchResult,
    ProductSuggestion,
    MatchedEntry,
    UnmatchedEntry,
    DuplicateGroup,
    BlankTitleInfo,
    MalformedRowInfo,
    ImportSummary,
    ImportPreviewResponse,
)
from models.ledger import (
    WritePolicy,
    WriteErrorKind,
    ConfirmItem,
    ConfirmRequest,
    LedgerRow,
    RowWriteError,
    WriteResult,
)
from models.learned_mapping import (
    LearnRequest,
    LearnedMapping,
    LearnedMappingListResponse,
    MappingResetResponse,
)
from models.kpi import (
    ChannelCode,
    CHANNEL_ORDER,
    KpiSource,
    ChannelSeriesPoint,
    UnifiedSeriesResponse,
    KpiSummaryRow,
    KpiSummaryResponse,
    AnnualTarget,
    AnnualPlanRequest,
    AnnualPlanCell,
    AnnualPlanResponse,
    DeltaCell,
    ZeroAnomaly,
    LabelVariantStats,
    UnknownLabelMonth,
    LabelVariantsResponse,
)

__all__ = [
    # Base
    "BaseSchema",

    # Catalog
    "CatalogProduct",

    # Matching
    "MatchType",
    "MATCH_TYPE_RANK",
    "MatchResult",
    "ProductSuggestion",
    "MatchedEntry",
    "UnmatchedEntry",
    "DuplicateGroup",
    "BlankTitleInfo",
    "MalformedRowInfo",
    "ImportSummary",
    "ImportPreviewResponse",

    # Ledger
    "WritePolicy",
    "WriteErrorKind",
    "ConfirmItem",
    "ConfirmRequest",
    "LedgerRow",
    "RowWriteError",
    "WriteResult",

    # Learned mappings
    "LearnRequest",
    "LearnedMapping",
    "LearnedMappingListResponse",
    "MappingResetResponse",

    # KPI
    "ChannelCode",
    "CHANNEL_ORDER",
    "KpiSource",
    "ChannelSeriesPoint",
    "UnifiedSeriesResponse",
    "KpiSummaryRow",
    "KpiSummaryResponse",
    "AnnualTarget",
    "AnnualPlanRequest",
    "AnnualPlanCell",
    "AnnualPlanResponse",
    "DeltaCell",
    "ZeroAnomaly",
    "LabelVariantStats",
    "UnknownLabelMonth",
    "LabelVariantsResponse",
]
