"""
Business logic services.

Each service handles one domain area and receives the database client
in its constructor.
"""

from services.catalog_service import CatalogService
from services.learned_mapping_service import LearnedMappingService
from services.title_matcher import TitleMatcher, MatchRunState, MatchThresholds, score_title
from services.match_reducer import reduce_matches, ReducedImport
from services.ledger_writer import (
    LedgerWriter,
    BestEffortRowWriter,
    AtomicBatchWriter,
    classify_write_error,
)
from services.sales_import_service import SalesImportService
from services.channel_unifier import ChannelUnifier, KpiSourceReader, normalize_channel_label
from services.kpi_summary_service import KpiSummaryService
from services.annual_plan_service import AnnualPlanService
from services.reconciliation_auditor import ReconciliationAuditor

__all__ = [
    "CatalogService",
    "LearnedMappingService",
    "TitleMatcher",
    "MatchRunState",
    "MatchThresholds",
    "score_title",
    "reduce_matches",
    "ReducedImport",
    "LedgerWriter",
    "BestEffortRowWriter",
    "AtomicBatchWriter",
    "classify_write_error",
    "SalesImportService",
    "ChannelUnifier",
    "KpiSourceReader",
    "normalize_channel_label",
    "KpiSummaryService",
    "AnnualPlanService",
    "ReconciliationAuditor",
]
