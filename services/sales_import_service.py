"""
Marketplace sales import service.

Orchestrates one import run: parse the upload with the channel's adapter,
read the catalog and learned mappings fresh, match and reduce, and later
write the operator-approved results to the ledger.
"""

from typing import Optional, Union
import structlog
from supabase import Client

from config.settings import Settings, get_settings
from models.matching import ImportPreviewResponse
from models.ledger import ConfirmRequest, WriteResult
from models.learned_mapping import LearnedMapping
from parsers.marketplace_adapters import get_adapter
from parsers.tabular_parser import parse_listing_file, decode_upload
from services.catalog_service import CatalogService
from services.learned_mapping_service import LearnedMappingService
from services.ledger_writer import LedgerWriter
from services.match_reducer import reduce_matches
from services.title_matcher import TitleMatcher, MatchRunState, MatchThresholds
from utils.fiscal import parse_month, month_from_filename
from exceptions import ListingFileEmptyError

logger = structlog.get_logger(__name__)


class SalesImportService:
    """
    Import business logic for all marketplace channels.
    """

    def __init__(self, db: Client, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or get_settings()
        self.catalog = CatalogService(db)
        self.mappings = LearnedMappingService(db)

    # ===================
    # PARSE / PREVIEW
    # ===================

    def preview(
        self,
        channel: str,
        content: Union[bytes, str],
        report_month: Optional[str] = None,
        filename: Optional[str] = None,
    ) -> ImportPreviewResponse:
        """
        Parse and match one uploaded file without writing anything.

        Args:
            channel: Marketplace channel name
            content: Uploaded file content
            report_month: YYYY-MM; inferred from the filename when omitted
            filename: Original filename

        Returns:
            ImportPreviewResponse with matched, unmatched, duplicate and
            blank-title buckets

        Raises:
            UnknownChannelError: No adapter for channel
            InvalidMonthError: report_month is malformed
            ListingFileEmptyError: Upload has no content
            UpstreamUnavailableError: Catalog or mappings unreadable
        """
        adapter = get_adapter(channel)
        month = parse_month(report_month) if report_month else month_from_filename(filename)

        text = decode_upload(content) if content else ""
        if not text.strip():
            raise ListingFileEmptyError(filename)

        logger.info(
            "import_parse_started",
            channel=adapter.channel,
            filename=filename,
            report_month=month.isoformat() if month else None
        )

        parse_result = parse_listing_file(text, adapter)

        catalog = self.catalog.list_products()
        learned = self.mappings.get(adapter)
        matcher = TitleMatcher(catalog, learned, MatchThresholds.from_settings(self.settings))

        reduced = reduce_matches(parse_result, matcher, MatchRunState())

        logger.info(
            "import_parsed",
            channel=adapter.channel,
            matched=reduced.summary.matched_count,
            unmatched=reduced.summary.unmatched_count,
            blank=reduced.summary.blank_title_count,
            duplicates=reduced.summary.duplicate_group_count,
            malformed=reduced.summary.malformed_rows,
            skipped=reduced.summary.skipped_rows
        )

        return ImportPreviewResponse(
            channel=adapter.channel,
            report_month=month,
            filename=filename,
            matched=reduced.matched,
            unmatched=reduced.unmatched,
            duplicates=reduced.duplicates,
            blank_title_info=reduced.blank_title,
            malformed_rows=reduced.malformed_rows,
            summary=reduced.summary,
        )

    # ===================
    # CONFIRM
    # ===================

    def confirm(self, channel: str, request: ConfirmRequest) -> WriteResult:
        """
        Write approved results to the ledger, then learn flagged titles.

        Learning is skipped when an atomic write rolled back.
        """
        adapter = get_adapter(channel)
        month = parse_month(request.month)

        writer = LedgerWriter(self.db, self.settings)
        result = writer.write(adapter, month, request.results, request.policy)

        pairs = [
            (item.source_title, item.product_id)
            for item in request.results
            if item.learn and item.source_title and item.product_id
        ]
        if pairs and not result.rolled_back:
            result.learned_mappings = self.mappings.learn_many(adapter, pairs)

        return result

    # ===================
    # LEARNING
    # ===================

    def learn(self, channel: str, source_title: str, product_id: str) -> LearnedMapping:
        adapter = get_adapter(channel)
        return self.mappings.learn(adapter, source_title, product_id)

    def list_mappings(self, channel: str) -> list[LearnedMapping]:
        adapter = get_adapter(channel)
        return self.mappings.list_mappings(adapter)

    def reset_mappings(self, channel: str) -> int:
        adapter = get_adapter(channel)
        return self.mappings.reset(adapter)
