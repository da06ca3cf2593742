"""
Learned title mappings.

Operators confirm which product an unmatched listing title refers to.
The mapping is stored per channel, keyed by the normalized title, and
overrides fuzzy matching on every later import of that channel.

Mappings are read fresh for every run. Nothing is cached in process.
"""

from typing import Optional
import structlog
from supabase import Client

from config.database import fetch_all
from models.learned_mapping import LearnedMapping
from parsers.marketplace_adapters import MarketplaceAdapter
from utils.text_utils import normalize_title, clean_title
from exceptions import (
    AppError,
    DatabaseError,
    LearnValidationError,
    UpstreamUnavailableError,
)

logger = structlog.get_logger(__name__)


class LearnedMappingService:
    """Per-channel title -> product mapping store."""

    def __init__(self, db: Client):
        self.db = db

    # ===================
    # READ OPERATIONS
    # ===================

    def get(self, adapter: MarketplaceAdapter) -> dict[str, str]:
        """
        Current mappings of a channel.

        Returns:
            Dict of normalized title -> product_id

        Raises:
            UpstreamUnavailableError: If the mapping store cannot be read
        """
        rows = self._select(adapter)

        mappings = {}
        for row in rows:
            key = normalize_title(row.get(adapter.mapping_title_column))
            product_id = row.get("product_id")
            if key and product_id:
                mappings[key] = str(product_id)

        logger.info("learned_mappings_loaded", channel=adapter.channel, count=len(mappings))
        return mappings

    def list_mappings(self, adapter: MarketplaceAdapter) -> list[LearnedMapping]:
        """All stored mappings of a channel, for review."""
        return [
            LearnedMapping(
                channel=adapter.channel,
                source_title=row.get(adapter.mapping_title_column) or "",
                product_id=str(row.get("product_id") or ""),
            )
            for row in self._select(adapter)
        ]

    def _select(self, adapter: MarketplaceAdapter) -> list[dict]:
        title_column = adapter.mapping_title_column
        try:
            return fetch_all(
                lambda: self.db.table(adapter.mapping_table)
                .select(f"{title_column}, product_id")
                .order(title_column)
            )
        except Exception as e:
            logger.error("learned_mappings_read_failed", channel=adapter.channel, error=str(e))
            raise UpstreamUnavailableError("learned_mappings", str(e))

    # ===================
    # WRITE OPERATIONS
    # ===================

    def learn(
        self,
        adapter: MarketplaceAdapter,
        source_title: Optional[str],
        product_id: Optional[str],
    ) -> LearnedMapping:
        """
        Persist title -> product, overwriting any earlier mapping.

        Raises:
            LearnValidationError: If either value is empty after trimming
            DatabaseError: If the upsert fails
        """
        product = (product_id or "").strip()
        key = normalize_title(source_title)

        if not key or not product:
            raise LearnValidationError(clean_title(source_title), product)

        try:
            self.db.table(adapter.mapping_table).upsert(
                {adapter.mapping_title_column: key, "product_id": product},
                on_conflict=adapter.mapping_title_column
            ).execute()
        except Exception as e:
            logger.error(
                "learned_mapping_write_failed",
                channel=adapter.channel,
                title=key,
                error=str(e)
            )
            raise DatabaseError("upsert", str(e))

        logger.info("learned_mapping_saved", channel=adapter.channel, title=key, product_id=product)
        return LearnedMapping(channel=adapter.channel, source_title=key, product_id=product)

    def learn_many(
        self,
        adapter: MarketplaceAdapter,
        pairs: list[tuple[str, str]],
    ) -> int:
        """
        Learn several mappings after a confirm. Failures are logged and
        skipped; the ledger write is not undone.

        Returns:
            Number of mappings saved
        """
        saved = 0
        for source_title, product_id in pairs:
            try:
                self.learn(adapter, source_title, product_id)
                saved += 1
            except AppError as e:
                logger.warning(
                    "learn_on_confirm_skipped",
                    channel=adapter.channel,
                    title=source_title,
                    error=e.message
                )
        return saved

    def reset(self, adapter: MarketplaceAdapter) -> int:
        """
        Delete every mapping of a channel.

        Returns:
            Number of mappings deleted
        """
        try:
            result = (
                self.db.table(adapter.mapping_table)
                .delete()
                .neq(adapter.mapping_title_column, "")
                .execute()
            )
        except Exception as e:
            logger.error("learned_mappings_reset_failed", channel=adapter.channel, error=str(e))
            raise DatabaseError("delete", str(e))

        deleted = len(result.data or [])
        logger.warning("learned_mappings_reset", channel=adapter.channel, deleted=deleted)
        return deleted
