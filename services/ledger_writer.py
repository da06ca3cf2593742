"""
Confirmation & ledger writer.

Confirmed matches are aggregated per product and upserted into the
monthly sales ledger, keyed by (product_id, report_month). Upserts set
the channel's count and amount columns, so confirming the same file
twice leaves the ledger unchanged. Other channels' columns on the same
row are not touched.

Two write policies:

- BestEffortRowWriter  one upsert per row; a failing row is classified,
                       reported and the loop continues
- AtomicBatchWriter    one multi-row upsert; PostgREST runs a single
                       request in one transaction, so either every row
                       is written or none is
"""

from datetime import date
from typing import Callable, Optional, Union
import structlog
from supabase import Client

from config.settings import Settings, get_settings
from models.ledger import (
    ConfirmItem,
    LedgerRow,
    RowWriteError,
    WriteErrorKind,
    WritePolicy,
    WriteResult,
)
from parsers.marketplace_adapters import MarketplaceAdapter
from services.catalog_service import CatalogService
from utils.fiscal import month_key

logger = structlog.get_logger(__name__)

LEDGER_TABLE = "monthly_sales_ledger"
LEDGER_CONFLICT_KEY = "product_id,report_month"

KeyFunc = Callable[[dict], str]


def classify_write_error(error: Exception) -> WriteErrorKind:
    """
    Classify a failed write.

    Postgres integrity errors (SQLSTATE class 23) and messages saying a
    constraint was violated are constraint violations; anything else is
    unknown.
    """
    code = str(getattr(error, "code", "") or "")
    message = str(getattr(error, "message", "") or error).lower()

    if code.startswith("23") or "violates" in message or "duplicate key" in message:
        return WriteErrorKind.CONSTRAINT_VIOLATION
    return WriteErrorKind.UNKNOWN


def _error_message(error: Exception) -> str:
    return str(getattr(error, "message", "") or error)


class BestEffortRowWriter:
    """Upsert rows one at a time, collecting per-row failures."""

    policy = WritePolicy.BEST_EFFORT

    def __init__(self, db: Client, table: str, on_conflict: str, batch_size: int = 200):
        self.db = db
        self.table = table
        self.on_conflict = on_conflict
        self.batch_size = batch_size

    def write(self, rows: list[dict], key: KeyFunc) -> WriteResult:
        result = WriteResult(policy=self.policy, total_count=len(rows))

        for index, row in enumerate(rows, start=1):
            try:
                self.db.table(self.table).upsert(row, on_conflict=self.on_conflict).execute()
                result.success_count += 1
            except Exception as e:
                kind = classify_write_error(e)
                result.error_count += 1
                result.errors.append(RowWriteError(
                    key=key(row),
                    kind=kind,
                    message=_error_message(e)
                ))
                logger.warning(
                    "row_write_failed",
                    table=self.table,
                    key=key(row),
                    kind=kind.value,
                    error=_error_message(e)
                )

            if index % self.batch_size == 0:
                logger.info("row_write_progress", table=self.table, written=index, total=len(rows))

        return result


class AtomicBatchWriter:
    """Upsert all rows in one request; all succeed or all fail."""

    policy = WritePolicy.ATOMIC

    def __init__(self, db: Client, table: str, on_conflict: str):
        self.db = db
        self.table = table
        self.on_conflict = on_conflict

    def write(self, rows: list[dict], key: KeyFunc) -> WriteResult:
        result = WriteResult(policy=self.policy, total_count=len(rows))
        if not rows:
            return result

        try:
            self.db.table(self.table).upsert(rows, on_conflict=self.on_conflict).execute()
        except Exception as e:
            kind = classify_write_error(e)
            message = _error_message(e)
            logger.error(
                "batch_write_rolled_back",
                table=self.table,
                rows=len(rows),
                kind=kind.value,
                error=message
            )
            result.rolled_back = True
            result.error_count = len(rows)
            result.errors = [
                RowWriteError(key=key(row), kind=kind, message=message)
                for row in rows
            ]
            return result

        result.success_count = len(rows)
        return result


RowWriter = Union[BestEffortRowWriter, AtomicBatchWriter]


def build_row_writer(
    policy: WritePolicy,
    db: Client,
    table: str,
    on_conflict: str,
    batch_size: int = 200,
) -> RowWriter:
    if policy == WritePolicy.ATOMIC:
        return AtomicBatchWriter(db, table, on_conflict)
    return BestEffortRowWriter(db, table, on_conflict, batch_size)


class LedgerWriter:
    """
    Writes confirmed import results to the monthly sales ledger.
    """

    def __init__(self, db: Client, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or get_settings()
        self.catalog = CatalogService(db)

    def build_rows(
        self,
        items: list[ConfirmItem],
        report_month: date,
        prices: dict[str, Optional[float]],
    ) -> tuple[list[LedgerRow], int]:
        """
        Aggregate confirmed items into one ledger row per product.

        Items without a product or with a non-positive quantity are
        skipped.

        Returns:
            Tuple of (ledger rows, skipped item count)
        """
        counts: dict[str, int] = {}
        skipped = 0

        for item in items:
            if not item.product_id or item.quantity <= 0:
                skipped += 1
                continue
            counts[item.product_id] = counts.get(item.product_id, 0) + item.quantity

        rows = []
        for product_id, count in counts.items():
            price = prices.get(product_id)
            rows.append(LedgerRow(
                product_id=product_id,
                report_month=report_month,
                count=count,
                amount=round(count * price, 2) if price is not None else None,
            ))

        return rows, skipped

    def write(
        self,
        adapter: MarketplaceAdapter,
        report_month: date,
        items: list[ConfirmItem],
        policy: Optional[WritePolicy] = None,
    ) -> WriteResult:
        """
        Upsert confirmed items for one channel and month.

        Args:
            adapter: Channel the items came from
            report_month: First day of the report month
            items: Operator-approved matches
            policy: Write policy, defaults to the configured one

        Returns:
            WriteResult with success/error/skipped counts

        Raises:
            UpstreamUnavailableError: If prices cannot be read; nothing is written
        """
        policy = policy or WritePolicy(self.settings.ledger_write_policy)

        product_ids = sorted({i.product_id for i in items if i.product_id and i.quantity > 0})
        prices = self.catalog.get_prices(product_ids)
        ledger_rows, skipped = self.build_rows(items, report_month, prices)

        payload = [
            {
                "product_id": row.product_id,
                "report_month": month_key(row.report_month),
                adapter.ledger_count_column: row.count,
                adapter.ledger_amount_column: row.amount,
            }
            for row in ledger_rows
        ]

        logger.info(
            "ledger_write_started",
            channel=adapter.channel,
            report_month=month_key(report_month),
            rows=len(payload),
            skipped=skipped,
            policy=policy.value
        )

        writer = build_row_writer(
            policy,
            self.db,
            LEDGER_TABLE,
            LEDGER_CONFLICT_KEY,
            self.settings.ledger_batch_size,
        )
        result = writer.write(payload, key=lambda row: row["product_id"])
        result.skipped_count = skipped
        result.total_count = len(payload) + skipped

        logger.info(
            "ledger_write_complete",
            channel=adapter.channel,
            report_month=month_key(report_month),
            success=result.success_count,
            errors=result.error_count,
            skipped=result.skipped_count,
            rolled_back=result.rolled_back
        )

        return result
