"""
Catalog read service.

The product catalog is read fresh at the start of every import run and
stays fixed for the rest of that run. A catalog that cannot be read makes
the whole run fail; partial matching against an empty catalog would
report every title as unmatched.
"""

from typing import Optional
import structlog
from supabase import Client

from config.database import fetch_all
from models.product import CatalogProduct
from exceptions import UpstreamUnavailableError

logger = structlog.get_logger(__name__)

PRICE_CHUNK_SIZE = 200  # ids per in_() filter, keeps the request URL short
CATALOG_COLUMNS = "id, name, price, series_code, product_code"


class CatalogService:
    """Read-only access to canonical products."""

    def __init__(self, db: Client):
        self.db = db
        self.table = "products"

    def list_products(self) -> list[CatalogProduct]:
        """
        Get all catalog products in id order.

        Returns:
            List of CatalogProduct

        Raises:
            UpstreamUnavailableError: If the catalog cannot be read
        """
        try:
            rows = fetch_all(
                lambda: self.db.table(self.table).select(CATALOG_COLUMNS).order("id")
            )
        except Exception as e:
            logger.error("catalog_read_failed", error=str(e))
            raise UpstreamUnavailableError("catalog", str(e))

        products = [CatalogProduct(**row) for row in rows]

        logger.info("catalog_loaded", count=len(products))
        return products

    def get_prices(self, product_ids: list[str]) -> dict[str, Optional[float]]:
        """
        Unit prices for the given products.

        Products missing from the catalog are absent from the result;
        products without a price map to None.

        Raises:
            UpstreamUnavailableError: If the catalog cannot be read
        """
        if not product_ids:
            return {}

        ids = list(dict.fromkeys(product_ids))
        rows: list[dict] = []

        try:
            for start in range(0, len(ids), PRICE_CHUNK_SIZE):
                chunk = ids[start:start + PRICE_CHUNK_SIZE]
                result = (
                    self.db.table(self.table)
                    .select("id, price")
                    .in_("id", chunk)
                    .execute()
                )
                rows.extend(result.data or [])
        except Exception as e:
            logger.error("catalog_price_read_failed", error=str(e))
            raise UpstreamUnavailableError("catalog", str(e))

        prices = {}
        for row in rows:
            price = row.get("price")
            prices[str(row["id"])] = float(price) if price is not None else None
        return prices
