"""
Marketplace export parsers module.
"""

from parsers.marketplace_adapters import (
    MarketplaceAdapter,
    ADAPTERS,
    get_adapter,
    list_adapters,
)
from parsers.tabular_parser import (
    parse_listing_file,
    ListingParseResult,
    ListingRow,
)

__all__ = [
    "MarketplaceAdapter",
    "ADAPTERS",
    "get_adapter",
    "list_adapters",
    "parse_listing_file",
    "ListingParseResult",
    "ListingRow",
]
