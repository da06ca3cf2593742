"""
Marketplace export layouts.

Every channel is described by one MarketplaceAdapter. The tabular parser,
matcher, reducer and ledger writer are shared; only the layout differs.
"""

from dataclasses import dataclass
from typing import Optional

from exceptions import UnknownChannelError


@dataclass(frozen=True)
class MarketplaceAdapter:
    """Column layout and storage names for one marketplace export."""
    channel: str
    display_name: str
    header_rows: int
    title_column: int
    quantity_column: int
    min_columns: int
    header_marker: Optional[str] = None  # Cell text identifying the header row
    title_header: Optional[str] = None  # Header keyword for the title column
    quantity_header: Optional[str] = None  # Header keyword for the quantity column
    order_amount_column: Optional[int] = None  # Rows with a zero order amount are free samples

    @property
    def ledger_count_column(self) -> str:
        return f"{self.channel}_count"

    @property
    def ledger_amount_column(self) -> str:
        return f"{self.channel}_amount"

    @property
    def mapping_table(self) -> str:
        return f"{self.channel}_product_mapping"

    @property
    def mapping_title_column(self) -> str:
        return f"{self.channel}_title"

    def to_dict(self) -> dict:
        return {
            "channel": self.channel,
            "display_name": self.display_name,
            "header_rows": self.header_rows,
            "title_column": self.title_column,
            "quantity_column": self.quantity_column,
            "min_columns": self.min_columns,
            "order_amount_column": self.order_amount_column,
        }


AMAZON = MarketplaceAdapter(
    channel="amazon",
    display_name="Amazon",
    header_rows=1,
    title_column=2,
    quantity_column=13,
    min_columns=14,
    title_header="タイトル",
    quantity_header="注文された商品点数",
)

RAKUTEN = MarketplaceAdapter(
    channel="rakuten",
    display_name="楽天",
    header_rows=7,
    title_column=0,
    quantity_column=4,
    min_columns=5,
    header_marker="商品名",
)

YAHOO = MarketplaceAdapter(
    channel="yahoo",
    display_name="Yahoo!",
    header_rows=1,
    title_column=0,
    quantity_column=5,
    min_columns=6,
)

MERCARI = MarketplaceAdapter(
    channel="mercari",
    display_name="メルカリ",
    header_rows=1,
    title_column=8,
    quantity_column=9,
    min_columns=10,
)

QOO10 = MarketplaceAdapter(
    channel="qoo10",
    display_name="Qoo10",
    header_rows=1,
    title_column=13,
    quantity_column=14,
    min_columns=15,
)

BASE = MarketplaceAdapter(
    channel="base",
    display_name="BASE",
    header_rows=1,
    title_column=17,
    quantity_column=21,
    min_columns=22,
)

TIKTOK = MarketplaceAdapter(
    channel="tiktok",
    display_name="TikTok Shop",
    header_rows=1,
    title_column=7,
    quantity_column=9,
    min_columns=25,
    order_amount_column=21,
)

ADAPTERS: dict[str, MarketplaceAdapter] = {
    adapter.channel: adapter
    for adapter in (AMAZON, RAKUTEN, YAHOO, MERCARI, QOO10, BASE, TIKTOK)
}


def get_adapter(channel: str) -> MarketplaceAdapter:
    """
    Look up the adapter for a channel name (case-insensitive).

    Raises:
        UnknownChannelError: If no adapter is registered
    """
    adapter = ADAPTERS.get((channel or "").strip().lower())
    if adapter is None:
        raise UnknownChannelError(channel, sorted(ADAPTERS))
    return adapter


def list_adapters() -> list[MarketplaceAdapter]:
    return list(ADAPTERS.values())
