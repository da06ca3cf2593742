"""
Delimited-text parser for marketplace sales exports.

Handles both CSV and TSV exports, quoted fields with embedded delimiters,
doubled-quote escapes, Shift-JIS encoded uploads, and quantities written
with thousands separators or full-width digits. Every physical line is
one record.

Rows that are too short are counted as malformed. Rows whose quantity is
zero or negative, and free-sample rows of channels that report an order
amount, are counted as skipped. Neither is fatal.
"""

from dataclasses import dataclass, field
import csv
import re
import unicodedata
from typing import Optional, Union
import structlog

from parsers.marketplace_adapters import MarketplaceAdapter

logger = structlog.get_logger(__name__)

# Constants
UPLOAD_ENCODINGS = ("utf-8-sig", "cp932", "shift_jis", "latin-1")
HEADER_SEARCH_LIMIT = 20  # Records scanned for a header marker

_LINE_BREAK = re.compile(r"\r\n|\r|\n")
_SEPARATORS = re.compile(r"[,\s]")
_INTEGER = re.compile(r"[-+]?\d+")


@dataclass
class ListingRow:
    """One data row of a marketplace export."""
    row_number: int
    title: str
    quantity: int


@dataclass
class MalformedRow:
    """A row with too few columns to read."""
    row: int
    reason: str


@dataclass
class SkippedRow:
    """A row that was skipped: non-positive quantity or a free sample."""
    row: int
    title: str
    quantity: int
    reason: str = "non_positive_quantity"


@dataclass
class ListingParseResult:
    """Result of parsing one marketplace export."""
    channel: str
    delimiter: str = ","
    rows: list[ListingRow] = field(default_factory=list)
    malformed_rows: list[MalformedRow] = field(default_factory=list)
    skipped_rows: list[SkippedRow] = field(default_factory=list)

    @property
    def total_rows(self) -> int:
        """Data rows seen after the header."""
        return len(self.rows) + len(self.malformed_rows) + len(self.skipped_rows)

    @property
    def total_quantity(self) -> int:
        return sum(r.quantity for r in self.rows)

    def to_dict(self) -> dict:
        """Convert to dictionary for API response."""
        return {
            "channel": self.channel,
            "delimiter": "tab" if self.delimiter == "\t" else "comma",
            "total_rows": self.total_rows,
            "rows": [
                {"row": r.row_number, "title": r.title, "quantity": r.quantity}
                for r in self.rows
            ],
            "malformed_rows": [
                {"row": m.row, "reason": m.reason}
                for m in self.malformed_rows
            ],
            "skipped_rows": [
                {"row": s.row, "title": s.title, "quantity": s.quantity, "reason": s.reason}
                for s in self.skipped_rows
            ],
        }


# ===================
# LOW-LEVEL SCANNING
# ===================

def decode_upload(content: Union[bytes, str]) -> str:
    """
    Decode uploaded bytes, trying UTF-8 first and then Japanese encodings.

    latin-1 accepts any byte sequence, so decoding never fails outright.
    """
    if isinstance(content, str):
        return content

    for encoding in UPLOAD_ENCODINGS:
        try:
            text = content.decode(encoding)
        except UnicodeDecodeError:
            continue
        if encoding != "utf-8-sig":
            logger.info("upload_decoded", encoding=encoding)
        return text

    return content.decode("latin-1", errors="replace")


def detect_delimiter(header_line: str) -> str:
    """
    Pick tab or comma by counting both in the header line.

    Tabs win ties as long as at least one tab is present.
    """
    tabs = header_line.count("\t")
    commas = header_line.count(",")
    if tabs > 0 and tabs >= commas:
        return "\t"
    return ","


def tokenize(text: str, delimiter: str) -> list[list[str]]:
    """
    Split delimited text into records of trimmed fields, one per line.

    Quoting follows csv rules within a line: a field that starts with a
    quote may contain the delimiter, and "" inside it produces a single
    quote. A quote in the middle of an unquoted field (24" monitor) is
    literal. A quote still open at the end of a line closes there, so a
    stray quote never swallows the lines after it. Whitespace-only
    lines produce no record.
    """
    records: list[list[str]] = []
    for line in _LINE_BREAK.split(text):
        fields = tokenize_line(line, delimiter)
        if not fields or fields == [""]:
            continue
        records.append(fields)
    return records


def tokenize_line(line: str, delimiter: str) -> list[str]:
    """Tokenize a single line. Returns [] for a blank line."""
    if not line.strip():
        return []

    reader = csv.reader([line], delimiter=delimiter, quotechar='"', skipinitialspace=True, strict=False)
    return [value.strip() for value in next(reader, [])]


def parse_quantity(raw: Optional[str]) -> int:
    """
    Parse a quantity cell.

    - "1,234" → 1234
    - "１２" → 12
    - "3個" → 3
    - "" / "abc" → 0
    """
    if raw is None:
        return 0

    text = unicodedata.normalize("NFKC", str(raw))
    text = _SEPARATORS.sub("", text)
    match = _INTEGER.search(text)
    if not match:
        return 0
    return int(match.group())


# ===================
# LISTING FILES
# ===================

def parse_listing_file(
    content: Union[bytes, str],
    adapter: MarketplaceAdapter,
) -> ListingParseResult:
    """
    Parse a marketplace export into listing rows.

    Args:
        content: Raw upload (bytes are decoded) or already-decoded text
        adapter: Column layout of the marketplace

    Returns:
        ListingParseResult with data rows, malformed rows and skipped rows
    """
    text = decode_upload(content)
    result = ListingParseResult(channel=adapter.channel)

    header_line = next((line for line in text.splitlines() if line.strip()), "")
    result.delimiter = detect_delimiter(header_line)

    records = tokenize(text, result.delimiter)
    data_start = _find_data_start(records, adapter)
    title_column, quantity_column, from_header = _resolve_columns(records, data_start, adapter)
    if from_header:
        min_columns = max(title_column, quantity_column) + 1
    else:
        min_columns = max(adapter.min_columns, title_column + 1, quantity_column + 1)
    amount_column = adapter.order_amount_column
    if amount_column is not None:
        min_columns = max(min_columns, amount_column + 1)

    for index in range(data_start, len(records)):
        record = records[index]
        row_number = index + 1

        if len(record) < min_columns:
            result.malformed_rows.append(MalformedRow(
                row=row_number,
                reason=f"Expected at least {min_columns} columns, got {len(record)}"
            ))
            continue

        title = record[title_column]
        quantity = parse_quantity(record[quantity_column])

        if quantity <= 0:
            result.skipped_rows.append(SkippedRow(
                row=row_number,
                title=title,
                quantity=quantity
            ))
            continue

        if amount_column is not None and parse_quantity(record[amount_column]) <= 0:
            result.skipped_rows.append(SkippedRow(
                row=row_number,
                title=title,
                quantity=quantity,
                reason="free_sample"
            ))
            continue

        result.rows.append(ListingRow(
            row_number=row_number,
            title=title,
            quantity=quantity
        ))

    logger.info(
        "listing_file_parsed",
        channel=adapter.channel,
        delimiter="tab" if result.delimiter == "\t" else "comma",
        rows=len(result.rows),
        malformed=len(result.malformed_rows),
        skipped=len(result.skipped_rows)
    )

    return result


def _find_data_start(records: list[list[str]], adapter: MarketplaceAdapter) -> int:
    """Index of the first data record."""
    if adapter.header_marker:
        for index, record in enumerate(records[:HEADER_SEARCH_LIMIT]):
            if any(adapter.header_marker in cell for cell in record):
                return index + 1

    return min(adapter.header_rows, len(records))


def _resolve_columns(
    records: list[list[str]],
    data_start: int,
    adapter: MarketplaceAdapter,
) -> tuple[int, int, bool]:
    """
    Title and quantity column indexes, and whether both came from the header.

    Uses header keywords when the adapter names them and the header row
    contains them, otherwise the adapter's fixed positions.
    """
    title_column = adapter.title_column
    quantity_column = adapter.quantity_column

    if data_start == 0 or not (adapter.title_header or adapter.quantity_header):
        return title_column, quantity_column, False

    header = records[data_start - 1]
    found_title = _find_header_cell(header, adapter.title_header)
    found_quantity = _find_header_cell(header, adapter.quantity_header)

    if found_title is not None:
        title_column = found_title
    if found_quantity is not None:
        quantity_column = found_quantity

    return title_column, quantity_column, found_title is not None and found_quantity is not None


def _find_header_cell(header: list[str], keyword: Optional[str]) -> Optional[int]:
    if not keyword:
        return None
    for index, cell in enumerate(header):
        if keyword in cell:
            return index
    return None
