"""
Confirmation and ledger write schemas.
"""

from datetime import date
from enum import Enum
from typing import Optional
from pydantic import Field

from models.base import BaseSchema


class WritePolicy(str, Enum):
    """How a set of rows is persisted."""
    BEST_EFFORT = "best_effort"  # One upsert per row, failures reported per row
    ATOMIC = "atomic"  # One request, all rows or none


class WriteErrorKind(str, Enum):
    CONSTRAINT_VIOLATION = "constraint_violation"
    UNKNOWN = "unknown"


class ConfirmItem(BaseSchema):
    """One operator-approved match."""

    product_id: Optional[str] = Field(None, description="Product to credit; None means skip")
    quantity: int = Field(..., description="Units sold in the report month")
    source_title: Optional[str] = Field(None, description="Listing title, needed when learn is set")
    learn: bool = Field(False, description="Persist source_title -> product_id as a learned mapping")


class ConfirmRequest(BaseSchema):
    """Body of a confirm call."""

    month: str = Field(..., description="Report month, YYYY-MM or YYYY-MM-01")
    results: list[ConfirmItem] = Field(default_factory=list)
    policy: Optional[WritePolicy] = Field(None, description="Overrides the configured write policy")


class LedgerRow(BaseSchema):
    """Row sent to the monthly sales ledger for one product."""

    product_id: str
    report_month: date
    count: int
    amount: Optional[float] = None


class RowWriteError(BaseSchema):
    """A row that could not be written."""

    key: str
    kind: WriteErrorKind
    message: str


class WriteResult(BaseSchema):
    """Outcome of a confirm or plan save."""

    policy: WritePolicy
    success_count: int = 0
    error_count: int = 0
    skipped_count: int = 0
    total_count: int = 0
    rolled_back: bool = False
    errors: list[RowWriteError] = Field(default_factory=list)
    learned_mappings: int = 0
