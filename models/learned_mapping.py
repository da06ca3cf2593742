"""
Learned title mapping schemas.
"""

from typing import Optional
from pydantic import Field

from models.base import BaseSchema


class LearnRequest(BaseSchema):
    """Operator-confirmed title to product mapping."""

    source_title: str = Field("", description="Listing title as it appears in the export")
    product_id: str = Field("", description="Product the title refers to")


class LearnedMapping(BaseSchema):
    """Stored mapping, keyed by normalized title."""

    channel: str
    source_title: str
    product_id: str
    product_name: Optional[str] = None


class LearnedMappingListResponse(BaseSchema):
    channel: str
    data: list[LearnedMapping]
    total: int


class MappingResetResponse(BaseSchema):
    channel: str
    deleted: int
