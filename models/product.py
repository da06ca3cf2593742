"""
Catalog product schema.

Products are read-only here; the catalog is owned by another service.
"""

from typing import Optional
from pydantic import Field, field_validator

from models.base import BaseSchema


class CatalogProduct(BaseSchema):
    """Canonical product a listing title can resolve to."""

    id: str = Field(..., description="Product ID")
    name: str = Field(..., description="Canonical product name")
    price: Optional[float] = Field(None, ge=0, description="Unit price, None when unknown")
    series_code: Optional[str] = None
    product_code: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        """Catalog ids may be integers in older tables."""
        if v is not None:
            return str(v)
        return v

    @field_validator("name", mode="before")
    @classmethod
    def default_name(cls, v):
        return v or ""
