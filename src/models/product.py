"""Catalog models read by the recommendation engine."""

from typing import Optional

from pydantic import BaseModel, Field


class Product(BaseModel):
    """Catalog product."""

    product_id: str
    name: str
    category: str
    price: float = Field(ge=0)
    rating: float = Field(default=0.0, ge=0, le=5)
    product_page_url: Optional[str] = None
    is_active: bool = True


class ProductAssociation(BaseModel):
    """Directed co-purchase strength from a source product to another."""

    product_id: str
    associated_product_id: str
    strength: float = Field(ge=0, le=100)
