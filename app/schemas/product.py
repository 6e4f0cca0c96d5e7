"""
Product schemas
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import field_validator

from app.schemas.base import CamelModel
from app.schemas.category import CategoryResponse


class SpecItem(CamelModel):
    key: str
    value: str


class ProductResponse(CamelModel):
    id: int
    name: str
    slug: str
    description: Optional[str] = None
    price: Decimal
    stock: int = 0
    discount_percent: Optional[int] = None
    warranty: Optional[str] = None
    average_rating: Optional[Decimal] = None
    review_count: Optional[int] = None
    image_url: Optional[str] = None
    image_urls: Optional[List[str]] = None
    specs: Optional[List[SpecItem]] = None
    category_id: int
    category: Optional[CategoryResponse] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    # Handle NULL values from database
    @field_validator('stock', mode='before')
    @classmethod
    def default_int(cls, v):
        return v if v is not None else 0


class ProductList(CamelModel):
    products: List[ProductResponse]
    total: int
    page: int
    page_size: int


class ProductMutationResponse(CamelModel):
    message: str
    product: ProductResponse


class ProductDeleted(CamelModel):
    message: str
    deleted_product_id: int
