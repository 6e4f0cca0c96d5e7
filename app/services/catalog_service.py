"""
Catalog Query Service

Flat filter-then-paginate over products. The page and the total are two
queries sharing one predicate.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.exceptions import ValidationError
from app.models.product import Product
from app.utils.sanitizers import (
    SanitizationError,
    sanitize_boolean,
    sanitize_decimal,
    sanitize_integer,
    sanitize_string,
)

logger = logging.getLogger(__name__)

ALLOWED_PAGE_SIZES = (10, 20, 50, 100)
DEFAULT_PAGE_SIZE = 20
SORT_OPTIONS = ("newest", "price_asc", "price_desc", "rating")


@dataclass
class CatalogFilters:
    category_id: Optional[int] = None
    price_min: Optional[Decimal] = None
    price_max: Optional[Decimal] = None
    in_stock: bool = False
    search: Optional[str] = None
    sort: str = "newest"
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    @classmethod
    def from_query(
        cls,
        category_id: Optional[str] = None,
        price_min: Optional[str] = None,
        price_max: Optional[str] = None,
        in_stock: Optional[str] = None,
        search: Optional[str] = None,
        sort: Optional[str] = None,
        page: Optional[str] = None,
        page_size: Optional[str] = None,
    ) -> "CatalogFilters":
        """Parse raw query-string values; anything malformed is a 400."""
        try:
            filters = cls(
                category_id=sanitize_integer(category_id, "categoryId", min_value=1, strict=True),
                price_min=sanitize_decimal(price_min, "priceMin", min_value=Decimal("0"), strict=True),
                price_max=sanitize_decimal(price_max, "priceMax", min_value=Decimal("0"), strict=True),
                in_stock=bool(sanitize_boolean(in_stock)),
                search=sanitize_string(search, "search", max_length=200),
                sort=sanitize_string(sort, "sort") or "newest",
                page=sanitize_integer(page, "page", min_value=1, strict=True) or 1,
                page_size=sanitize_integer(page_size, "pageSize", strict=True) or DEFAULT_PAGE_SIZE,
            )
        except SanitizationError as e:
            raise ValidationError(str(e), details={"field": e.field_name}) from e

        if filters.page_size not in ALLOWED_PAGE_SIZES:
            raise ValidationError(
                f"pageSize must be one of {', '.join(str(size) for size in ALLOWED_PAGE_SIZES)}",
                details={"field": "pageSize"},
            )
        if filters.sort not in SORT_OPTIONS:
            # Unknown sort keys (e.g. the storefront's "featured") fall back to newest
            filters.sort = "newest"
        if (
            filters.price_min is not None
            and filters.price_max is not None
            and filters.price_min > filters.price_max
        ):
            raise ValidationError("priceMin cannot be greater than priceMax")
        return filters


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _apply_filters(query, filters: CatalogFilters):
    if filters.category_id is not None:
        query = query.where(Product.category_id == filters.category_id)
    if filters.price_min is not None:
        query = query.where(Product.price >= filters.price_min)
    if filters.price_max is not None:
        query = query.where(Product.price <= filters.price_max)
    if filters.in_stock:
        query = query.where(Product.stock > 0)
    if filters.search:
        search_term = f"%{_escape_like(filters.search)}%"
        query = query.where(
            or_(
                Product.name.ilike(search_term, escape="\\"),
                Product.description.ilike(search_term, escape="\\"),
            )
        )
    return query


def _apply_sort(query, sort: str):
    if sort == "price_asc":
        return query.order_by(Product.price.asc(), Product.id.asc())
    if sort == "price_desc":
        return query.order_by(Product.price.desc(), Product.id.desc())
    if sort == "rating":
        return query.order_by(Product.average_rating.desc().nulls_last(), Product.id.desc())
    return query.order_by(Product.created_at.desc(), Product.id.desc())


async def search_products(db: AsyncSession, filters: CatalogFilters) -> Tuple[List[Product], int]:
    """Return the requested page and the total number of matches."""
    count_query = _apply_filters(select(func.count(Product.id)), filters)
    total = await db.scalar(count_query)

    page_query = _apply_filters(
        select(Product).options(selectinload(Product.category)),
        filters,
    )
    page_query = _apply_sort(page_query, filters.sort)
    page_query = page_query.offset(filters.offset).limit(filters.page_size)

    result = await db.execute(page_query)
    products = list(result.scalars().all())
    return products, total or 0
