"""
Category schemas
"""
from typing import Any, Optional

from app.schemas.base import CamelModel


class CategoryCreate(CamelModel):
    # Validated by the service so that bad names are a 400, not a 422
    name: Optional[Any] = None


class CategoryResponse(CamelModel):
    id: int
    name: str


class CategoryCreated(CamelModel):
    message: str
    category: CategoryResponse
