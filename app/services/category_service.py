"""
Category Service

Categories are created standalone or inline from the product form. Names
are unique regardless of case ("Laptops" and "laptops" collide).
"""
import logging
from typing import List

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError, ValidationError, is_unique_violation
from app.models.category import Category

logger = logging.getLogger(__name__)

MIN_NAME_LENGTH = 2
MAX_NAME_LENGTH = 50


async def list_categories(db: AsyncSession) -> List[Category]:
    result = await db.execute(select(Category).order_by(Category.name.asc()))
    return list(result.scalars().all())


async def create_category(db: AsyncSession, name) -> Category:
    """Create a category; 400 on a bad name, 409 on a case-insensitive duplicate."""
    if not name or not isinstance(name, str):
        raise ValidationError("Category name is required and must be a string")

    trimmed = name.strip()
    if len(trimmed) < MIN_NAME_LENGTH:
        raise ValidationError(f"Category name must be at least {MIN_NAME_LENGTH} characters long")
    if len(trimmed) > MAX_NAME_LENGTH:
        raise ValidationError(f"Category name cannot exceed {MAX_NAME_LENGTH} characters")

    existing = await db.execute(
        select(Category).where(func.lower(Category.name) == trimmed.lower())
    )
    if existing.scalar_one_or_none():
        raise ConflictError(f'Category "{trimmed}" already exists')

    category = Category(name=trimmed)
    db.add(category)
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        if is_unique_violation(e):
            raise ConflictError("A category with this name already exists") from e
        raise

    await db.refresh(category)
    logger.info(f"Created category {category.id} ({category.name})")
    return category
