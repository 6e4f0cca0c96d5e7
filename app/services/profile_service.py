"""
Profile Service - customer and admin records

Profiles are keyed by the identity provider subject (cognito_id). The
frontend never registers users explicitly: the first authenticated request
creates the matching record from the token claims.
"""
import logging
from typing import Mapping, Optional, Type, Union

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.core.security import Principal
from app.models.product import Product
from app.models.user import Admin, User

logger = logging.getLogger(__name__)

Profile = Union[User, Admin]

PROFILE_FIELDS = ("name", "email", "phone_number")


def _resource_type(model: Type[Profile]) -> str:
    return "admin" if model is Admin else "user"


async def find_profile(db: AsyncSession, model: Type[Profile], cognito_id: str) -> Optional[Profile]:
    result = await db.execute(
        select(model)
        .where(model.cognito_id == cognito_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_profile(db: AsyncSession, model: Type[Profile], cognito_id: str) -> Profile:
    profile = await find_profile(db, model, cognito_id)
    if not profile:
        kind = _resource_type(model)
        raise NotFoundError(f"{kind.capitalize()} not found", resource_type=kind, resource_id=cognito_id)
    return profile


async def create_profile(db: AsyncSession, model: Type[Profile], data: Mapping[str, Optional[str]]) -> Profile:
    """Insert a profile; 409 if the subject already has one."""
    cognito_id = (data.get("cognito_id") or "").strip()
    if not cognito_id:
        raise ValidationError("cognitoId is required", missing_fields=["cognitoId"])

    profile = model(cognito_id=cognito_id, **{k: data.get(k) for k in PROFILE_FIELDS})
    db.add(profile)
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        kind = _resource_type(model)
        raise ConflictError(f"{kind.capitalize()} {cognito_id} already exists") from e

    logger.info(f"Created {_resource_type(model)} profile for {cognito_id}")
    return await get_profile(db, model, cognito_id)


async def update_profile(
    db: AsyncSession,
    model: Type[Profile],
    cognito_id: str,
    changes: Mapping[str, Optional[str]],
) -> Profile:
    """Overwrite the provided profile fields."""
    profile = await get_profile(db, model, cognito_id)
    for attribute in PROFILE_FIELDS:
        if attribute in changes:
            setattr(profile, attribute, changes[attribute])
    await db.commit()
    return await get_profile(db, model, cognito_id)


async def ensure_profile(db: AsyncSession, principal: Principal) -> Profile:
    """Load the caller's profile, creating it from the token claims if absent."""
    model = Admin if principal.is_admin else User
    profile = await find_profile(db, model, principal.subject)
    if profile:
        return profile

    claims = principal.claims
    return await create_profile(db, model, {
        "cognito_id": principal.subject,
        "name": claims.get("name") or claims.get("cognito:username"),
        "email": claims.get("email"),
        "phone_number": claims.get("phone_number"),
    })


async def _get_product(db: AsyncSession, product_id: int) -> Product:
    product = await db.get(Product, product_id)
    if not product:
        raise NotFoundError("Product not found", resource_type="product", resource_id=product_id)
    return product


async def add_favorite(db: AsyncSession, cognito_id: str, product_id: int) -> User:
    user = await get_profile(db, User, cognito_id)
    if any(favorite.id == product_id for favorite in user.favorites):
        raise ConflictError("Product already added as favorite")

    product = await _get_product(db, product_id)
    user.favorites.append(product)
    await db.commit()
    return await get_profile(db, User, cognito_id)


async def remove_favorite(db: AsyncSession, cognito_id: str, product_id: int) -> User:
    user = await get_profile(db, User, cognito_id)
    remaining = [favorite for favorite in user.favorites if favorite.id != product_id]
    if len(remaining) != len(user.favorites):
        user.favorites = remaining
        await db.commit()
    return await get_profile(db, User, cognito_id)
