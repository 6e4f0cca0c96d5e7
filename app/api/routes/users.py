"""
Customer profile routes

A customer may read and edit only their own profile; admins may read any.
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_principal, require_self_or_admin
from app.core.database import get_db
from app.core.security import Principal
from app.models.user import User
from app.schemas.user import ProfileCreate, ProfileUpdate, UserResponse
from app.services import profile_service

router = APIRouter()


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: ProfileCreate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    require_self_or_admin(payload.cognito_id, principal)
    return await profile_service.create_profile(db, User, payload.model_dump())


@router.get("/{cognito_id}", response_model=UserResponse)
async def get_user(
    cognito_id: str,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Get a customer profile with favorites"""
    require_self_or_admin(cognito_id, principal)
    return await profile_service.get_profile(db, User, cognito_id)


@router.put("/{cognito_id}", response_model=UserResponse)
async def update_user(
    cognito_id: str,
    payload: ProfileUpdate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    require_self_or_admin(cognito_id, principal)
    changes = payload.model_dump(exclude_unset=True)
    return await profile_service.update_profile(db, User, cognito_id, changes)


@router.post("/{cognito_id}/favorites/{product_id}", response_model=UserResponse)
async def add_favorite(
    cognito_id: str,
    product_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Add a product to the customer's favorites; 409 if already there"""
    require_self_or_admin(cognito_id, principal)
    return await profile_service.add_favorite(db, cognito_id, product_id)


@router.delete("/{cognito_id}/favorites/{product_id}", response_model=UserResponse)
async def remove_favorite(
    cognito_id: str,
    product_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    require_self_or_admin(cognito_id, principal)
    return await profile_service.remove_favorite(db, cognito_id, product_id)
