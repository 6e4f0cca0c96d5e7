"""
Admin profile routes
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_admin
from app.core.database import get_db
from app.core.security import Principal
from app.models.user import Admin
from app.schemas.user import AdminResponse, ProfileCreate, ProfileUpdate
from app.services import profile_service

router = APIRouter()


@router.post("", response_model=AdminResponse, status_code=status.HTTP_201_CREATED)
async def create_admin(
    payload: ProfileCreate,
    db: AsyncSession = Depends(get_db),
    admin: Principal = Depends(get_current_admin),
):
    return await profile_service.create_profile(db, Admin, payload.model_dump())


@router.get("/{cognito_id}", response_model=AdminResponse)
async def get_admin(
    cognito_id: str,
    db: AsyncSession = Depends(get_db),
    admin: Principal = Depends(get_current_admin),
):
    return await profile_service.get_profile(db, Admin, cognito_id)


@router.put("/{cognito_id}", response_model=AdminResponse)
async def update_admin(
    cognito_id: str,
    payload: ProfileUpdate,
    db: AsyncSession = Depends(get_db),
    admin: Principal = Depends(get_current_admin),
):
    changes = payload.model_dump(exclude_unset=True)
    return await profile_service.update_profile(db, Admin, cognito_id, changes)
