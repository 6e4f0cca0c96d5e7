"""
Auth routes

Sign-in happens at the identity provider. The client calls /me after
sign-in to resolve its role and profile.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_principal
from app.core.database import get_db
from app.core.security import Principal
from app.models.user import Admin
from app.schemas.user import AdminResponse, AuthUserResponse, UserResponse
from app.services import profile_service

router = APIRouter()


@router.get("/me", response_model=AuthUserResponse)
async def get_me(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Get the caller's profile, creating it on first sign-in"""
    profile = await profile_service.ensure_profile(db, principal)
    info_schema = AdminResponse if isinstance(profile, Admin) else UserResponse
    return AuthUserResponse(
        user_role=principal.role,
        user_info=info_schema.model_validate(profile),
    )
