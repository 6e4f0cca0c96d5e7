"""
API dependencies

Bearer tokens come from the identity provider; the role claim decides
between storefront customers and admin console users.
"""
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.security import Principal, decode_token, principal_from_claims
from app.services.product_service import ProductService
from app.services.storage import StorageService, get_storage

# Optional bearer - doesn't fail if no Authorization header
security = HTTPBearer(auto_error=False)


async def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Principal:
    """Get the authenticated caller from the bearer token."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if not credentials or not credentials.credentials:
        raise credentials_exception

    payload = await decode_token(credentials.credentials)
    if payload is None:
        raise credentials_exception

    principal = principal_from_claims(payload)
    if principal is None:
        raise credentials_exception
    return principal


async def get_current_admin(
    principal: Principal = Depends(get_current_principal),
) -> Principal:
    """Require the admin role."""
    if not principal.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return principal


def require_self_or_admin(cognito_id: str, principal: Principal) -> None:
    """Profiles are readable and writable by their owner or an admin."""
    if principal.subject != cognito_id and not principal.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not allowed to access this profile",
        )


def get_product_service(
    db: AsyncSession = Depends(get_db),
    storage: StorageService = Depends(get_storage),
) -> ProductService:
    return ProductService(db, storage)
