"""
Security utilities - bearer token verification

Tokens are issued by the managed identity provider (Cognito). This module
only verifies them and exposes the claims; it never issues production
tokens. Verification uses either:

- the provider's JWKS (AUTH_JWKS_URL), fetched once with httpx and cached;
- a shared key (SECRET_KEY / ALGORITHM), used for local development and tests.
"""
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import httpx
from jose import JWTError, jwt

from app.core.config import settings

logger = logging.getLogger(__name__)

ROLE_ADMIN = "admin"
ROLE_USER = "user"

_jwks_cache: Optional[Dict[str, Any]] = None


@dataclass
class Principal:
    """Authenticated caller as described by the token claims."""
    subject: str
    role: str
    claims: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


async def get_jwks() -> Dict[str, Any]:
    """Fetch (and cache) the identity provider's JSON Web Key Set."""
    global _jwks_cache
    if _jwks_cache is None:
        async with httpx.AsyncClient(timeout=settings.AUTH_JWKS_TIMEOUT_SECONDS) as client:
            response = await client.get(settings.AUTH_JWKS_URL)
            response.raise_for_status()
            _jwks_cache = response.json()
        logger.info(f"Loaded {len(_jwks_cache.get('keys', []))} signing keys from JWKS")
    return _jwks_cache


def clear_jwks_cache() -> None:
    global _jwks_cache
    _jwks_cache = None


async def decode_token(token: str) -> Optional[dict]:
    """Decode and validate a bearer token. Returns None when invalid."""
    options = {"verify_aud": bool(settings.AUTH_AUDIENCE), "verify_sub": False}
    audience = settings.AUTH_AUDIENCE or None

    try:
        if settings.AUTH_JWKS_URL:
            jwks = await get_jwks()
            return jwt.decode(
                token,
                jwks,
                algorithms=["RS256"],
                audience=audience,
                options=options,
            )
        return jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM],
            audience=audience,
            options=options,
        )
    except JWTError as e:
        logger.info(f"Rejected bearer token: {e}")
        return None
    except httpx.HTTPError as e:
        logger.error(f"Could not load JWKS from identity provider: {e}")
        return None


def principal_from_claims(payload: dict) -> Optional[Principal]:
    """Build a Principal from verified claims; None when the subject is missing."""
    subject = payload.get("sub")
    if not subject:
        return None
    role = payload.get(settings.AUTH_ROLE_CLAIM) or ROLE_USER
    return Principal(subject=str(subject), role=str(role), claims=payload)


def create_access_token(
    subject: str,
    role: str = ROLE_USER,
    extra_claims: Optional[dict] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a shared-key token shaped like an identity provider ID token.

    Only meaningful when AUTH_JWKS_URL is unset (local development, tests).
    """
    now = datetime.now(timezone.utc)
    to_encode = dict(extra_claims or {})
    to_encode.update({
        "sub": str(subject),
        settings.AUTH_ROLE_CLAIM: role,
        "exp": now + (expires_delta or timedelta(hours=1)),
        "iat": now,
        "jti": str(uuid.uuid4()),
    })
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
