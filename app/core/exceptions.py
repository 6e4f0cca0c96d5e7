"""
Izzo Computers Exception Hierarchy

Structured exception classes for the catalog services. Every exception
carries a code, message and details so route handlers can render a
consistent JSON error body and the logs keep the same context.

Exception Hierarchy:
    StoreBaseError
    ├── ValidationError        (400)
    ├── BadReferenceError      (400)
    ├── AuthenticationError    (401)
    ├── PermissionDeniedError  (403)
    ├── NotFoundError          (404)
    └── ConflictError          (409)

Object storage failures are deliberately absent: they are logged where
they happen and never surface to the caller.
"""
import logging
from typing import Optional, Dict, Any, List

from fastapi import Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

logger = logging.getLogger(__name__)


class StoreBaseError(Exception):
    """
    Base exception for all Izzo Computers domain errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code for programmatic handling
        details: Additional context for debugging/audit
        status_code: HTTP status the API layer responds with
    """

    default_code: str = "STORE_ERROR"
    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"


class ValidationError(StoreBaseError):
    """Required field missing or malformed input."""
    default_code = "VALIDATION_FAILED"
    status_code = 400

    def __init__(
        self,
        message: str,
        missing_fields: Optional[List[str]] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        if missing_fields:
            details["missing_fields"] = missing_fields
        super().__init__(message, details=details, **kwargs)


class BadReferenceError(StoreBaseError):
    """A foreign key points at a record that does not exist."""
    default_code = "BAD_REFERENCE"
    status_code = 400


class AuthenticationError(StoreBaseError):
    """Missing, malformed or expired bearer token."""
    default_code = "NOT_AUTHENTICATED"
    status_code = 401


class PermissionDeniedError(StoreBaseError):
    """Authenticated caller lacks the required role."""
    default_code = "PERMISSION_DENIED"
    status_code = 403


class NotFoundError(StoreBaseError):
    """Requested record does not exist."""
    default_code = "NOT_FOUND"
    status_code = 404

    def __init__(
        self,
        message: str,
        resource_type: Optional[str] = None,
        resource_id: Optional[Any] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        details.update({
            "resource_type": resource_type,
            "resource_id": resource_id,
        })
        super().__init__(message, details=details, **kwargs)


class ConflictError(StoreBaseError):
    """Unique constraint violation (duplicate slug, category name, ...)."""
    default_code = "CONFLICT"
    status_code = 409


# =============================================================================
# INTEGRITY ERROR CLASSIFICATION
# =============================================================================

UNIQUE_VIOLATION_SQLSTATE = "23505"
FOREIGN_KEY_VIOLATION_SQLSTATE = "23503"


def _sqlstate(error: IntegrityError) -> Optional[str]:
    orig = getattr(error, "orig", None)
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


def is_unique_violation(error: IntegrityError) -> bool:
    """True when the database rejected a write on a unique constraint."""
    if _sqlstate(error) == UNIQUE_VIOLATION_SQLSTATE:
        return True
    message = str(getattr(error, "orig", error)).lower()
    return "unique" in message or "duplicate key" in message


def is_foreign_key_violation(error: IntegrityError) -> bool:
    """True when the database rejected a write on a foreign key."""
    if _sqlstate(error) == FOREIGN_KEY_VIOLATION_SQLSTATE:
        return True
    return "foreign key" in str(getattr(error, "orig", error)).lower()


# =============================================================================
# FASTAPI HANDLER
# =============================================================================

async def store_error_handler(request: Request, exc: StoreBaseError) -> JSONResponse:
    """Render a domain error as a JSON response."""
    if exc.status_code >= 500:
        logger.error(f"{exc!r} on {request.method} {request.url.path}")
    else:
        logger.info(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "message": exc.message,
            "error": exc.code,
            "details": exc.details,
        },
    )
