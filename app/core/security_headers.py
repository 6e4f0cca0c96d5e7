"""
Security headers middleware

Adds a strict CSP and the usual hardening headers to every API response.
Swagger/ReDoc get a relaxed CSP so the docs UI can load its assets.
"""
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.core.config import settings

DOCS_PATHS = ("/docs", "/redoc", "/openapi.json")


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Attach CSP, nosniff, frame and referrer headers to responses."""

    CSP_DIRECTIVES = {
        "default-src": "'self'",
        "img-src": "'self' data: https:",  # product images are served from S3
        "frame-ancestors": "'none'",
        "base-uri": "'self'",
        "object-src": "'none'",
    }

    DOCS_CSP_DIRECTIVES = {
        "default-src": "'self'",
        "script-src": "'self' 'unsafe-inline' https://cdn.jsdelivr.net",
        "style-src": "'self' 'unsafe-inline' https://cdn.jsdelivr.net",
        "img-src": "'self' data: https:",
        "frame-ancestors": "'self'",
    }

    def _build_csp(self, directives: dict) -> str:
        return "; ".join(f"{key} {value}" for key, value in directives.items())

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)

        if request.url.path in DOCS_PATHS:
            csp = self._build_csp(self.DOCS_CSP_DIRECTIVES)
        else:
            csp = self._build_csp(self.CSP_DIRECTIVES)

        response.headers["Content-Security-Policy"] = csp
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        if settings.ENVIRONMENT == "production" and not settings.DEBUG:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )

        return response
