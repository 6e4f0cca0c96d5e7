"""
Izzo Computers Backend
FastAPI application entry point

- Blob cleanup scheduler with heartbeat on /health
- Rate limiting with SlowAPI
- Error sanitization middleware
- Security headers (CSP, X-Frame-Options, etc.)
- Request size limits for image uploads
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from app.api.routes import admins, auth, products, users
from app.core.config import settings
from app.core.database import AsyncSessionLocal, init_models
from app.core.error_handler import ErrorSanitizationMiddleware
from app.core.exceptions import StoreBaseError, store_error_handler
from app.core.rate_limit import limiter, rate_limit_exceeded_handler
from app.core.security_headers import SecurityHeadersMiddleware
from app.jobs import blob_cleanup
from app.services.storage import get_storage

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

_blob_cleanup_task: Optional[asyncio.Task] = None

MAX_REQUEST_SIZE = settings.MAX_REQUEST_SIZE_MB * 1024 * 1024


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Create tables, check the image bucket and start the blob cleanup
    scheduler on startup; stop the scheduler on shutdown.
    """
    global _blob_cleanup_task

    await init_models()

    await asyncio.to_thread(get_storage().validate_configuration_once)

    if settings.BLOB_CLEANUP_ENABLED:
        _blob_cleanup_task = asyncio.create_task(blob_cleanup.blob_cleanup_scheduler())
        logger.info("Blob cleanup scheduler ENABLED")
    else:
        logger.info("Blob cleanup scheduler DISABLED via config")

    yield

    if _blob_cleanup_task and not _blob_cleanup_task.done():
        _blob_cleanup_task.cancel()
        try:
            await _blob_cleanup_task
        except asyncio.CancelledError:
            logger.info("Blob cleanup scheduler cancelled")


app = FastAPI(
    lifespan=lifespan,
    title="Izzo Computers API",
    description="""
## Izzo Computers Storefront API

Catalog and admin backend for the Izzo Computers hardware store.

### Features
- **Products**: Browse, filter and search the catalog
- **Admin**: Create, edit and delete products with image uploads
- **Profiles**: Customer and admin profiles with favorites

### Authentication
Sign in at the identity provider and send the ID token as
`Authorization: Bearer <token>`. Admin routes require the admin role claim.
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
app.add_exception_handler(StoreBaseError, store_error_handler)


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject requests that exceed the size limit."""

    async def dispatch(self, request: Request, call_next):
        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > MAX_REQUEST_SIZE:
            client_host = request.client.host if request.client else "unknown"
            logger.warning(
                f"Request size limit exceeded: {content_length} bytes from {client_host}"
            )
            return JSONResponse(
                status_code=413,
                content={
                    "error": "request_too_large",
                    "message": f"Request body exceeds maximum size of {settings.MAX_REQUEST_SIZE_MB}MB",
                },
            )
        return await call_next(request)


app.add_middleware(RequestSizeLimitMiddleware)
app.add_middleware(ErrorSanitizationMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
app.include_router(products.router, prefix="/api/products", tags=["Products"])
app.include_router(users.router, prefix="/api/users", tags=["Users"])
app.include_router(admins.router, prefix="/api/admins", tags=["Admins"])


@app.get("/", tags=["Health"])
async def root():
    return {
        "message": "Izzo Computers API",
        "status": "operational",
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check with a DB ping and the blob cleanup heartbeat.
    Returns 503 if the database is unreachable.
    """
    health_status = {
        "status": "healthy",
        "database": "unknown",
        "blob_cleanup": blob_cleanup.heartbeat,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    try:
        async with AsyncSessionLocal() as db:
            await db.execute(text("SELECT 1"))
        health_status["database"] = "connected"
    except Exception as e:
        health_status["database"] = f"error: {type(e).__name__}: {str(e)[:100]}"
        health_status["status"] = "unhealthy"
        return JSONResponse(status_code=503, content=health_status)

    return health_status
