"""
api/main.py -- FastAPI application entry point for SheetShelf.

Run with:  uvicorn asgi:app --reload

Middleware stack (add_middleware order; the last one added runs first):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter
  4. log_requests          -- one access-log line per request

Lifespan builds every long-lived collaborator from Settings (stores, catalog
client, services) and tears them down symmetrically. Settings are resolved
before the app object exists: importing this module without a valid
SECRET_KEY raises, so the server refuses to start.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.users import router as users_router
from api.routes.v1.works import router as works_router
from auth.store import UserStore
from cache.store import CatalogCache
from core.catalog import CatalogClient
from core.config import Settings, get_settings
from core.errors import SheetShelfError
from library.directory import UserDirectory
from library.manager import LibraryManager
from library.store import LibraryStore

__version__ = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("sheetshelf.api")

# Fatal at boot, not per request.
_settings: Settings = get_settings()

# ---------------------------------------------------------------------------
# Background purge task
# ---------------------------------------------------------------------------


async def _purge_loop(app: FastAPI) -> None:
    """Purge expired catalog cache entries every 6 hours.

    CancelledError from task.cancel() during shutdown propagates out of
    asyncio.sleep and unwinds the coroutine cleanly.
    """
    while True:
        await asyncio.sleep(6 * 60 * 60)
        removed = app.state.catalog_cache.purge_expired()
        logger.info("Catalog cache purge removed %d entries", removed)


def wire_services(app: FastAPI, user_store: UserStore, library_store: LibraryStore, catalog: CatalogClient) -> None:
    """Attach the domain services to app.state.

    Shared by the real lifespan and the test lifespan so both build the
    object graph the same way.
    """
    app.state.user_store = user_store
    app.state.library_store = library_store
    app.state.catalog = catalog
    app.state.library = LibraryManager(
        user_store,
        library_store,
        catalog,
        max_workers=_settings.catalog_max_workers,
    )
    app.state.directory = UserDirectory(user_store, app.state.library)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Startup order matters:
      1. Stores first -- they create their tables.
      2. Catalog cache and client -- enrichment depends on them.
      3. Services -- built from the above.
      4. Purge task last -- references app.state.catalog_cache.
    """
    logger.info("SheetShelf API starting up")
    user_store = UserStore(_settings.database_url)
    library_store = LibraryStore(_settings.database_url)
    app.state.catalog_cache = CatalogCache(_settings.catalog_cache_path, ttl=_settings.catalog_cache_ttl)
    catalog = CatalogClient(
        base_url=_settings.catalog_url,
        timeout=_settings.catalog_timeout,
        cache=app.state.catalog_cache,
    )
    wire_services(app, user_store, library_store, catalog)
    logger.info("Stores initialized (users=%s)", user_store.has_users())
    logger.info("Catalog client using %s", _settings.catalog_url)
    app.state.purge_task = asyncio.create_task(_purge_loop(app))

    yield

    app.state.purge_task.cancel()
    app.state.catalog_cache.close()
    library_store.close()
    user_store.close()
    logger.info("SheetShelf API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="SheetShelf API",
    description="Personal sheet-music library. Work metadata from Open Opus.",
    version=__version__,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
# ---------------------------------------------------------------------------

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=_settings.allowed_hosts,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_methods=["GET", "POST", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    allow_credentials=True,
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
app.include_router(users_router, prefix="/api/v1", tags=["Users"])
app.include_router(works_router, prefix="/api/v1", tags=["Works"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


def _error(status_code: int, code: str, message: str, detail: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail)).model_dump(),
    )


@app.exception_handler(SheetShelfError)
async def domain_error_handler(request: Request, exc: SheetShelfError) -> JSONResponse:
    """Map a domain error kind to its status code. The only place this mapping lives."""
    response = _error(exc.status_code, exc.code, exc.message, exc.detail)
    if exc.status_code == 401:
        response.headers["WWW-Authenticate"] = "Bearer"
    return response


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _error(429, "rate_limited", "Too many requests.", str(exc))
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request shape is a client error: 400, same envelope as every other failure."""
    return _error(400, "validation_error", "Request validation failed.", str(exc.errors()))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Structured envelope for framework-raised HTTP errors (404 route, 405 method)."""
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})
    return _error(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception goes to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health endpoint
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", include_in_schema=True, tags=["Health"])
async def health() -> HealthResponse:
    """Return API liveness and current version."""
    return HealthResponse(version=__version__)
