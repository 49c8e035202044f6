"""
api/main.py -- Builds the Deltask FastAPI application.

Served through asgi.py (uvicorn asgi:app, or python main.py serve).

A request passes TrustedHost, then CORS, then SlowAPI before it reaches a
route. Stores are opened in the lifespan and hung off app.state, where the
route modules pick them up. Every failure, whether a domain error, a
validation error, a rate limit or a crash, is rendered as

    {"error": {"code": ..., "message": ..., "detail": ...}}
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.exc import SQLAlchemyError

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.boards import router as boards_router
from api.routes.v1.cards import router as cards_router
from api.routes.v1.columns import router as columns_router
from api.routes.v1.workspaces import router as workspaces_router
from auth.store import UserStore
from core.config import get_settings
from kanban.errors import KanbanError, ValidationError
from kanban.service import KanbanService
from kanban.store import KanbanStore

__version__ = "0.1.0"

_settings = get_settings()

logging.basicConfig(
    level=_settings.log_level,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("deltask.api")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    kanban_store = KanbanStore(db_url=_settings.kanban_db_url)
    user_store = UserStore(db_url=_settings.auth_db_url)
    app.state.kanban_store = kanban_store
    app.state.user_store = user_store
    app.state.service = KanbanService(kanban_store, cascade_deletes=_settings.cascade_deletes)
    logger.info("Deltask %s up (cascade_deletes=%s)", __version__, _settings.cascade_deletes)
    try:
        yield
    finally:
        user_store.close()
        kanban_store.close()
        logger.info("Deltask stores closed")


app = FastAPI(
    title="Deltask API",
    description="Workspaces, boards, columns and cards with membership-based access control.",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)
app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)
app.add_middleware(SlowAPIMiddleware)
app.state.limiter = limiter


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    logger.info(
        "%s %s -> %d in %.1fms from %s",
        request.method,
        request.url.path,
        response.status_code,
        (time.perf_counter() - started) * 1000,
        request.client.host if request.client else "-",
    )
    return response


for _router, _tag in (
    (auth_router, "Auth"),
    (workspaces_router, "Workspaces"),
    (boards_router, "Boards"),
    (columns_router, "Columns"),
    (cards_router, "Cards"),
):
    app.include_router(_router, prefix="/api/v1", tags=[_tag])


# ---------------------------------------------------------------------------
# Error envelope
# ---------------------------------------------------------------------------


def _error_response(
    status_code: int,
    code: str,
    message: str,
    detail: Optional[str] = None,
    headers: Optional[dict[str, str]] = None,
) -> JSONResponse:
    body = ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail))
    return JSONResponse(status_code=status_code, content=body.model_dump(), headers=headers)


def _describe_validation_errors(exc: RequestValidationError) -> str:
    """Flatten pydantic's error list to 'body.name: Field required; ...'."""
    parts = []
    for err in exc.errors():
        where = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{where}: {err.get('msg', 'invalid')}" if where else str(err.get("msg", "invalid")))
    return "; ".join(parts)


@app.exception_handler(KanbanError)
async def kanban_error_handler(request: Request, exc: KanbanError) -> JSONResponse:
    return _error_response(exc.status_code, exc.code, exc.message, exc.detail)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    retry_after = str(int(getattr(exc, "retry_after", 60)))
    logger.warning("Rate limit hit: %s %s (%s)", request.method, request.url.path, exc.detail)
    return _error_response(
        429, "rate_limited", "Too many requests.", str(exc.detail), headers={"Retry-After": retry_after}
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Body and parameter errors share the status and code of a domain ValidationError.
    return _error_response(
        ValidationError.status_code,
        ValidationError.default_code,
        "Request validation failed.",
        _describe_validation_errors(exc),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Routes raise HTTPException(detail=ErrorDetail(...).model_dump()); pass that through as-is."""
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)
    return _error_response(exc.status_code, f"http_{exc.status_code}", str(exc.detail), headers=exc.headers)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error_response(500, "internal_error", "An unexpected error occurred.")


@app.get("/api/v1/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Liveness plus a round trip to the kanban database. Unauthenticated, not rate limited."""
    components = {"app": "ok", "database": "ok"}
    try:
        request.app.state.kanban_store.ping()
    except SQLAlchemyError:
        logger.exception("Health check: kanban database unreachable")
        components["database"] = "error"
    return HealthResponse(
        status="healthy" if components["database"] == "ok" else "degraded",
        version=__version__,
        components=components,
    )
