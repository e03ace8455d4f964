"""FastAPI entry point for the Box skill service.

Endpoints:
- POST /v1/skill   Box Skills invocation webhook
- GET  /liveness   Health check
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from skill_service.config import BOX_PRIMARY_KEY, BOX_SECONDARY_KEY, IS_CLOUD_RUN, SKILL_RATE_LIMIT
from skill_service.handler import handle_skill_event
from skill_service.logging_config import generate_request_id, setup_logging
from skill_service.models import HealthResponse, SkillResponse

logger = logging.getLogger(__name__)


def require_signature_keys() -> None:
    """Safety check: an unsigned deployment would reject every event."""
    if BOX_PRIMARY_KEY or BOX_SECONDARY_KEY:
        return
    if IS_CLOUD_RUN:
        raise RuntimeError("BOX_PRIMARY_KEY or BOX_SECONDARY_KEY must be set on Cloud Run")
    logger.warning("No Box signature keys configured; every skill event will be rejected with 401")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: configure logging and check signature keys."""
    setup_logging()
    require_signature_keys()
    logger.info("Skill service started")
    yield
    logger.info("Skill service stopped")


app = FastAPI(
    title="Box Skill Service",
    version="0.1.0",
    lifespan=lifespan,
)

# -- Rate limiting ------------------------------------------------------------

limiter = Limiter(key_func=get_remote_address)
app.state.limiter = limiter


@app.exception_handler(RateLimitExceeded)
async def _rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return JSONResponse(status_code=429, content={"message": "Rate limit exceeded"})


# -- Body size limit ----------------------------------------------------------

_MAX_BODY_BYTES = 10 * 1024 * 1024  # 10 MB


@app.middleware("http")
async def body_size_middleware(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Reject oversized or malformed Content-Length before the body is read."""
    content_length = request.headers.get("content-length")
    if content_length is not None:
        if not content_length.isdigit():
            return JSONResponse(status_code=400, content={"message": "Invalid Content-Length"})
        if int(content_length) > _MAX_BODY_BYTES:
            return JSONResponse(status_code=413, content={"message": "Request body too large"})
    return await call_next(request)


# -- Request ID middleware ----------------------------------------------------


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Attach a unique request ID for trace correlation."""
    request_id = request.headers.get("x-request-id") or generate_request_id()
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["x-request-id"] = request_id
    return response


# -- Health -------------------------------------------------------------------


@app.get("/liveness", response_model=HealthResponse)
async def liveness() -> HealthResponse:
    return HealthResponse(status="ok")


# -- Skill webhook ------------------------------------------------------------


@app.post("/v1/skill", response_model=SkillResponse)
@limiter.limit(SKILL_RATE_LIMIT)
async def skill_webhook(request: Request) -> JSONResponse:
    """Handle one Box Skills invocation; the signature is checked over the raw body."""
    body = await request.body()
    result = await handle_skill_event(body, request.headers)
    return JSONResponse(
        status_code=result.status_code,
        content=SkillResponse(message=result.message).model_dump(),
    )
