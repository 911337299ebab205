"""FastAPI application entry point."""

import logging
import time
import uuid

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from intel_api.api import health
from intel_api.api import router as api_router
from intel_api.core.config import get_settings
from intel_api.core.errors import ConfigurationError, register_exception_handlers
from intel_api.core.logging import get_logger, log_with_context

logger = get_logger(__name__)

DEFAULT_CORS_ORIGINS = ["http://localhost:3000"]


def _cors_origins() -> list[str]:
    # Missing Supabase credentials must not stop the app from booting
    try:
        return get_settings().cors_origins
    except ConfigurationError:
        return DEFAULT_CORS_ORIGINS


app = FastAPI(
    title="Pravado Intelligence API",
    description="Org-scoped executive intelligence dashboards over Supabase with LLM narratives",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    """Log every request and echo a request id for tracing."""
    request_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())
    request.state.request_id = request_id
    start = time.time()

    log_with_context(
        logger,
        logging.INFO,
        "Incoming request",
        request_id=request_id,
        method=request.method,
        path=request.url.path,
    )

    response = await call_next(request)

    log_with_context(
        logger,
        logging.INFO,
        "Request completed",
        request_id=request_id,
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=int((time.time() - start) * 1000),
    )
    response.headers["X-Request-Id"] = request_id
    return response


app.include_router(health.router, prefix="/health", tags=["health"])

# Include v1 API router
app.include_router(api_router, prefix="/api/v1", tags=["v1"])
