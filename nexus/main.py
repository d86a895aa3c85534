"""
Nexus triage service entrypoint with pipeline lifecycle management.
"""

import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from nexus.config import settings
from nexus.features.triage.api import triage_router
from nexus.features.triage.services.context import build_context
from nexus.infrastructure.observability.logging import bind_request_id, get_logger, setup_logging
from nexus.routes import health

# Setup logging before creating the app
setup_logging(log_level=settings.LOG_LEVEL)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Assemble the pipeline context on startup and release it on shutdown."""

    logger.info("Application starting", environment=settings.environment, debug=settings.debug)

    if getattr(app.state, "pipeline", None) is None:
        try:
            app.state.pipeline = build_context(settings)
        except Exception as e:
            logger.error("Failed to assemble pipeline", error=str(e))
            raise

    yield

    logger.info("Application shutting down")
    try:
        await app.state.pipeline.close()
    except Exception as e:
        logger.error("Error closing pipeline", error=str(e))
    app.state.pipeline = None


app = FastAPI(
    title="Nexus Signal Triage",
    description="Scores inbound group messages, queues reply drafts and enriches contacts",
    version="0.1.0",
    lifespan=lifespan,
)

# Include routers
app.include_router(health.router)
app.include_router(triage_router)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log HTTP requests with timing and a request id."""
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    bind_request_id(request_id)
    start_time = time.time()
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    process_time = (time.time() - start_time) * 1000

    logger.info(
        "HTTP request completed",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=round(process_time, 2),
    )
    return response


def run() -> None:
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)


if __name__ == "__main__":
    run()
