"""
FastAPI application with call monitor lifecycle management.
"""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from callmonitor import __version__
from callmonitor.config import settings
from callmonitor.infrastructure.observability.logging import get_logger, setup_logging
from callmonitor.routes import calls, contacts, extensions, health
from callmonitor.services.monitor_service import CallMonitorService

# Setup logging before creating the app
setup_logging(log_level=settings.LOG_LEVEL)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the call monitor on startup and stop it on shutdown."""
    logger.info("Application starting", environment=settings.environment, debug=settings.debug)

    service = getattr(app.state, "monitor", None) or CallMonitorService()
    app.state.monitor = service

    try:
        await service.start()
    except Exception as e:
        logger.error("Failed to start call monitor", error=str(e))
        try:
            await service.stop()
        except Exception as cleanup_error:
            logger.error("Error cleaning up call monitor", error=str(cleanup_error))
        raise

    yield

    logger.info("Application shutting down")
    try:
        await service.stop()
    except Exception as e:
        logger.error("Error stopping call monitor", error=str(e))


app = FastAPI(
    title="CTI Call Monitor",
    description="Live call monitoring with contact resolution",
    version=__version__,
    lifespan=lifespan,
)

# Include routers
app.include_router(health.router)
app.include_router(calls.router)
app.include_router(extensions.router)
app.include_router(contacts.router)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log HTTP requests with timing."""
    start_time = time.time()
    response = await call_next(request)
    process_time = (time.time() - start_time) * 1000

    logger.info(
        "HTTP request completed",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=round(process_time, 2),
    )
    return response


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
