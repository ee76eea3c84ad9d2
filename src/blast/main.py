"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Awaitable, Callable
from uuid import uuid4

from fastapi import FastAPI, Request, Response

from blast import __version__
from blast.api.errors import register_error_handlers
from blast.api.routes import changes, health, videos
from blast.config import settings
from blast.logging import bind_request_context, clear_request_context, get_logger, setup_logging

# Setup logging
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    logger.info(
        "application_starting",
        version=__version__,
        metadata_store=settings.metadata_store,
        blob_store=settings.blob_store,
    )

    if settings.metadata_store == "sql":
        try:
            from blast.db.session import init_db

            init_db()
            logger.info("database_connected")
        except Exception as e:
            logger.error("database_connection_failed", error=str(e))
            # Don't raise - let readiness checks report the issue

    yield

    logger.info("application_shutting_down")


app = FastAPI(
    title="Blast",
    description="Video feed backend with change proposals and version promotion",
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

register_error_handlers(app)

REQUEST_ID_HEADER = "X-Request-Id"


@app.middleware("http")
async def request_context(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    """Bind request details to every log line emitted while handling it."""
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid4().hex
    clear_request_context()
    bind_request_context(
        request_id=request_id,
        method=request.method,
        path=request.url.path,
        user_id=request.headers.get("X-User-Id"),
    )
    try:
        response = await call_next(request)
    finally:
        clear_request_context()
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


# Register routers
app.include_router(health.router)
app.include_router(videos.router, prefix="/api/v1")
app.include_router(changes.router, prefix="/api/v1")


@app.get("/", include_in_schema=False)
async def root() -> dict[str, str]:
    """Root endpoint redirect to docs."""
    return {
        "name": "Blast",
        "version": __version__,
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "blast.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
    )
