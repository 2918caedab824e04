"""FastAPI application: bookmark routes, middleware, and lifecycle hooks."""
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from api.routers import bookmarks, health, users
from core.config import get_settings
from services.bookmark_service import cancel_background_tasks, wait_for_background_tasks

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# The API only serves JSON; nothing here should be framed or sniffed
SECURITY_HEADERS = {
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
}


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None]:
    """
    Configure logging on startup.

    On shutdown, pending metadata refreshes get up to one summary timeout to
    finish; the rest are cancelled and keep empty metadata.
    """
    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper(), format=LOG_FORMAT)
    logger.info(
        "Summaries from %s (timeout %.1fs)",
        settings.summary_service_url,
        settings.summary_timeout,
    )
    if settings.dev_mode:
        logger.warning("DEV_MODE is on: authentication is bypassed")

    yield

    await wait_for_background_tasks(timeout=settings.summary_timeout)
    cancel_background_tasks()


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Attach SECURITY_HEADERS to every response."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint,
    ) -> Response:
        response = await call_next(request)
        response.headers.update(SECURITY_HEADERS)
        return response


app = FastAPI(
    title="Bookmarks API",
    description="Save links with automatically generated summaries and favicons.",
    version="0.1.0",
    lifespan=lifespan,
)


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(
    request: Request, exc: SQLAlchemyError,
) -> JSONResponse:
    """Log persistence failures and answer with a generic 500."""
    logger.error(
        "Database error on %s %s: %s", request.method, request.url.path, exc, exc_info=exc,
    )
    return JSONResponse(status_code=500, content={"detail": "Database error"})


app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for router in (health.router, users.router, bookmarks.router):
    app.include_router(router)
