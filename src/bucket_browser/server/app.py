"""ASGI application for standalone deployment."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from starlette.applications import Starlette
from starlette.exceptions import HTTPException
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response

from bucket_browser.exceptions import InvalidKeyError, StoreError
from bucket_browser.observability import emit_counter, get_logger
from bucket_browser.server.middleware import RequestContextMiddleware
from bucket_browser.server.routes import NO_STORE, bad_request, not_found

if TYPE_CHECKING:
    from bucket_browser.browser import StorageBrowser

logger = get_logger(__name__)


async def handle_not_found(request: Request, exc: HTTPException) -> Response:
    """Unmatched routes and methods get the same body as absent objects."""
    return not_found()


async def handle_invalid_key(request: Request, exc: InvalidKeyError) -> Response:
    """Keys the backend refuses are client errors."""
    return bad_request(str(exc))


async def handle_store_error(request: Request, exc: StoreError) -> Response:
    """Store failures surface as a generic server error, without retry."""
    logger.error("Object store request failed", error=exc)
    emit_counter("store.errors", {"type": type(exc).__name__})
    return PlainTextResponse(
        "Internal Server Error",
        status_code=500,
        headers={"cache-control": NO_STORE},
    )


def create_app(browser: "StorageBrowser") -> Starlette:
    """Create the ASGI application.

    Args:
        browser: The configured StorageBrowser instance

    Returns:
        Starlette application
    """
    from bucket_browser.server.routes import create_routes

    routes = create_routes(browser.store, browser.config.listing)

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        logger.info("Bucket browser started", context={"backend": browser.config.storage.backend})
        yield
        await browser.aclose()

    # Outermost first: CORS, then request scoping, then routing
    middleware = [
        Middleware(
            CORSMiddleware,
            allow_origins=browser.config.server.cors_origins or ["*"],
            allow_methods=["GET"],
            allow_headers=["*"],
        ),
        Middleware(RequestContextMiddleware),
    ]

    return Starlette(
        routes=routes,
        middleware=middleware,
        exception_handlers={
            404: handle_not_found,
            405: handle_not_found,
            InvalidKeyError: handle_invalid_key,
            StoreError: handle_store_error,
        },
        lifespan=lifespan,
    )
