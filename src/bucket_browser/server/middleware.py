"""Request context middleware for the HTTP server."""

from typing import Any, Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from bucket_browser.observability import (
    RequestContext,
    Timer,
    emit_counter,
    emit_timer,
    get_logger,
)

logger = get_logger(__name__)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Binds a request id to the logging context and logs every request.

    The id is taken from the incoming header when present so traces can be
    correlated with an upstream proxy, and echoed back on the response.
    """

    def __init__(self, app: Any, header_name: str = "X-Request-ID") -> None:
        """Initialize request context middleware.

        Args:
            app: The ASGI application
            header_name: Header carrying the request id
        """
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Any],
    ) -> Response:
        """Run the handler inside a request context.

        Args:
            request: The incoming request
            call_next: Next middleware/handler in chain

        Returns:
            Response from handler with the request id header set
        """
        request_id = request.headers.get(self.header_name)
        async with RequestContext(request_id=request_id, route=request.url.path) as ctx:
            with Timer() as timer:
                response = await call_next(request)

            labels = {"method": request.method, "status": response.status_code}
            logger.info(
                "Request completed",
                context=labels,
                duration_ms=timer.duration_ms,
            )
            emit_counter("http.requests", labels)
            emit_timer("http.request.duration_ms", timer.duration_ms, labels)

            response.headers[self.header_name] = ctx.request_id
            return response
