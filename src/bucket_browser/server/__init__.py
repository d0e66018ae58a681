"""HTTP Server module."""

from bucket_browser.server.app import create_app
from bucket_browser.server.middleware import RequestContextMiddleware
from bucket_browser.server.routes import JSONNoStoreResponse, create_routes, not_found

__all__ = [
    "JSONNoStoreResponse",
    "RequestContextMiddleware",
    "create_app",
    "create_routes",
    "not_found",
]
