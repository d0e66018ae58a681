"""HTTP route handlers for the bucket browser.

The surface is the UI shell, served for any method, plus two GET
endpoints: the delimited listing and single-object streaming. Everything
else answers with the shared not-found response.
"""

import functools
import json
from importlib.resources import files
from typing import Any

from starlette.convertors import Convertor, register_url_convertor
from starlette.requests import Request
from starlette.responses import HTMLResponse, PlainTextResponse, Response, StreamingResponse
from starlette.routing import Route

from bucket_browser.config import ListingConfig
from bucket_browser.observability import Timer, emit_counter, emit_timer, get_logger
from bucket_browser.protocols import ObjectStore
from bucket_browser.server.formatting import content_disposition, serialize_page

logger = get_logger(__name__)

NO_STORE = "no-store"
DEFAULT_CONTENT_TYPE = "application/octet-stream"
SHELL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


class ObjectKeyConvertor(Convertor):
    """Like the path convertor, but keys may also contain newlines."""

    regex = "(?s:.*)"

    def convert(self, value: str) -> str:
        return value

    def to_string(self, value: str) -> str:
        return value


register_url_convertor("objectkey", ObjectKeyConvertor())


class JSONNoStoreResponse(Response):
    """UTF-8 JSON response that is never cached."""

    media_type = "application/json; charset=utf-8"

    def __init__(self, content: Any, status_code: int = 200) -> None:
        super().__init__(
            content=content,
            status_code=status_code,
            headers={"cache-control": NO_STORE},
        )

    def render(self, content: Any) -> bytes:
        return json.dumps(content, ensure_ascii=False, separators=(",", ":")).encode("utf-8")


def not_found() -> Response:
    """Shared 404 for unknown routes and absent objects."""
    return PlainTextResponse(
        "Not Found",
        status_code=404,
        headers={"cache-control": NO_STORE},
    )


def bad_request(message: str) -> Response:
    """Plain-text client error."""
    return PlainTextResponse(
        message,
        status_code=400,
        headers={"cache-control": NO_STORE},
    )


@functools.lru_cache(maxsize=1)
def load_shell() -> str:
    """Read the single-page UI shipped with the package."""
    return files("bucket_browser.server").joinpath("static/index.html").read_text(encoding="utf-8")


def create_routes(store: ObjectStore, listing: ListingConfig | None = None) -> list[Route]:
    """Create HTTP routes for a bucket.

    Args:
        store: The object store to browse
        listing: Page size and delimiter settings

    Returns:
        List of Starlette routes
    """
    listing = listing or ListingConfig()

    async def shell(request: Request) -> Response:
        """Serve the UI shell."""
        return HTMLResponse(load_shell(), headers={"cache-control": NO_STORE})

    async def list_objects(request: Request) -> Response:
        """List one page of objects and folders under a prefix."""
        prefix = request.query_params.get("prefix") or None
        cursor = request.query_params.get("cursor") or None

        with Timer() as timer:
            result = await store.list(
                prefix=prefix,
                cursor=cursor,
                delimiter=listing.delimiter,
                limit=listing.page_limit,
                include_metadata=True,
            )

        logger.info(
            "Listing served",
            context={
                "prefix": prefix or "",
                "objects": len(result.objects),
                "prefixes": len(result.delimited_prefixes),
                "truncated": result.truncated,
            },
            duration_ms=timer.duration_ms,
        )
        emit_timer("store.list.duration_ms", timer.duration_ms)
        return JSONNoStoreResponse(serialize_page(result))

    async def stream_object(request: Request) -> Response:
        """Stream one object's bytes, optionally as an attachment."""
        # The ASGI path is already percent-decoded
        key = request.path_params["key"]
        if not key:
            return bad_request("Object key is required")

        stored = await store.get(key)
        if stored is None:
            logger.info("Object not found", context={"object_key": key})
            emit_counter("store.get.missing")
            return not_found()

        entry = stored.entry
        headers = {
            "etag": entry.etag or "",
            "content-length": str(entry.size),
            "content-type": entry.content_type or DEFAULT_CONTENT_TYPE,
            "cache-control": NO_STORE,
        }
        if request.query_params.get("download") == "1":
            headers["content-disposition"] = content_disposition(key)

        emit_counter("store.get.streamed")
        return StreamingResponse(stored.body, headers=headers)

    return [
        Route("/", shell, methods=SHELL_METHODS),
        Route("/api/objects", list_objects),
        Route("/api/objects/{key:objectkey}", stream_object),
    ]
