"""JSON and header formatting for the HTTP surface."""

import re
from datetime import datetime, timezone
from typing import Any
from urllib.parse import quote

from bucket_browser.protocols.object_store import ListResult, ObjectEntry

_UNSAFE_FILENAME_CHARS = re.compile(r'[\r\n"]')
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")


def hex_checksum(digest: bytes | None) -> str | None:
    """Render raw digest bytes as lowercase hex."""
    if not digest:
        return None
    return digest.hex()


def iso_timestamp(value: datetime | None) -> str | None:
    """Render a timestamp as ISO-8601 UTC with millisecond precision."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    text = value.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    return text.replace("+00:00", "Z")


def serialize_entry(entry: ObjectEntry) -> dict[str, Any]:
    """Convert an ObjectEntry to its JSON shape."""
    return {
        "key": entry.key,
        "size": entry.size,
        "uploaded": iso_timestamp(entry.uploaded),
        "checksum": hex_checksum(entry.checksum_sha256),
        "etag": entry.etag,
        "metadata": dict(entry.custom_metadata),
    }


def serialize_page(result: ListResult) -> dict[str, Any]:
    """Convert a store listing page to the listing JSON contract.

    The cursor is only echoed while the store reports more pages.
    """
    return {
        "objects": [serialize_entry(entry) for entry in result.objects],
        "delimitedPrefixes": list(result.delimited_prefixes),
        "cursor": result.cursor if result.truncated else None,
        "truncated": bool(result.truncated),
    }


def sanitize_filename(key: str) -> str:
    """Replace CR, LF and double quotes so the key is safe in a quoted header value."""
    return _UNSAFE_FILENAME_CHARS.sub("_", key)


def content_disposition(key: str) -> str:
    """Build an attachment content-disposition header for a key.

    The quoted filename must be printable latin-1, so remaining control
    characters become underscores and non-latin-1 characters become "?".
    Whenever that changes the name, an RFC 5987 filename* parameter
    carries the full UTF-8 name.
    """
    filename = sanitize_filename(key)
    fallback = _CONTROL_CHARS.sub("_", filename)
    fallback = fallback.encode("latin-1", errors="replace").decode("latin-1")
    if fallback == filename:
        return f'attachment; filename="{filename}"'
    encoded = quote(filename, safe="")
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{encoded}"
