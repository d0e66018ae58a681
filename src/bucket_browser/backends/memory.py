"""In-memory object storage."""

import asyncio
import hashlib
from collections.abc import AsyncIterator
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from bucket_browser.backends.paging import paginate_keys
from bucket_browser.protocols.object_store import ListResult, ObjectEntry, StoredObject

CHUNK_SIZE = 64 * 1024


@dataclass
class _Blob:
    content: bytes
    entry: ObjectEntry


class MemoryObjectStore:
    """In-memory bucket.

    Contents live only as long as the process.
    """

    def __init__(self, **kwargs: Any) -> None:
        """Initialize memory object store.

        Args:
            **kwargs: Ignored (for compatibility with other backends)
        """
        self._data: dict[str, _Blob] = {}
        self._lock = asyncio.Lock()

    async def put(
        self,
        key: str,
        content: bytes,
        content_type: str | None = None,
        custom_metadata: dict[str, str] | None = None,
        uploaded: datetime | None = None,
    ) -> ObjectEntry:
        """Store an object, computing its checksum and etag."""
        entry = ObjectEntry(
            key=key,
            size=len(content),
            uploaded=uploaded or datetime.now(timezone.utc),
            checksum_sha256=hashlib.sha256(content).digest(),
            etag=f'"{hashlib.md5(content).hexdigest()}"',
            custom_metadata=dict(custom_metadata or {}),
            content_type=content_type,
        )
        async with self._lock:
            self._data[key] = _Blob(content=content, entry=entry)
        return entry

    async def list(
        self,
        prefix: str | None = None,
        cursor: str | None = None,
        delimiter: str | None = "/",
        limit: int = 1000,
        include_metadata: bool = True,
    ) -> ListResult:
        """List one page of objects and common prefixes."""
        async with self._lock:
            snapshot = dict(self._data)

        page = paginate_keys(sorted(snapshot), prefix, cursor, delimiter, limit)
        objects = [snapshot[key].entry for key in page.keys]
        if not include_metadata:
            objects = [
                ObjectEntry(key=e.key, size=e.size, uploaded=e.uploaded, etag=e.etag)
                for e in objects
            ]
        return ListResult(
            objects=objects,
            delimited_prefixes=page.prefixes,
            cursor=page.cursor,
            truncated=page.truncated,
        )

    async def get(self, key: str) -> StoredObject | None:
        """Open an object for streaming."""
        async with self._lock:
            blob = self._data.get(key)
        if blob is None:
            return None
        return StoredObject(entry=blob.entry, body=_iter_chunks(blob.content))

    async def clear(self) -> None:
        """Remove every object. Useful for testing."""
        async with self._lock:
            self._data.clear()

    async def aclose(self) -> None:
        """Nothing to release."""


async def _iter_chunks(content: bytes) -> AsyncIterator[bytes]:
    for start in range(0, len(content), CHUNK_SIZE):
        yield content[start:start + CHUNK_SIZE]
