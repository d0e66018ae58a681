"""Local filesystem-based object storage."""

import atexit
import asyncio
import hashlib
import mimetypes
import os
from collections.abc import AsyncIterator
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from bucket_browser.backends.paging import paginate_keys
from bucket_browser.exceptions import InvalidKeyError, StoreError
from bucket_browser.protocols.object_store import ListResult, ObjectEntry, StoredObject

CHUNK_SIZE = 64 * 1024

# Blocking filesystem calls run here; size set by BUCKET_BROWSER_FILE_WORKERS
_max_workers = int(os.environ.get("BUCKET_BROWSER_FILE_WORKERS", "16"))
_executor = ThreadPoolExecutor(max_workers=_max_workers)

atexit.register(_executor.shutdown, wait=False)


class LocalObjectStore:
    """Object storage backed by a directory tree.

    Each object key maps to a file path relative to the base directory.
    Suitable for development and serving a folder of files.
    """

    def __init__(self, path: str | None = None, **kwargs: Any) -> None:
        """Initialize local object store.

        Args:
            path: Base directory of the bucket. Defaults to ./data/bucket
            **kwargs: Ignored (for compatibility with other backends)
        """
        self.base_path = Path(path) if path else Path("./data/bucket")
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _get_path(self, key: str) -> Path:
        """Get the filesystem path for a key.

        Rejects keys that would escape the base directory.
        """
        if not key or ".." in key.split("/") or key.startswith("/"):
            raise InvalidKeyError(f"Invalid key: {key!r}")
        if "\x00" in key:
            raise InvalidKeyError(f"Invalid key: {key!r}")

        target_path = (self.base_path / key).resolve()
        try:
            target_path.relative_to(self.base_path.resolve())
        except ValueError:
            raise InvalidKeyError("Invalid key: path traversal detected")
        return target_path

    def _get_entry(self, path: Path, key: str) -> ObjectEntry:
        """Build metadata from stat without reading file content."""
        stat = path.stat()
        fingerprint = f"{stat.st_ino}-{stat.st_size}-{int(stat.st_mtime * 1000)}"
        content_type, _ = mimetypes.guess_type(key)
        return ObjectEntry(
            key=key,
            size=stat.st_size,
            uploaded=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            etag=f'"{hashlib.md5(fingerprint.encode()).hexdigest()}"',
            content_type=content_type,
        )

    async def put(self, key: str, content: bytes) -> ObjectEntry:
        """Write an object to disk."""
        path = self._get_path(key)

        def _write() -> ObjectEntry:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)
            return self._get_entry(path, key)

        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(_executor, _write)

    async def list(
        self,
        prefix: str | None = None,
        cursor: str | None = None,
        delimiter: str | None = "/",
        limit: int = 1000,
        include_metadata: bool = True,
    ) -> ListResult:
        """List one page of objects and common prefixes."""
        resolved_base = self.base_path.resolve()

        def _list() -> ListResult:
            keys: dict[str, Path] = {}
            try:
                for path in resolved_base.rglob("*"):
                    if path.is_file():
                        key = path.relative_to(resolved_base).as_posix()
                        keys[key] = path
            except OSError as e:
                raise StoreError(f"Failed to list {resolved_base}: {e}") from e

            page = paginate_keys(sorted(keys), prefix, cursor, delimiter, limit)
            return ListResult(
                objects=[self._get_entry(keys[key], key) for key in page.keys],
                delimited_prefixes=page.prefixes,
                cursor=page.cursor,
                truncated=page.truncated,
            )

        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(_executor, _list)

    async def get(self, key: str) -> StoredObject | None:
        """Stat a file; it is opened once the body is first read."""
        path = self._get_path(key)

        def _stat() -> ObjectEntry | None:
            if not path.is_file():
                return None
            return self._get_entry(path, key)

        loop = asyncio.get_running_loop()
        entry = await loop.run_in_executor(_executor, _stat)
        if entry is None:
            return None
        return StoredObject(entry=entry, body=_read_chunks(path))

    async def aclose(self) -> None:
        """Nothing to release; the executor is shut down at exit."""


async def _read_chunks(path: Path) -> AsyncIterator[bytes]:
    loop = asyncio.get_running_loop()
    try:
        handle = await loop.run_in_executor(_executor, path.open, "rb")
    except OSError as e:
        raise StoreError(f"Failed to open {path.name}: {e}") from e
    try:
        while True:
            chunk = await loop.run_in_executor(_executor, handle.read, CHUNK_SIZE)
            if not chunk:
                break
            yield chunk
    finally:
        handle.close()
