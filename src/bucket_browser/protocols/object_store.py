"""ObjectStore protocol for bucket-style storage backends."""

from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class ObjectEntry:
    """Snapshot of one object's metadata at list or get time."""

    key: str
    size: int
    uploaded: datetime | None = None
    checksum_sha256: bytes | None = None  # Raw digest bytes
    etag: str | None = None  # HTTP form, including quotes
    custom_metadata: dict[str, str] = field(default_factory=dict)
    content_type: str | None = None


@dataclass(frozen=True)
class ListResult:
    """One page of a (possibly delimited) listing."""

    objects: list[ObjectEntry] = field(default_factory=list)
    delimited_prefixes: list[str] = field(default_factory=list)
    cursor: str | None = None
    truncated: bool = False


@dataclass
class StoredObject:
    """An object body together with its metadata."""

    entry: ObjectEntry
    body: AsyncIterator[bytes]


@runtime_checkable
class ObjectStore(Protocol):
    """Protocol for object storage backends (R2, S3, filesystem, memory)."""

    async def list(
        self,
        prefix: str | None = None,
        cursor: str | None = None,
        delimiter: str | None = "/",
        limit: int = 1000,
        include_metadata: bool = True,
    ) -> ListResult:
        """List at most `limit` objects and common prefixes after `cursor`."""
        ...

    async def get(self, key: str) -> StoredObject | None:
        """Open an object for streaming. Returns None if not found."""
        ...

    async def aclose(self) -> None:
        """Release any transport resources held by the backend."""
        ...
