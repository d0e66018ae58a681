"""Protocol interfaces for pluggable backends."""

from bucket_browser.protocols.object_store import (
    ListResult,
    ObjectEntry,
    ObjectStore,
    StoredObject,
)

__all__ = [
    "ListResult",
    "ObjectEntry",
    "ObjectStore",
    "StoredObject",
]
