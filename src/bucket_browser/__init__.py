"""Bucket Browser - list, stream and bundle objects from a bucket-style store."""

from bucket_browser.browser import StorageBrowser
from bucket_browser.config import Config
from bucket_browser.observability import (
    RequestContext,
    StructuredLogger,
    Timer,
    configure_logging,
    emit_counter,
    emit_metric,
    emit_timer,
    get_logger,
    register_metric_callback,
)
from bucket_browser.protocols import ListResult, ObjectEntry, ObjectStore, StoredObject

__version__ = "0.1.0"
__all__ = [
    # Core
    "Config",
    "StorageBrowser",
    # Storage
    "ListResult",
    "ObjectEntry",
    "ObjectStore",
    "StoredObject",
    # Observability
    "RequestContext",
    "StructuredLogger",
    "Timer",
    "configure_logging",
    "emit_counter",
    "emit_metric",
    "emit_timer",
    "get_logger",
    "register_metric_callback",
]
