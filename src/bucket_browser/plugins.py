"""Backend discovery via Python entry points."""

from importlib import import_module
from importlib.metadata import entry_points
from typing import Any

from bucket_browser.protocols import ObjectStore

STORE_GROUP = "bucket_browser.backends.store"

# Shipped backends, available even when the distribution is not installed
BUILTIN_BACKENDS = {
    "memory": "bucket_browser.backends.memory:MemoryObjectStore",
    "local": "bucket_browser.backends.local:LocalObjectStore",
    "r2": "bucket_browser.backends.r2:CloudflareR2ObjectStore",
}


def _load(target: str) -> Any:
    module_name, _, attr = target.partition(":")
    return getattr(import_module(module_name), attr)


def discover_backends() -> dict[str, Any]:
    """Discover all object store backends.

    Entry points registered under the store group override the built-in
    table, so third-party packages can replace a shipped backend.

    Returns:
        Dictionary mapping backend names to their classes
    """
    backends = {name: _load(target) for name, target in BUILTIN_BACKENDS.items()}
    for ep in entry_points(group=STORE_GROUP):
        backends[ep.name] = ep.load()
    return backends


def get_backend(name: str) -> Any:
    """Get a specific backend class by name.

    Args:
        name: The backend name (e.g., "local", "r2")

    Returns:
        The backend class

    Raises:
        ValueError: If the backend is not found
    """
    backends = discover_backends()
    if name not in backends:
        available = ", ".join(sorted(backends.keys())) or "(none)"
        raise ValueError(f"Backend '{name}' not found. Available: {available}")
    return backends[name]


def create_object_store(backend: str, **kwargs: Any) -> ObjectStore:
    """Create an ObjectStore instance.

    Args:
        backend: The backend name (e.g., "memory", "local", "r2")
        **kwargs: Backend-specific configuration

    Returns:
        An ObjectStore implementation
    """
    cls = get_backend(backend)
    return cls(**kwargs)
