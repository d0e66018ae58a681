"""Main StorageBrowser class for bucket-browser."""

from pathlib import Path
from typing import TYPE_CHECKING, Any

from bucket_browser.config import Config
from bucket_browser.observability import configure_logging, get_logger
from bucket_browser.plugins import create_object_store
from bucket_browser.protocols import ObjectStore

if TYPE_CHECKING:
    from starlette.applications import Starlette

logger = get_logger(__name__)


class StorageBrowser:
    """Binds a configured object store to the HTTP browser.

    Example usage:
        # Load from config file
        browser = StorageBrowser.from_config("config.yaml")

        # Start HTTP server
        browser.serve(port=8080)

        # Or mount the ASGI app elsewhere
        app = browser.create_app()
    """

    def __init__(self, config: Config, store: ObjectStore | None = None) -> None:
        """Initialize the browser with configuration.

        Args:
            config: Loaded configuration
            store: Optional store instance; created from config on first use otherwise
        """
        self.config = config
        self._store = store

    @classmethod
    def from_config(cls, path: str | Path) -> "StorageBrowser":
        """Create a StorageBrowser from a YAML or JSON configuration file."""
        return cls(Config.from_file(path))

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> "StorageBrowser":
        """Create a StorageBrowser from a configuration dictionary."""
        return cls(Config.from_dict(config_dict))

    @property
    def store(self) -> ObjectStore:
        """The object store, created lazily from the storage config."""
        if self._store is None:
            storage = self.config.storage
            self._store = create_object_store(storage.backend, **storage.backend_options())
            logger.info("Object store created", context={"backend": storage.backend})
        return self._store

    def create_app(self) -> "Starlette":
        """Build the ASGI application for this browser."""
        from bucket_browser.server.app import create_app

        return create_app(self)

    def serve(
        self,
        host: str | None = None,
        port: int | None = None,
    ) -> None:
        """Start the HTTP server.

        Args:
            host: Host to bind to (defaults to config value)
            port: Port to bind to (defaults to config value)
        """
        import uvicorn

        configure_logging(self.config.logging.level, self.config.logging.format)
        uvicorn.run(
            self.create_app(),
            host=host or self.config.server.host,
            port=port or self.config.server.port,
        )

    async def aclose(self) -> None:
        """Release the store's resources."""
        if self._store is not None:
            await self._store.aclose()

    async def __aenter__(self) -> "StorageBrowser":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit - close the store."""
        await self.aclose()
