"""Pytest configuration and fixtures."""

import asyncio
import concurrent.futures
from datetime import datetime, timezone

import httpx
import pytest
from starlette.testclient import TestClient

from bucket_browser.backends.memory import MemoryObjectStore
from bucket_browser.browser import StorageBrowser
from bucket_browser.client.api import BrowserAPIClient
from bucket_browser.config import Config

UPLOADED = datetime(2024, 3, 4, 12, 30, 0, tzinfo=timezone.utc)


@pytest.fixture
def sample_config_dict():
    """Sample configuration dictionary for testing."""
    return {
        "storage": {"backend": "local", "path": "/tmp/bucket-browser-test"},
        "listing": {"page_limit": 500},
        "server": {"host": "127.0.0.1", "port": 9000},
        "logging": {"level": "DEBUG", "format": "text"},
    }


def _seed(store: MemoryObjectStore, objects: dict[str, bytes], **kwargs) -> None:
    """Put objects into a memory store from synchronous code."""

    async def _put() -> None:
        for key, content in objects.items():
            await store.put(key, content, uploaded=UPLOADED, **kwargs)

    try:
        asyncio.get_running_loop()
    except RuntimeError:
        asyncio.run(_put())
        return
    # Called from inside a running loop (async test): seed on a worker thread
    with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
        pool.submit(asyncio.run, _put()).result()


@pytest.fixture
def seed():
    """Seed a memory store outside an event loop."""
    return _seed


@pytest.fixture
def memory_store() -> MemoryObjectStore:
    """A small bucket with one nested folder."""
    store = MemoryObjectStore()
    _seed(store, {
        "a/x.txt": b"0123456789",
        "a/b/y.txt": b"01234567890123456789",
        "images/cat.png": b"\x89PNG....",
        "readme.md": b"# hello",
    })
    return store


@pytest.fixture
def make_browser():
    """Factory for a StorageBrowser over a given store."""

    def _make(store, **config) -> StorageBrowser:
        return StorageBrowser(Config.from_dict({"storage": {"backend": "memory"}, **config}), store=store)

    return _make


@pytest.fixture
def browser(memory_store, make_browser) -> StorageBrowser:
    """Browser over the sample memory bucket."""
    return make_browser(memory_store)


@pytest.fixture
def client(browser: StorageBrowser) -> TestClient:
    """Create a test client."""
    return TestClient(browser.create_app())


@pytest.fixture
def api_factory():
    """Factory for an API client wired to an ASGI app in-process."""

    def _make(app) -> BrowserAPIClient:
        transport = httpx.ASGITransport(app=app)
        return BrowserAPIClient(client=httpx.AsyncClient(transport=transport, base_url="http://testserver"))

    return _make
