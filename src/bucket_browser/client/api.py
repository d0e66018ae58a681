"""HTTP client for the bucket browser API."""

from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

import httpx

LIST_PATH = "/api/objects"


@dataclass(frozen=True)
class ListedObject:
    """One object entry as returned by the listing endpoint."""

    key: str
    size: int
    uploaded: str | None = None
    checksum: str | None = None
    etag: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "ListedObject":
        return cls(
            key=data["key"],
            size=int(data.get("size") or 0),
            uploaded=data.get("uploaded"),
            checksum=data.get("checksum"),
            etag=data.get("etag"),
            metadata=dict(data.get("metadata") or {}),
        )


@dataclass(frozen=True)
class ListingPage:
    """One page of the listing endpoint."""

    objects: list[ListedObject] = field(default_factory=list)
    delimited_prefixes: list[str] = field(default_factory=list)
    cursor: str | None = None
    truncated: bool = False

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "ListingPage":
        return cls(
            objects=[ListedObject.from_json(item) for item in data.get("objects") or []],
            delimited_prefixes=list(data.get("delimitedPrefixes") or []),
            cursor=data.get("cursor"),
            truncated=bool(data.get("truncated")),
        )


def object_path(key: str, download: bool = False) -> str:
    """Path of the streaming endpoint for a key, fully percent-encoded."""
    path = f"{LIST_PATH}/{quote(key, safe='')}"
    return f"{path}?download=1" if download else path


class BrowserAPIClient:
    """Async client for the listing and streaming endpoints.

    Network failures and non-success statuses surface as httpx.HTTPError.

    Example:
        async with BrowserAPIClient("http://127.0.0.1:8080") as api:
            page = await api.list_objects(prefix="photos/")
            data = await api.fetch_object(page.objects[0].key)
    """

    def __init__(
        self,
        base_url: str = "http://127.0.0.1:8080",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the API client.

        Args:
            base_url: Root URL of a running bucket browser
            client: Optional preconfigured httpx client (its base_url is used)
        """
        self._client = client or httpx.AsyncClient(base_url=base_url)
        self._owns_client = client is None

    async def list_objects(
        self,
        prefix: str | None = None,
        cursor: str | None = None,
    ) -> ListingPage:
        """Fetch one listing page."""
        params = {}
        if prefix:
            params["prefix"] = prefix
        if cursor:
            params["cursor"] = cursor
        response = await self._client.get(LIST_PATH, params=params)
        response.raise_for_status()
        return ListingPage.from_json(response.json())

    async def fetch_object(self, key: str) -> bytes:
        """Fetch one object's bytes."""
        response = await self._client.get(object_path(key))
        response.raise_for_status()
        return response.content

    def download_url(self, key: str) -> str:
        """Absolute attachment URL for a key."""
        return str(self._client.base_url.join(object_path(key, download=True)))

    async def aclose(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "BrowserAPIClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()
