"""Cloudflare R2 object storage backend.

Talks to R2 (or any S3-compatible endpoint) through its S3 API with an
aioboto3 client using path-style addressing.
"""

import asyncio
import base64
import binascii
from collections.abc import AsyncIterator
from typing import Any

import aioboto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from bucket_browser.backends.paging import check_limit
from bucket_browser.exceptions import InvalidCursorError, StoreError
from bucket_browser.observability import get_logger
from bucket_browser.protocols.object_store import ListResult, ObjectEntry, StoredObject

logger = get_logger(__name__)

CHUNK_SIZE = 64 * 1024
NOT_FOUND_CODES = frozenset({"NoSuchKey", "404", "NotFound"})


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


def _error_status(error: ClientError) -> int | None:
    return error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")


def _decode_checksum(value: str | None) -> bytes | None:
    if not value:
        return None
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError):
        return None


def _entry_from_listing(item: dict[str, Any]) -> ObjectEntry:
    return ObjectEntry(
        key=item["Key"],
        size=int(item.get("Size", 0)),
        uploaded=item.get("LastModified"),
        etag=item.get("ETag") or None,
    )


class CloudflareR2ObjectStore:
    """Cloudflare R2 object storage backend.

    Uses the R2 S3-compatible API. Any S3 endpoint that supports
    ListObjectsV2 and path-style addressing works as well. The client is
    opened on first use and closed by aclose().
    """

    def __init__(
        self,
        bucket: str | None = None,
        endpoint: str | None = None,
        access_key: str | None = None,
        secret_key: str | None = None,
        region: str = "auto",
        session: Any = None,
        **kwargs: Any,
    ) -> None:
        """Initialize R2 object store.

        Args:
            bucket: R2 bucket name
            endpoint: R2 endpoint URL, e.g. https://<account>.r2.cloudflarestorage.com
            access_key: R2 access key
            secret_key: R2 secret key
            region: Signing region ("auto" for R2)
            session: Optional aioboto3 session
            **kwargs: Ignored
        """
        if not bucket or not endpoint or not access_key or not secret_key:
            raise ValueError(
                "CloudflareR2ObjectStore requires bucket, endpoint, access_key, and secret_key. "
                "Use 'local' backend for development."
            )

        self.bucket = bucket
        self.endpoint = endpoint.rstrip("/")
        self.region = region
        self._access_key = access_key
        self._secret_key = secret_key
        self._session = session or aioboto3.Session()
        self._client: Any = None
        self._client_context: Any = None
        self._client_lock = asyncio.Lock()

    async def _get_client(self) -> Any:
        async with self._client_lock:
            if self._client is None:
                self._client_context = self._session.client(
                    "s3",
                    endpoint_url=self.endpoint,
                    aws_access_key_id=self._access_key,
                    aws_secret_access_key=self._secret_key,
                    region_name=self.region,
                    config=BotoConfig(signature_version="s3v4", s3={"addressing_style": "path"}),
                )
                self._client = await self._client_context.__aenter__()
            return self._client

    async def list(
        self,
        prefix: str | None = None,
        cursor: str | None = None,
        delimiter: str | None = "/",
        limit: int = 1000,
        include_metadata: bool = True,
    ) -> ListResult:
        """List one page through ListObjectsV2.

        The S3 API does not return custom metadata or checksums in
        listings, so those fields are always empty here.
        """
        check_limit(limit)
        kwargs: dict[str, Any] = {"Bucket": self.bucket, "MaxKeys": limit}
        if prefix:
            kwargs["Prefix"] = prefix
        if delimiter:
            kwargs["Delimiter"] = delimiter
        if cursor:
            kwargs["ContinuationToken"] = cursor

        client = await self._get_client()
        try:
            response = await client.list_objects_v2(**kwargs)
        except ClientError as e:
            code = _error_code(e)
            if cursor and code == "InvalidArgument":
                raise InvalidCursorError(f"Invalid cursor: {cursor!r}") from e
            raise StoreError(f"R2 list failed ({code or 'unknown'})") from e
        except BotoCoreError as e:
            raise StoreError(f"R2 list failed: {e}") from e

        truncated = bool(response.get("IsTruncated"))
        return ListResult(
            objects=[_entry_from_listing(item) for item in response.get("Contents", [])],
            delimited_prefixes=[
                group["Prefix"] for group in response.get("CommonPrefixes", []) if group.get("Prefix")
            ],
            cursor=response.get("NextContinuationToken") if truncated else None,
            truncated=truncated,
        )

    async def get(self, key: str) -> StoredObject | None:
        """Open an object through GetObject and stream its body."""
        client = await self._get_client()
        try:
            response = await client.get_object(Bucket=self.bucket, Key=key, ChecksumMode="ENABLED")
        except ClientError as e:
            code = _error_code(e)
            if code in NOT_FOUND_CODES or _error_status(e) == 404:
                return None
            raise StoreError(f"R2 get failed ({code or 'unknown'})") from e
        except BotoCoreError as e:
            raise StoreError(f"R2 get failed: {e}") from e

        entry = ObjectEntry(
            key=key,
            size=int(response.get("ContentLength", 0)),
            uploaded=response.get("LastModified"),
            checksum_sha256=_decode_checksum(response.get("ChecksumSHA256")),
            etag=response.get("ETag"),
            custom_metadata=dict(response.get("Metadata") or {}),
            content_type=response.get("ContentType"),
        )
        return StoredObject(entry=entry, body=_stream_body(response["Body"], key))

    async def aclose(self) -> None:
        """Close the S3 client if one was opened."""
        async with self._client_lock:
            if self._client_context is not None:
                await self._client_context.__aexit__(None, None, None)
            self._client = None
            self._client_context = None


async def _stream_body(body: Any, key: str) -> AsyncIterator[bytes]:
    try:
        async for chunk in body.iter_chunks(CHUNK_SIZE):
            yield chunk
    except (BotoCoreError, OSError) as e:
        logger.error("R2 body stream interrupted", context={"object_key": key}, error=e)
        raise StoreError(f"R2 body stream interrupted for {key!r}") from e
    finally:
        body.close()
