"""Client-side ZIP bundling of a folder.

A folder is every object under a common key prefix. The builder drains the
listing endpoint, fetches each object one at a time, and packs the results
into an in-memory ZIP keyed by path relative to the folder. Individual
fetch failures are skipped; listing failures abort the job.
"""

import asyncio
import io
import time
import zipfile
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

import httpx

from bucket_browser.client.api import BrowserAPIClient, ListedObject
from bucket_browser.client.formatting import parse_timestamp
from bucket_browser.exceptions import (
    ArchiveError,
    ArchiveJobInProgressError,
    ListingFetchError,
)
from bucket_browser.observability import Timer, emit_counter, get_logger

logger = get_logger(__name__)

ARCHIVE_EXTENSION = ".zip"
DEFAULT_ARCHIVE_NAME = "bucket"


class ArchivePhase(str, Enum):
    """Step of a folder archive job."""

    LISTING = "listing"
    FETCHING = "fetching"
    FINALIZING = "finalizing"
    DONE = "done"


class ArchiveStatus(str, Enum):
    """Outcome of a folder archive job."""

    COMPLETED = "completed"
    EMPTY = "empty"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass(frozen=True)
class ArchiveProgress:
    """Progress snapshot reported after every step."""

    phase: ArchivePhase
    completed: int
    total: int
    label: str = ""

    @property
    def percent(self) -> float:
        if not self.total:
            return 0.0
        return 100.0 * self.completed / self.total

    @property
    def stats(self) -> str:
        return f"{self.completed} / {self.total} files"


ProgressCallback = Callable[[ArchiveProgress], None]


class CancellationToken:
    """Cooperative cancel flag checked at every suspension point."""

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


@dataclass
class ArchiveJob:
    """Mutable bookkeeping for one folder download."""

    source_prefix: str
    pending_keys: list[str] = field(default_factory=list)
    completed_count: int = 0
    aborted: bool = False
    failed_keys: list[str] = field(default_factory=list)
    phase: ArchivePhase = ArchivePhase.LISTING


@dataclass
class ArchiveResult:
    """Outcome of FolderArchiveBuilder.build()."""

    status: ArchiveStatus
    filename: str
    data: bytes | None = None
    file_count: int = 0
    skipped: list[str] = field(default_factory=list)
    message: str | None = None

    def save(self, directory: str | Path) -> Path:
        """Write the archive into directory and return its path."""
        if self.data is None:
            raise ArchiveError(f"No archive to save ({self.status.value})")
        path = Path(directory) / self.filename
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(self.data)
        return path


def archive_filename(prefix: str, default: str = DEFAULT_ARCHIVE_NAME) -> str:
    """Archive name from the folder's last path segment."""
    segments = [part for part in prefix.split("/") if part]
    return (segments[-1] if segments else default) + ARCHIVE_EXTENSION


def _zip_timestamp(uploaded: str | None) -> tuple[int, int, int, int, int, int]:
    parsed = parse_timestamp(uploaded)
    if parsed is None or parsed.year < 1980:
        return time.localtime()[:6]
    return parsed.timetuple()[:6]


class FolderArchiveBuilder:
    """Builds one ZIP per folder, one job at a time.

    Example:
        builder = FolderArchiveBuilder(api, progress=print)
        result = await builder.build("photos/2024/")
        if result.status is ArchiveStatus.COMPLETED:
            result.save(".")
    """

    def __init__(
        self,
        api: BrowserAPIClient,
        progress: ProgressCallback | None = None,
        default_name: str = DEFAULT_ARCHIVE_NAME,
        compression: int = zipfile.ZIP_DEFLATED,
    ) -> None:
        """Initialize the builder.

        Args:
            api: Client for the listing and streaming endpoints
            progress: Called with an ArchiveProgress after every step
            default_name: Archive name used for the bucket root
            compression: zipfile compression method
        """
        self.api = api
        self.progress = progress
        self.default_name = default_name
        self.compression = compression
        self._job: ArchiveJob | None = None

    @property
    def job(self) -> ArchiveJob | None:
        """The job currently running, if any."""
        return self._job

    async def build(
        self,
        prefix: str,
        token: CancellationToken | None = None,
    ) -> ArchiveResult:
        """Download every object under prefix into one ZIP.

        Raises:
            ArchiveJobInProgressError: If this builder is already running a job
        """
        if self._job is not None:
            raise ArchiveJobInProgressError(
                f"Archive of {self._job.source_prefix!r} is still running"
            )

        job = ArchiveJob(source_prefix=prefix)
        self._job = job
        try:
            with Timer() as timer:
                result = await self._run(job, token or CancellationToken())
            logger.info(
                "Folder archive finished",
                context={
                    "prefix": prefix,
                    "status": result.status.value,
                    "files": result.file_count,
                    "skipped": len(result.skipped),
                },
                duration_ms=timer.duration_ms,
            )
            emit_counter("archive.jobs", {"status": result.status.value})
            return result
        finally:
            self._job = None

    async def collect_entries(
        self,
        prefix: str,
        token: CancellationToken,
    ) -> list[ListedObject] | None:
        """Enumerate every object under prefix, following cursors.

        The listing endpoint groups by delimiter, so each common prefix is
        walked after the objects of its parent. Returns None if cancelled.

        Raises:
            ListingFetchError: If any page cannot be fetched
        """
        entries: list[ListedObject] = []
        pending = [prefix]

        while pending:
            current = pending.pop(0)
            children: list[str] = []
            cursor: str | None = None

            while True:
                if token.cancelled:
                    return None
                try:
                    page = await self.api.list_objects(prefix=current or None, cursor=cursor)
                except (httpx.HTTPError, ValueError) as e:
                    raise ListingFetchError("Failed to fetch file list") from e

                entries.extend(page.objects)
                children.extend(p for p in page.delimited_prefixes if p != current)
                self._report(ArchivePhase.LISTING, len(entries), len(entries), "Fetching file list...")

                if not page.truncated or not page.cursor:
                    break
                cursor = page.cursor

            pending[:0] = children

        return entries

    async def _run(self, job: ArchiveJob, token: CancellationToken) -> ArchiveResult:
        prefix = job.source_prefix
        filename = archive_filename(prefix, self.default_name)

        try:
            entries = await self.collect_entries(prefix, token)
        except ListingFetchError as e:
            logger.error("Folder listing failed", context={"prefix": prefix}, error=e)
            return ArchiveResult(ArchiveStatus.FAILED, filename, message=str(e))

        if entries is None:
            return self._cancelled(job, filename)

        # Folder marker objects have no path of their own inside the archive
        files = [(obj, obj.key[len(prefix):]) for obj in entries if obj.key[len(prefix):]]
        if not files:
            job.phase = ArchivePhase.DONE
            self._report(ArchivePhase.DONE, 0, 0, "Folder is empty")
            return ArchiveResult(ArchiveStatus.EMPTY, filename, message="Folder is empty")

        job.pending_keys = [obj.key for obj, _ in files]
        total = len(files)
        job.phase = ArchivePhase.FETCHING
        self._report(ArchivePhase.FETCHING, 0, total, f"Downloading {total} files...")

        payloads: dict[str, tuple[ListedObject, bytes]] = {}
        for obj, relative_path in files:
            if token.cancelled:
                return self._cancelled(job, filename)
            try:
                data = await self.api.fetch_object(obj.key)
            except httpx.HTTPError as e:
                logger.warning("Skipping file in folder archive", context={"object_key": obj.key}, error=e)
                emit_counter("archive.files.skipped")
                job.failed_keys.append(obj.key)
            else:
                payloads.setdefault(relative_path, (obj, data))
            job.completed_count += 1
            self._report(ArchivePhase.FETCHING, job.completed_count, total, f"Downloading: {obj.key}")

        if token.cancelled:
            return self._cancelled(job, filename)

        job.phase = ArchivePhase.FINALIZING
        try:
            archive = await self._finalize(payloads)
        except Exception as e:
            logger.error("Folder archive finalization failed", context={"prefix": prefix}, error=e)
            return ArchiveResult(
                ArchiveStatus.FAILED,
                filename,
                skipped=list(job.failed_keys),
                message=str(e) or "An error occurred",
            )

        if token.cancelled:
            return self._cancelled(job, filename)

        job.phase = ArchivePhase.DONE
        self._report(ArchivePhase.DONE, total, total, "Download complete!")
        return ArchiveResult(
            ArchiveStatus.COMPLETED,
            filename,
            data=archive,
            file_count=len(payloads),
            skipped=list(job.failed_keys),
        )

    async def _finalize(self, payloads: dict[str, tuple[ListedObject, bytes]]) -> bytes:
        """Compress the fetched payloads into a ZIP, off the event loop."""
        total = len(payloads)
        buffer = io.BytesIO()
        self._report(ArchivePhase.FINALIZING, 0, total, "Creating ZIP file...")

        with zipfile.ZipFile(buffer, "w", compression=self.compression) as archive:
            for index, (relative_path, (obj, data)) in enumerate(payloads.items(), start=1):
                info = zipfile.ZipInfo(relative_path, date_time=_zip_timestamp(obj.uploaded))
                info.compress_type = self.compression
                await asyncio.to_thread(archive.writestr, info, data)
                self._report(ArchivePhase.FINALIZING, index, total, "Creating ZIP file...")

        return buffer.getvalue()

    def _cancelled(self, job: ArchiveJob, filename: str) -> ArchiveResult:
        job.aborted = True
        logger.info("Folder archive cancelled", context={"prefix": job.source_prefix})
        return ArchiveResult(
            ArchiveStatus.CANCELLED,
            filename,
            skipped=list(job.failed_keys),
            message="Download cancelled",
        )

    def _report(self, phase: ArchivePhase, completed: int, total: int, label: str) -> None:
        if self.progress is not None:
            self.progress(ArchiveProgress(phase, completed, total, label))
