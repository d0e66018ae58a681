"""Navigation, search and view state for browsing a bucket.

The controller owns one NavigationState and moves it through
loading -> ready | error on every listing fetch. Search only filters the
most recently fetched page and never issues a request.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum

import httpx

from bucket_browser.client.api import BrowserAPIClient, ListedObject, ListingPage
from bucket_browser.observability import get_logger

logger = get_logger(__name__)

DELIMITER = "/"


class ViewState(str, Enum):
    """Lifecycle of the current view."""

    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


@dataclass
class NavigationState:
    """Everything the view renders, mutated only by BrowserController."""

    current_prefix: str = ""
    search_query: str = ""
    view: ViewState = ViewState.LOADING
    folders: list[str] = field(default_factory=list)
    files: list[ListedObject] = field(default_factory=list)
    visible_folders: list[str] = field(default_factory=list)
    visible_files: list[ListedObject] = field(default_factory=list)
    status_text: str = "Initializing..."
    error: str | None = None

    @property
    def show_empty_panel(self) -> bool:
        """The empty panel shows on error and when nothing is visible."""
        if self.view is ViewState.ERROR:
            return True
        if self.view is ViewState.LOADING:
            return False
        return not self.visible_folders and not self.visible_files


def relative_name(key: str, prefix: str) -> str:
    """Strip the current prefix from a key or common prefix."""
    if prefix and key.startswith(prefix):
        return key[len(prefix):]
    return key


def partition_listing(page: ListingPage, prefix: str) -> tuple[list[str], list[ListedObject]]:
    """Split a page into folder names and files directly under prefix.

    Files whose relative key still contains the delimiter are dropped, so
    stores that ignore the delimiter and list flat still render one level.
    """
    folders = [relative_name(p, prefix) for p in page.delimited_prefixes]
    files = [
        obj for obj in page.objects
        if DELIMITER not in relative_name(obj.key, prefix)
    ]
    return folders, files


def filter_view(
    folders: list[str],
    files: list[ListedObject],
    prefix: str,
    query: str,
) -> tuple[list[str], list[ListedObject]]:
    """Case-insensitive substring filter over folder names and file names."""
    needle = query.strip().lower()
    if not needle:
        return list(folders), list(files)
    return (
        [name for name in folders if needle in name.lower()],
        [obj for obj in files if needle in relative_name(obj.key, prefix).lower()],
    )


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}{'' if count == 1 else 's'}"


def summarize(state: NavigationState) -> str:
    """Status line for a ready view."""
    shown = len(state.visible_folders) + len(state.visible_files)
    total = len(state.folders) + len(state.files)

    if state.search_query.strip() and shown != total:
        return f"{shown} of {total} items"

    parts = []
    if state.visible_folders:
        parts.append(_plural(len(state.visible_folders), "folder"))
    if state.visible_files:
        parts.append(_plural(len(state.visible_files), "file"))
    return ", ".join(parts) if parts else "No items"


class BrowserController:
    """Drives a NavigationState from listing fetches and user actions.

    Example:
        controller = BrowserController(api)
        await controller.load()
        await controller.open_folder("photos/")
        controller.search("cat")
    """

    def __init__(
        self,
        api: BrowserAPIClient,
        state: NavigationState | None = None,
        render_delay: float = 0.3,
    ) -> None:
        """Initialize the controller.

        Args:
            api: Client for the listing endpoint
            state: Initial state, a fresh root view by default
            render_delay: Pause before a fetched page is shown, in seconds
        """
        self.api = api
        self.state = state or NavigationState()
        self.render_delay = render_delay
        self._generation = 0

    async def load(self) -> NavigationState:
        """Fetch the listing for the current prefix and render it.

        A failed fetch leaves the view in the error state; nothing is retried.
        Results of a load superseded by a newer navigation are discarded.
        """
        self._generation += 1
        generation = self._generation
        state = self.state
        prefix = state.current_prefix

        state.view = ViewState.LOADING
        state.status_text = "Syncing..."
        state.error = None

        try:
            page = await self.api.list_objects(prefix=prefix or None)
        except (httpx.HTTPError, ValueError) as e:
            if generation != self._generation:
                return state
            logger.warning("Listing fetch failed", context={"prefix": prefix}, error=e)
            state.view = ViewState.ERROR
            state.status_text = "Sync failed"
            state.error = str(e) or type(e).__name__
            return state

        if generation != self._generation:
            return state

        state.folders, state.files = partition_listing(page, prefix)

        if self.render_delay:
            await asyncio.sleep(self.render_delay)
            if generation != self._generation:
                return state

        state.view = ViewState.READY
        self._apply_filter()
        return state

    async def navigate(self, prefix: str) -> NavigationState:
        """Show the folder at prefix, clearing the search."""
        self.state.current_prefix = prefix
        self.state.search_query = ""
        return await self.load()

    async def open_folder(self, name: str) -> NavigationState:
        """Enter a folder shown in the current view."""
        return await self.navigate(self.state.current_prefix + name)

    async def refresh(self) -> NavigationState:
        """Sync from the bucket root."""
        return await self.navigate("")

    def search(self, query: str) -> NavigationState:
        """Filter the loaded page; never touches the network."""
        self.state.search_query = query
        if self.state.view is ViewState.READY:
            self._apply_filter()
        return self.state

    def breadcrumbs(self) -> list[tuple[str, str]]:
        """(label, prefix) pairs from the root to the current folder."""
        crumbs = [("Root", "")]
        path = ""
        for part in self.state.current_prefix.split(DELIMITER):
            if not part:
                continue
            path += part + DELIMITER
            crumbs.append((part, path))
        return crumbs

    def download_url(self, obj: ListedObject) -> str:
        """Attachment URL for a file in the view."""
        return self.api.download_url(obj.key)

    def _apply_filter(self) -> None:
        state = self.state
        state.visible_folders, state.visible_files = filter_view(
            state.folders,
            state.files,
            state.current_prefix,
            state.search_query,
        )
        state.status_text = summarize(state)
