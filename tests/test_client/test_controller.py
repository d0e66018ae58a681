"""Tests for the browsing controller."""

import asyncio

import httpx
import pytest

from bucket_browser.backends.memory import MemoryObjectStore
from bucket_browser.client.api import BrowserAPIClient, ListedObject, ListingPage
from bucket_browser.client.controller import (
    BrowserController,
    NavigationState,
    ViewState,
    filter_view,
    partition_listing,
    relative_name,
)


def obj(key: str, size: int = 1) -> ListedObject:
    return ListedObject(key=key, size=size)


def mock_api(handler) -> BrowserAPIClient:
    transport = httpx.MockTransport(handler)
    return BrowserAPIClient(client=httpx.AsyncClient(transport=transport, base_url="http://testserver"))


@pytest.fixture
def search_store(seed) -> MemoryObjectStore:
    """Root holding folders b/ and images/ and files a.txt and cat.png."""
    store = MemoryObjectStore()
    seed(store, {"a.txt": b"a", "cat.png": b"c", "b/z.txt": b"z", "images/q.png": b"q"})
    return store


@pytest.fixture
def controller_for(make_browser, api_factory):
    """Build a controller over a store served in-process."""

    def _make(store) -> BrowserController:
        api = api_factory(make_browser(store).create_app())
        return BrowserController(api, render_delay=0)

    return _make


class TestHelpers:
    """Tests for listing helpers."""

    def test_relative_name(self) -> None:
        """The current prefix is stripped from keys."""
        assert relative_name("a/b/x.txt", "a/b/") == "x.txt"
        assert relative_name("x.txt", "") == "x.txt"
        assert relative_name("other/x.txt", "a/") == "other/x.txt"

    def test_partition_drops_nested_files(self) -> None:
        """Flat listings still render only one level."""
        page = ListingPage(objects=[obj("a/x.txt"), obj("a/b/y.txt")], delimited_prefixes=["a/b/"])

        folders, files = partition_listing(page, "a/")

        assert folders == ["b/"]
        assert [f.key for f in files] == ["a/x.txt"]

    def test_filter_is_case_insensitive(self) -> None:
        """Search matches names regardless of case."""
        folders, files = filter_view(["Photos/", "docs/"], [obj("CAT.png"), obj("dog.png")], "", "ca")

        assert folders == []
        assert [f.key for f in files] == ["CAT.png"]

    def test_filter_matches_relative_name(self) -> None:
        """The prefix itself does not match a search."""
        folders, files = filter_view([], [obj("cats/1.png")], "cats/", "cat")
        assert files == []

    def test_blank_query_keeps_everything(self) -> None:
        """Whitespace-only queries do not filter."""
        folders, files = filter_view(["b/"], [obj("a.txt")], "", "   ")
        assert folders == ["b/"]
        assert len(files) == 1


class TestLoad:
    """Tests for loading listings."""

    @pytest.mark.asyncio
    async def test_initial_state(self) -> None:
        """A new controller starts at the root in the loading state."""
        controller = BrowserController(mock_api(lambda r: httpx.Response(200, json={})))

        assert controller.state.current_prefix == ""
        assert controller.state.view is ViewState.LOADING
        assert controller.state.show_empty_panel is False

    @pytest.mark.asyncio
    async def test_load_root(self, memory_store, controller_for) -> None:
        """The root view shows top-level folders and files."""
        controller = controller_for(memory_store)

        state = await controller.load()

        assert state.view is ViewState.READY
        assert state.folders == ["a/", "images/"]
        assert [f.key for f in state.files] == ["readme.md"]
        assert state.status_text == "2 folders, 1 file"
        assert state.show_empty_panel is False

    @pytest.mark.asyncio
    async def test_open_folder(self, memory_store, controller_for) -> None:
        """Opening a folder lists one level below it."""
        controller = controller_for(memory_store)
        await controller.load()

        state = await controller.open_folder("a/")

        assert state.current_prefix == "a/"
        assert state.visible_folders == ["b/"]
        assert [f.key for f in state.visible_files] == ["a/x.txt"]
        assert state.status_text == "1 folder, 1 file"

    @pytest.mark.asyncio
    async def test_empty_folder(self, memory_store, controller_for) -> None:
        """A folder with nothing in it shows the empty panel."""
        controller = controller_for(memory_store)

        state = await controller.navigate("missing/")

        assert state.view is ViewState.READY
        assert state.status_text == "No items"
        assert state.show_empty_panel is True

    @pytest.mark.asyncio
    async def test_refresh_returns_to_root(self, memory_store, controller_for) -> None:
        """Refresh syncs from the root."""
        controller = controller_for(memory_store)
        await controller.navigate("a/b/")

        state = await controller.refresh()

        assert state.current_prefix == ""
        assert state.folders == ["a/", "images/"]

    @pytest.mark.asyncio
    async def test_server_error(self) -> None:
        """A failed listing leaves the view in the error state."""
        controller = BrowserController(mock_api(lambda r: httpx.Response(500, text="Internal Server Error")), render_delay=0)

        state = await controller.load()

        assert state.view is ViewState.ERROR
        assert state.status_text == "Sync failed"
        assert state.error
        assert state.show_empty_panel is True

    @pytest.mark.asyncio
    async def test_network_error(self) -> None:
        """Unreachable servers are reported the same way."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        controller = BrowserController(mock_api(handler), render_delay=0)

        state = await controller.load()

        assert state.view is ViewState.ERROR
        assert state.error == "connection refused"

    @pytest.mark.asyncio
    async def test_error_then_recovery(self) -> None:
        """A later successful load clears the error."""
        responses = [
            httpx.Response(503),
            httpx.Response(200, json={"objects": [], "delimitedPrefixes": ["a/"], "cursor": None, "truncated": False}),
        ]
        controller = BrowserController(mock_api(lambda r: responses.pop(0)), render_delay=0)

        assert (await controller.load()).view is ViewState.ERROR
        state = await controller.load()

        assert state.view is ViewState.READY
        assert state.error is None
        assert state.folders == ["a/"]

    @pytest.mark.asyncio
    async def test_stale_load_is_discarded(self) -> None:
        """A slow response for a folder left behind never replaces the newer view."""

        async def handler(request: httpx.Request) -> httpx.Response:
            prefix = request.url.params.get("prefix", "")
            if prefix == "slow/":
                await asyncio.sleep(0.05)
            body = {
                "objects": [{"key": f"{prefix}file.txt", "size": 1}],
                "delimitedPrefixes": [],
                "cursor": None,
                "truncated": False,
            }
            return httpx.Response(200, json=body)

        controller = BrowserController(mock_api(handler), render_delay=0)

        await asyncio.gather(controller.navigate("slow/"), controller.navigate("fast/"))

        assert controller.state.current_prefix == "fast/"
        assert [f.key for f in controller.state.files] == ["fast/file.txt"]

    @pytest.mark.asyncio
    async def test_render_delay(self, memory_store, make_browser, api_factory) -> None:
        """The view stays loading until the render delay passes."""
        controller = BrowserController(api_factory(make_browser(memory_store).create_app()), render_delay=0.05)

        task = asyncio.create_task(controller.load())
        await asyncio.sleep(0.02)
        assert controller.state.view is ViewState.LOADING
        await task
        assert controller.state.view is ViewState.READY


class TestSearch:
    """Tests for search filtering."""

    @pytest.mark.asyncio
    async def test_search_filters_loaded_page(self, search_store, controller_for) -> None:
        """Searching "ca" keeps cat.png and no folders."""
        controller = controller_for(search_store)
        state = await controller.load()
        assert state.folders == ["b/", "images/"]
        assert [relative_name(f.key, "") for f in state.files] == ["a.txt", "cat.png"]

        state = controller.search("ca")

        assert state.visible_folders == []
        assert [f.key for f in state.visible_files] == ["cat.png"]
        assert state.status_text == "1 of 4 items"

    @pytest.mark.asyncio
    async def test_search_makes_no_request(self, search_store, make_browser, api_factory) -> None:
        """Search never calls the listing endpoint."""
        api = api_factory(make_browser(search_store).create_app())
        controller = BrowserController(api, render_delay=0)
        await controller.load()

        calls = []
        original = api.list_objects

        async def counting(*args, **kwargs):
            calls.append(args)
            return await original(*args, **kwargs)

        api.list_objects = counting
        controller.search("a")
        controller.search("")

        assert calls == []

    @pytest.mark.asyncio
    async def test_no_match_shows_empty_panel(self, search_store, controller_for) -> None:
        """A search with no hits shows the empty panel."""
        controller = controller_for(search_store)
        await controller.load()

        state = controller.search("zzz")

        assert state.status_text == "0 of 4 items"
        assert state.show_empty_panel is True

    @pytest.mark.asyncio
    async def test_clearing_search(self, search_store, controller_for) -> None:
        """An empty query shows everything again."""
        controller = controller_for(search_store)
        await controller.load()
        controller.search("ca")

        state = controller.search("")

        assert state.visible_folders == ["b/", "images/"]
        assert state.status_text == "2 folders, 2 files"

    @pytest.mark.asyncio
    async def test_navigation_clears_search(self, search_store, controller_for) -> None:
        """Entering a folder resets the query."""
        controller = controller_for(search_store)
        await controller.load()
        controller.search("ca")

        state = await controller.open_folder("images/")

        assert state.search_query == ""
        assert [f.key for f in state.visible_files] == ["images/q.png"]

    def test_search_while_loading_only_records_query(self) -> None:
        """The query is applied once the page arrives."""
        controller = BrowserController(mock_api(lambda r: httpx.Response(200, json={})))

        state = controller.search("cat")

        assert state.search_query == "cat"
        assert state.visible_files == []


class TestBreadcrumbs:
    """Tests for breadcrumbs and URLs."""

    def test_root(self) -> None:
        """The root has a single crumb."""
        controller = BrowserController(mock_api(lambda r: httpx.Response(200, json={})))
        assert controller.breadcrumbs() == [("Root", "")]

    def test_nested(self) -> None:
        """Each segment links to its own prefix."""
        controller = BrowserController(
            mock_api(lambda r: httpx.Response(200, json={})),
            state=NavigationState(current_prefix="photos/2024/march/"),
        )

        assert controller.breadcrumbs() == [
            ("Root", ""),
            ("photos", "photos/"),
            ("2024", "photos/2024/"),
            ("march", "photos/2024/march/"),
        ]

    def test_download_url(self) -> None:
        """Files link to the attachment endpoint."""
        controller = BrowserController(mock_api(lambda r: httpx.Response(200, json={})))

        url = controller.download_url(obj("a/hello world.txt"))

        assert url == "http://testserver/api/objects/a%2Fhello%20world.txt?download=1"
