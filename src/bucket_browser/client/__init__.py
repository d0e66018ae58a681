"""Programmatic client: API access, navigation state and folder archives."""

from bucket_browser.client.api import BrowserAPIClient, ListedObject, ListingPage
from bucket_browser.client.archive import (
    ArchiveJob,
    ArchivePhase,
    ArchiveProgress,
    ArchiveResult,
    ArchiveStatus,
    CancellationToken,
    FolderArchiveBuilder,
    archive_filename,
)
from bucket_browser.client.controller import (
    BrowserController,
    NavigationState,
    ViewState,
    filter_view,
    partition_listing,
)
from bucket_browser.client.formatting import format_bytes, format_date

__all__ = [
    "ArchiveJob",
    "ArchivePhase",
    "ArchiveProgress",
    "ArchiveResult",
    "ArchiveStatus",
    "BrowserAPIClient",
    "BrowserController",
    "CancellationToken",
    "FolderArchiveBuilder",
    "ListedObject",
    "ListingPage",
    "NavigationState",
    "ViewState",
    "archive_filename",
    "filter_view",
    "format_bytes",
    "format_date",
    "partition_listing",
]
