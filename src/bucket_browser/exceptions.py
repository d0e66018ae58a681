"""Bucket browser exceptions."""


class BrowserError(Exception):
    """Base exception for bucket-browser."""

    pass


class ConfigError(BrowserError, ValueError):
    """Configuration file or environment is invalid."""

    pass


class StoreError(BrowserError):
    """The object store failed to complete a list or get."""

    pass


class InvalidCursorError(StoreError):
    """Continuation cursor was rejected by the store."""

    pass


class InvalidKeyError(BrowserError):
    """Object key is empty or not acceptable to the backend."""

    pass


class ArchiveError(BrowserError):
    """Folder archive job error."""

    pass


class ArchiveJobInProgressError(ArchiveError):
    """A folder archive job is already running on this builder."""

    pass


class ListingFetchError(ArchiveError):
    """A listing page could not be fetched while enumerating a folder."""

    pass
