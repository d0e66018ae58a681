"""Delimiter grouping and cursor pagination shared by in-process backends.

Listings follow R2/S3 semantics: keys are returned in lexicographic order,
keys sharing a prefix up to the next delimiter collapse into one common
prefix, and common prefixes count toward the page limit.
"""

import base64
import binascii
import json
from collections.abc import Iterable
from dataclasses import dataclass, field

from bucket_browser.config import MAX_PAGE_LIMIT
from bucket_browser.exceptions import InvalidCursorError

_OBJECT = "o"
_PREFIX = "p"


@dataclass
class KeyPage:
    """Keys selected for one listing page."""

    keys: list[str] = field(default_factory=list)
    prefixes: list[str] = field(default_factory=list)
    cursor: str | None = None
    truncated: bool = False


def encode_cursor(kind: str, marker: str) -> str:
    """Encode the last emitted item as an opaque cursor."""
    raw = json.dumps([kind, marker]).encode()
    return base64.urlsafe_b64encode(raw).decode().rstrip("=")


def decode_cursor(cursor: str) -> tuple[str, str]:
    """Decode a cursor produced by encode_cursor()."""
    try:
        padded = cursor + "=" * (-len(cursor) % 4)
        kind, marker = json.loads(base64.urlsafe_b64decode(padded.encode()))
    except (binascii.Error, UnicodeDecodeError, ValueError, TypeError) as e:
        raise InvalidCursorError(f"Invalid cursor: {cursor!r}") from e
    if kind not in (_OBJECT, _PREFIX) or not isinstance(marker, str):
        raise InvalidCursorError(f"Invalid cursor: {cursor!r}")
    return kind, marker


def check_limit(limit: int) -> None:
    """Reject page sizes the real stores would refuse."""
    if not 1 <= limit <= MAX_PAGE_LIMIT:
        raise ValueError(f"limit must be between 1 and {MAX_PAGE_LIMIT}, got {limit}")


def paginate_keys(
    sorted_keys: Iterable[str],
    prefix: str | None = None,
    cursor: str | None = None,
    delimiter: str | None = "/",
    limit: int = MAX_PAGE_LIMIT,
) -> KeyPage:
    """Select one page of keys and common prefixes.

    Args:
        sorted_keys: Every key in the bucket, in lexicographic order
        prefix: Only keys starting with this are considered
        cursor: Continuation token from a previous page
        delimiter: Hierarchy delimiter; None or "" lists flat
        limit: Maximum objects plus common prefixes on the page

    Returns:
        KeyPage whose cursor is set only when more items remain
    """
    check_limit(limit)
    prefix = prefix or ""
    marker = decode_cursor(cursor) if cursor else None

    page = KeyPage()
    count = 0
    last: tuple[str, str] | None = None

    for key in sorted_keys:
        if not key.startswith(prefix):
            continue
        if marker is not None:
            kind, value = marker
            if key <= value or (kind == _PREFIX and key.startswith(value)):
                continue

        if delimiter:
            rest = key[len(prefix):]
            index = rest.find(delimiter)
            if index >= 0:
                common = prefix + rest[: index + len(delimiter)]
                if page.prefixes and page.prefixes[-1] == common:
                    continue
                if count == limit:
                    page.truncated = True
                    break
                page.prefixes.append(common)
                last = (_PREFIX, common)
                count += 1
                continue

        if count == limit:
            page.truncated = True
            break
        page.keys.append(key)
        last = (_OBJECT, key)
        count += 1

    if page.truncated and last is not None:
        page.cursor = encode_cursor(*last)
    return page
