"""Tests for listing JSON and header formatting."""

from datetime import datetime, timedelta, timezone

from bucket_browser.protocols.object_store import ListResult, ObjectEntry
from bucket_browser.server.formatting import (
    content_disposition,
    hex_checksum,
    iso_timestamp,
    sanitize_filename,
    serialize_entry,
    serialize_page,
)


class TestHexChecksum:
    """Tests for hex_checksum."""

    def test_hex(self) -> None:
        """Digest bytes render as lowercase hex."""
        assert hex_checksum(bytes([0, 171, 255])) == "00abff"

    def test_missing(self) -> None:
        """No digest renders as None."""
        assert hex_checksum(None) is None
        assert hex_checksum(b"") is None


class TestIsoTimestamp:
    """Tests for iso_timestamp."""

    def test_utc_milliseconds(self) -> None:
        """Timestamps are UTC with millisecond precision and a Z suffix."""
        value = datetime(2024, 3, 4, 12, 30, 0, 123456, tzinfo=timezone.utc)
        assert iso_timestamp(value) == "2024-03-04T12:30:00.123Z"

    def test_converts_offset(self) -> None:
        """Other offsets are converted to UTC."""
        value = datetime(2024, 3, 4, 14, 30, tzinfo=timezone(timedelta(hours=2)))
        assert iso_timestamp(value) == "2024-03-04T12:30:00.000Z"

    def test_naive_is_utc(self) -> None:
        """Naive timestamps are treated as UTC."""
        assert iso_timestamp(datetime(2024, 1, 1)) == "2024-01-01T00:00:00.000Z"

    def test_missing(self) -> None:
        """No timestamp renders as None."""
        assert iso_timestamp(None) is None


class TestSerialize:
    """Tests for serialize_entry and serialize_page."""

    def test_entry(self) -> None:
        """Entries use the listing JSON field names."""
        entry = ObjectEntry(key="a/x.txt", size=10, etag='"e"', custom_metadata={"k": "v"})

        assert serialize_entry(entry) == {
            "key": "a/x.txt",
            "size": 10,
            "uploaded": None,
            "checksum": None,
            "etag": '"e"',
            "metadata": {"k": "v"},
        }

    def test_cursor_hidden_when_complete(self) -> None:
        """A leftover cursor is not echoed on the last page."""
        page = serialize_page(ListResult(cursor="stale", truncated=False))
        assert page["cursor"] is None
        assert page["truncated"] is False

    def test_cursor_when_truncated(self) -> None:
        """Truncated pages carry the cursor."""
        page = serialize_page(ListResult(delimited_prefixes=["a/"], cursor="next", truncated=True))
        assert page == {"objects": [], "delimitedPrefixes": ["a/"], "cursor": "next", "truncated": True}


class TestContentDisposition:
    """Tests for sanitize_filename and content_disposition."""

    def test_sanitize(self) -> None:
        """CR, LF and double quotes become underscores."""
        assert sanitize_filename('a"b\rc\nd.txt') == "a_b_c_d.txt"

    def test_sanitize_keeps_other_characters(self) -> None:
        """Slashes, spaces and unicode are preserved."""
        assert sanitize_filename("photos/2024/été.jpg") == "photos/2024/été.jpg"

    def test_plain(self) -> None:
        """Latin-1 names use the quoted filename only."""
        assert content_disposition("report.pdf") == 'attachment; filename="report.pdf"'

    def test_unicode(self) -> None:
        """Names outside latin-1 add an encoded filename* parameter."""
        header = content_disposition("snow☃.txt")

        assert header == "attachment; filename=\"snow?.txt\"; filename*=UTF-8''snow%E2%98%83.txt"
        header.encode("latin-1")

    def test_control_characters(self) -> None:
        """Other control characters are kept by the sanitizer but not sent raw."""
        assert sanitize_filename("a\x01b\x7f.txt") == "a\x01b\x7f.txt"

        header = content_disposition("a\x01b\x7f.txt")

        assert header == "attachment; filename=\"a_b_.txt\"; filename*=UTF-8''a%01b%7F.txt"
        assert not any(ord(ch) < 0x20 or ord(ch) == 0x7F for ch in header)

    def test_control_characters_with_injection_chars(self) -> None:
        """CR, LF and quotes are replaced before the encoded name is built."""
        header = content_disposition('x\r\n"\ty')

        assert header == "attachment; filename=\"x____y\"; filename*=UTF-8''x___%09y"
