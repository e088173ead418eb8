"""Unit tests for shared helpers: view parsing, URL ids, timestamps."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from cashtag_radar.core.utils import (
    author_from_url,
    content_id_from_url,
    from_unix,
    parse_views,
    posted_at_from_id,
    sanitize,
    truncate,
)


class TestParseViews:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("12.3k", 12300),
            ("4m", 4_000_000),
            ("500", 500),
            ("", 0),
            ("garbage", 0),
            ("1.2M", 1_200_000),
            ("2B", 2_000_000_000),
            (" 7.9K ", 7900),
            ("1,234", 1234),
            ("3.7", 3),
            (None, 0),
        ],
    )
    def test_expands_compact_notation(self, raw: str | None, expected: int) -> None:
        assert parse_views(raw) == expected

    def test_unit_without_number_is_zero(self) -> None:
        assert parse_views("k") == 0

    def test_non_finite_is_zero(self) -> None:
        assert parse_views("inf") == 0
        assert parse_views("nan") == 0


class TestUrlHelpers:
    def test_extracts_video_id(self) -> None:
        url = "https://www.tiktok.com/@alice/video/7301234567890123456?lang=en"
        assert content_id_from_url(url) == "7301234567890123456"

    def test_video_id_missing(self) -> None:
        assert content_id_from_url("https://www.tiktok.com/@alice") is None
        assert content_id_from_url("") is None
        assert content_id_from_url(None) is None

    def test_extracts_author(self) -> None:
        assert author_from_url("https://www.tiktok.com/@bob.sol/video/1") == "bob.sol"
        assert author_from_url("https://www.tiktok.com/video/1") == ""


class TestTimestamps:
    def test_posted_at_from_id_uses_upper_bits(self) -> None:
        seconds = 1_700_000_000
        content_id = str((seconds << 32) | 12345)
        assert posted_at_from_id(content_id) == datetime.fromtimestamp(
            seconds, tz=timezone.utc
        )

    def test_small_or_invalid_ids_have_no_timestamp(self) -> None:
        assert posted_at_from_id("12345") is None
        assert posted_at_from_id("abc") is None

    def test_from_unix(self) -> None:
        assert from_unix(0) is None
        assert from_unix(None) is None
        assert from_unix(86400) == datetime(1970, 1, 2, tzinfo=timezone.utc)


class TestText:
    def test_sanitize_strips_nul(self) -> None:
        assert sanitize("to\x00the\x00moon") == "tothemoon"
        assert sanitize(None) == ""

    def test_truncate(self) -> None:
        assert truncate("short") == "short"
        assert truncate("x" * 10, max_len=4) == "xxxx..."
