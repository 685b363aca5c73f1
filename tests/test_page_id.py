# Copyright (c) 2024 Mountain Jewels Intelligence. All rights reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# modification, distribution, or use is strictly prohibited.

"""
Test Page Identifier Resolution for the Social Presence Scraper

Covers the pattern cascade, the redirect URL fallback and rejection of
numerals that read as recent timestamps.
"""

from datetime import datetime, timezone

import pytest
from bs4 import BeautifulSoup

from presence_scraper.extraction.page_id import (
    PageIdentifierResolver, looks_like_recent_timestamp, normalize_page_name, plausible_long_id,
)
from presence_scraper.extraction.page_info import parse_follower_count, parse_page_info

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


@pytest.fixture
def resolver():
    return PageIdentifierResolver(clock=lambda: NOW)


class TestPageName:
    """Test handle normalization."""

    @pytest.mark.parametrize("raw", [
        "example-cafe",
        "https://www.facebook.com/example-cafe/",
        "http://m.facebook.com/example-cafe?ref=bookmarks",
        "facebook.com/example-cafe#about",
    ])
    def test_normalize(self, raw):
        assert normalize_page_name(raw) == "example-cafe"


class TestPageIdentifierResolver:
    """Test the ID search cascade."""

    def test_numeric_handle_is_returned_directly(self, resolver):
        assert resolver.resolve("1234567890123", "") == "1234567890123"

    def test_meta_tag(self, resolver):
        html = '<meta property="al:android:url" content="fb://page/1234567890123">'
        assert resolver.resolve("example-cafe", html) == "1234567890123"

    def test_inline_page_id(self, resolver):
        assert resolver.resolve("example-cafe", '{"pageID":"123456789012"}') == "123456789012"

    def test_short_numbers_are_ignored(self, resolver):
        assert resolver.resolve("example-cafe", '{"pageID":"123456"}') is None

    def test_final_url(self, resolver):
        found = resolver.resolve("example-cafe", "<html></html>",
                                 "https://www.facebook.com/100064123456789/")
        assert found == "100064123456789"

    def test_recent_timestamp_is_skipped(self, resolver):
        html = '{"ts":"1717200000000","other":"123456789012"}'
        assert resolver.resolve("example-cafe", html) == "123456789012"

    def test_only_timestamps_yields_nothing(self, resolver):
        assert resolver.resolve("example-cafe", '{"ts":"1717200000000"}') is None


class TestTimestampHeuristic:
    """Test the recent-timestamp check."""

    def test_seconds_and_milliseconds(self):
        assert looks_like_recent_timestamp("1717200000", NOW)
        assert looks_like_recent_timestamp("1717200000000", NOW)
        assert looks_like_recent_timestamp("1690000000", NOW)  # previous year

    def test_older_values_are_not_recent(self):
        assert not looks_like_recent_timestamp("1500000000", NOW)

    def test_long_ids_are_always_plausible(self):
        assert plausible_long_id("171720000000000", NOW)
        assert not plausible_long_id("123", NOW)


class TestPageInfo:
    """Test profile attributes from page markup."""

    def test_follower_count(self):
        assert parse_follower_count("1,234 people like this") == 1234
        assert parse_follower_count("2.5K like this") == 2500
        assert parse_follower_count("no numbers here") is None

    def test_meta_tags_take_precedence(self):
        soup = BeautifulSoup(
            '<html><head>'
            '<meta property="og:title" content="Example Cafe">'
            '<meta property="og:image" content="https://cdn.example.net/p.jpg">'
            '<script type="application/ld+json">'
            '{"@type": "LocalBusiness", "name": "Example Cafe LLC",'
            ' "description": "Coffee and pastries", "url": "https://example.com"}'
            '</script></head><body>3,400 people like this</body></html>', "lxml")
        profile = parse_page_info(soup, "example-cafe", "1234567890123")
        assert profile.name == "Example Cafe"
        assert profile.about == "Coffee and pastries"
        assert profile.website == "https://example.com"
        assert profile.profile_pic_url == "https://cdn.example.net/p.jpg"
        assert profile.follower_count == 3400
        assert profile.id == "1234567890123"
        assert profile.username == "example-cafe"
