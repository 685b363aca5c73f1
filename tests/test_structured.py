# Copyright (c) 2024 Mountain Jewels Intelligence. All rights reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# modification, distribution, or use is strictly prohibited.

"""
Test Structured Extraction for the Social Presence Scraper

Balanced-delimiter scanning of inline scripts and JSON-LD discovery.
"""

import json

from bs4 import BeautifulSoup

from presence_scraper.extraction.structured import (
    extract_at, extract_first, find_structure_end, iter_anchored_objects,
    json_ld_objects, parse_at, script_bodies,
)


class TestBalancedScan:
    """Test quote- and escape-aware structure boundaries."""

    def test_braces_inside_strings_are_ignored(self):
        text = 'x = {"a": "}", "b": [1, 2]} tail'
        assert extract_at(text, 4) == '{"a": "}", "b": [1, 2]}'

    def test_escaped_quotes_do_not_end_strings(self):
        text = r'{"a": "say \"hi\" {"}'
        assert extract_at(text, 0) == text
        assert parse_at(text, 0) == {"a": 'say "hi" {'}

    def test_arrays_are_supported(self):
        text = '[1, [2, 3], {"k": "]"}] rest'
        assert find_structure_end(text, 0) == len('[1, [2, 3], {"k": "]"}]')

    def test_unbalanced_or_invalid_start(self):
        assert find_structure_end('{"a": 1', 0) is None
        assert find_structure_end("abc", 0) is None
        assert find_structure_end("{}", 5) is None

    def test_balanced_but_not_json(self):
        assert parse_at("{foo: bar}", 0) is None

    def test_embedded_structure_round_trip(self):
        original = {"posts": [{"id": "1", "text": "Brace } and bracket ] inside \"quotes\""},
                              {"id": "2", "tags": [], "meta": {"nested": [1, {"deep": None}]}}]}
        noise = "<script>var junk = '{{not json'; window.__data = "
        text = noise + json.dumps(original) + "; trailing { garbage"
        assert parse_at(text, len(noise)) == original


class TestAnchoredObjects:
    """Test anchor-driven extraction."""

    TEXT = 'a {"require":[1]} b {"require":[2]} c {"require":'

    def test_every_parseable_occurrence(self):
        assert list(iter_anchored_objects(self.TEXT, '{"require":')) == [
            {"require": [1]}, {"require": [2]},
        ]

    def test_limit(self):
        assert len(list(iter_anchored_objects(self.TEXT, '{"require":', limit=1))) == 1

    def test_extract_first_uses_anchor_order(self):
        text = '{"other": 1} {"require": 2}'
        assert extract_first(text, ['{"require":', '{"other":']) == {"require": 2}
        assert extract_first(text, ['{"missing":']) is None


class TestSoupHelpers:
    """Test script body and JSON-LD collection."""

    def test_script_bodies_skip_external(self):
        soup = BeautifulSoup(
            '<script src="app.js"></script><script>var a = 1;</script>', "lxml")
        assert script_bodies(soup) == ["var a = 1;"]

    def test_json_ld_graph_is_flattened(self):
        soup = BeautifulSoup(
            '<script type="application/ld+json">'
            '{"@graph": [{"@type": "WebSite", "name": "Site"},'
            ' {"@type": ["LocalBusiness"], "name": "Example Cafe"}]}'
            '</script>'
            '<script type="application/ld+json">not json</script>', "lxml")
        types = [obj_type for _, obj_type in json_ld_objects(soup)]
        assert "WebSite" in types
        assert "LocalBusiness" in types
