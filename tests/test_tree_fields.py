# Copyright (c) 2024 Mountain Jewels Intelligence. All rights reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# modification, distribution, or use is strictly prohibited.

"""
Test JSON Tree Helpers and Field Resolution for the Social Presence Scraper
"""

from datetime import datetime, timezone

from presence_scraper.extraction.fields import (
    LIKE_COUNT_PATHS, instagram_media_urls, normalize_timestamp, post_from_record,
    resolve_count, resolve_media, resolve_message,
)
from presence_scraper.extraction.tree import (
    JsonKind, find_records, find_string, first_typed, has_typename, kind_of, resolve_path,
)

EPOCH_2023 = datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)


class TestTree:
    """Test path resolution and traversal."""

    def test_kind_of_checks_bool_before_number(self):
        assert kind_of(True) is JsonKind.BOOL
        assert kind_of(3) is JsonKind.NUMBER
        assert kind_of(object()) is JsonKind.NULL

    def test_resolve_path(self):
        data = {"a": {"b": [{"c": 5}]}}
        assert resolve_path(data, "a.b.0.c") == 5
        assert resolve_path(data, "a.b.3.c") is None
        assert resolve_path(data, "a.x") is None
        assert resolve_path(data, "a.b.c") is None

    def test_first_typed_skips_wrong_kinds(self):
        data = {"count": "12", "total": 12}
        assert first_typed(data, ["count", "total"], JsonKind.NUMBER) == 12
        assert first_typed(data, ["missing"], JsonKind.NUMBER) is None

    def test_find_records_in_document_order(self):
        data = {"x": [{"__typename": "Story", "id": "1"},
                      {"nested": {"__typename": "FeedUnit", "id": "2"}},
                      {"__typename": "User", "id": "3"}]}
        found = find_records(data, has_typename({"Story", "FeedUnit"}))
        assert [record["id"] for record in found] == ["1", "2"]

    def test_find_string_is_breadth_first(self):
        data = {"deep": {"deeper": {"message": "far away text"}},
                "body": {"text": "near text"}}
        assert find_string(data, ["message", "body"]) == "near text"


class TestFields:
    """Test post field resolution."""

    def test_resolve_count_clamps_and_skips_non_finite(self):
        assert resolve_count({"feedback": {"reaction_count": -4}}, LIKE_COUNT_PATHS) == 0
        assert resolve_count({"like_count": float("inf"), "reaction_count": 7},
                             LIKE_COUNT_PATHS) == 7
        assert resolve_count({}, LIKE_COUNT_PATHS) == 0

    def test_message_from_attachment(self):
        record = {"attachments": {"edges": [
            {"node": {"story_attachment": {"title_with_entities": {
                "text": "Our new spring menu is here"}}}},
        ]}}
        assert resolve_message(record) == "Our new spring menu is here"

    def test_message_whitespace_is_collapsed(self):
        assert resolve_message({"message": {"text": "  Open\n\nlate   tonight  "}}) == \
            "Open late tonight"

    def test_media_urls_are_deduplicated(self):
        record = {"attachments": [
            {"media": {"image": {"uri": "https://cdn.example.net/a.jpg"}}},
            {"media": {"image": {"uri": "https://cdn.example.net/a.jpg"}}},
            {"media": {"image": {"url": "https://cdn.example.net/b.jpg"}}},
        ]}
        assert resolve_media(record) == [
            "https://cdn.example.net/a.jpg", "https://cdn.example.net/b.jpg",
        ]

    def test_normalize_timestamp(self):
        assert normalize_timestamp(1700000000) == EPOCH_2023
        assert normalize_timestamp(1700000000000) == EPOCH_2023
        assert normalize_timestamp("1700000000") == EPOCH_2023
        assert normalize_timestamp("2023-11-14T22:13:20Z") == EPOCH_2023

    def test_unparseable_timestamp_falls_back_to_now(self):
        before = datetime.now(timezone.utc)
        parsed = normalize_timestamp("yesterday-ish")
        assert parsed.tzinfo is not None
        assert parsed >= before
        assert normalize_timestamp(None) >= before

    def test_post_from_record(self):
        record = {
            "__typename": "Story",
            "id": "S1",
            "message": {"text": "Great coffee, friendly staff, highly recommend!"},
            "feedback": {"reaction_count": 42, "comment_count": 3, "share_count": 1},
            "creation_time": 1700000000,
        }
        post = post_from_record(record)
        assert post.id == "S1"
        assert (post.like_count, post.comment_count, post.share_count) == (42, 3, 1)
        assert post.timestamp == EPOCH_2023

    def test_post_from_record_requires_id_and_valid_message(self):
        assert post_from_record({"message": {"text": "Great coffee, friendly staff!"}}) is None
        assert post_from_record({"id": "S2", "message": {"text": "Short"}}) is None
        assert post_from_record({"id": "S3", "message": {"text": "https://example.com/path/x"}}) is None

    def test_instagram_media_urls(self):
        item = {
            "image_versions2": {"candidates": [{"url": "https://cdn.example.net/img.jpg"}]},
            "video_versions": [{"url": "https://cdn.example.net/clip.mp4"}],
        }
        assert instagram_media_urls(item) == [
            "https://cdn.example.net/img.jpg", "https://cdn.example.net/clip.mp4",
        ]
