# Copyright (c) 2024 Mountain Jewels Intelligence. All rights reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# modification, distribution, or use is strictly prohibited.

"""
Test Result Merger for the Social Presence Scraper
"""

from presence_scraper.core.models import Post
from presence_scraper.extraction.merger import ResultMerger, is_synthetic_id, synthetic_post_id

TEXT = "Great coffee, friendly staff, highly recommend!"


def post(post_id: str, content: str = TEXT) -> Post:
    return Post(id=post_id, content=content)


class TestResultMerger:
    """Test de-duplication and truncation."""

    def test_same_id_is_dropped(self):
        merger = ResultMerger()
        assert merger.add(post("1"))
        assert not merger.add(post("1", "Completely different text for this one"))
        assert len(merger) == 1

    def test_synthetic_ids_merge_on_content(self):
        merger = ResultMerger()
        merger.add(post("1234567"))
        assert not merger.add(post(synthetic_post_id("mobile", TEXT), "  great coffee,  friendly "
                                                                      "staff, highly recommend! "))
        assert len(merger) == 1

    def test_real_ids_with_equal_content_are_kept(self):
        merger = ResultMerger()
        assert merger.extend([post("1"), post("2")]) == 2

    def test_limit_and_remaining(self):
        merger = ResultMerger(limit=2)
        assert merger.remaining == 2
        merger.extend([post(str(i), f"Post number {i} about our weekly specials") for i in range(3)])
        assert merger.satisfied
        assert merger.remaining == 0
        assert [p.id for p in merger.result()] == ["0", "1"]

    def test_merge_preserves_first_seen_order(self):
        merger = ResultMerger()
        result = merger.merge(
            [post("a", "First post about the brunch menu today")],
            [post("b", "Second post about the live music tonight"),
             post("a", "First post about the brunch menu today")],
        )
        assert [p.id for p in result] == ["a", "b"]

    def test_synthetic_id_format(self):
        minted = synthetic_post_id("html", TEXT)
        assert is_synthetic_id(minted)
        assert minted.startswith("synthetic-html-")
        assert minted == synthetic_post_id("html", TEXT)
        assert not is_synthetic_id("1234567")
