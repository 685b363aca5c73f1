# Copyright (c) 2024 Mountain Jewels Intelligence. All rights reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# modification, distribution, or use is strictly prohibited.

"""
Result Merging for the Social Presence Scraper

Combines posts from several strategies into one list with unique ids.
Strategies that cannot see a platform id mint a synthetic one; for those,
identical content is treated as the same post.
"""

import hashlib
import logging
from typing import Dict, Iterable, List, Optional, Set

from ..core.models import Post

logger = logging.getLogger(__name__)

SYNTHETIC_PREFIX = "synthetic-"


def synthetic_post_id(strategy: str, content: str) -> str:
    digest = hashlib.sha1(content.encode("utf-8")).hexdigest()[:12]
    return f"{SYNTHETIC_PREFIX}{strategy}-{digest}"


def is_synthetic_id(post_id: str) -> bool:
    return post_id.startswith(SYNTHETIC_PREFIX)


def _content_key(content: str) -> str:
    return " ".join(content.split()).casefold()


class ResultMerger:
    """Order-preserving, de-duplicating accumulator of posts."""

    def __init__(self, limit: Optional[int] = None):
        self.limit = limit
        self._posts: List[Post] = []
        self._ids: Set[str] = set()
        self._contents: Dict[str, List[str]] = {}

    def __len__(self) -> int:
        return len(self._posts)

    @property
    def posts(self) -> List[Post]:
        return list(self._posts)

    @property
    def remaining(self) -> Optional[int]:
        if self.limit is None:
            return None
        return max(0, self.limit - len(self._posts))

    @property
    def satisfied(self) -> bool:
        return self.limit is not None and len(self._posts) >= self.limit

    def is_duplicate(self, post: Post) -> bool:
        if post.id in self._ids:
            return True
        holders = self._contents.get(_content_key(post.content))
        if not holders:
            return False
        # Equal text only merges when one side carries a minted id
        return is_synthetic_id(post.id) or any(is_synthetic_id(held) for held in holders)

    def add(self, post: Post) -> bool:
        """Add a post unless it duplicates one already held. Returns True if added."""
        if self.is_duplicate(post):
            logger.debug(f"Dropping duplicate post {post.id}")
            return False
        self._posts.append(post)
        self._ids.add(post.id)
        self._contents.setdefault(_content_key(post.content), []).append(post.id)
        return True

    def extend(self, posts: Iterable[Post]) -> int:
        added = 0
        for post in posts:
            if self.add(post):
                added += 1
        return added

    def merge(self, *batches: Iterable[Post]) -> List[Post]:
        for batch in batches:
            self.extend(batch)
        return self.result()

    def result(self) -> List[Post]:
        """Merged posts truncated to the limit."""
        if self.limit is None:
            return list(self._posts)
        return self._posts[:self.limit]
