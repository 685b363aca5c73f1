# Copyright (c) 2024 Mountain Jewels Intelligence. All rights reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# modification, distribution, or use is strictly prohibited.

"""
Result Models for the Social Presence Scraper

Request-scoped value objects produced by the scrape pipeline. Records are
assembled field by field by the extraction layer and frozen on construction;
to_dict() renders the plain structure handed to downstream consumers.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: datetime) -> str:
    return value.isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class Comment:
    """A comment on a post, with at most one level of replies in practice."""
    id: str
    author_username: str
    author_display_name: str
    text: str
    timestamp: datetime = field(default_factory=utc_now)
    like_count: int = 0
    replies: Tuple["Comment", ...] = ()

    def __post_init__(self):
        if self.like_count < 0:
            raise ValueError(f"Comment {self.id} has negative like_count")

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "author_username": self.author_username,
            "author_display_name": self.author_display_name,
            "text": self.text,
            "timestamp": _iso(self.timestamp),
            "like_count": self.like_count,
        }
        if self.replies:
            data["replies"] = [reply.to_dict() for reply in self.replies]
        return data


@dataclass(frozen=True)
class Post:
    """A single post. Content is never empty and counts are never negative."""
    id: str
    content: str
    timestamp: datetime = field(default_factory=utc_now)
    like_count: int = 0
    comment_count: int = 0
    share_count: int = 0
    media_urls: Tuple[str, ...] = ()
    comments: Optional[Tuple[Comment, ...]] = None

    def __post_init__(self):
        if not self.content or not self.content.strip():
            raise ValueError(f"Post {self.id} has empty content")
        for name in ("like_count", "comment_count", "share_count"):
            if getattr(self, name) < 0:
                raise ValueError(f"Post {self.id} has negative {name}")

    def with_comments(self, comments: Tuple[Comment, ...]) -> "Post":
        return Post(
            id=self.id,
            content=self.content,
            timestamp=self.timestamp,
            like_count=self.like_count,
            comment_count=self.comment_count,
            share_count=self.share_count,
            media_urls=self.media_urls,
            comments=tuple(comments),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "content": self.content,
            "timestamp": _iso(self.timestamp),
            "like_count": self.like_count,
            "comment_count": self.comment_count,
            "share_count": self.share_count,
        }
        if self.media_urls:
            data["media_urls"] = list(self.media_urls)
        if self.comments is not None:
            data["comments"] = [comment.to_dict() for comment in self.comments]
        return data


@dataclass(frozen=True)
class Profile:
    """Profile or page attributes. Everything but the identity is optional."""
    id: str
    name: str
    username: str
    about: Optional[str] = None
    follower_count: Optional[int] = None
    profile_pic_url: Optional[str] = None
    profile_pic_url_hd: Optional[str] = None
    verified: bool = False
    website: Optional[str] = None
    category: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "username": self.username,
            "about": self.about,
            "follower_count": self.follower_count,
            "profile_pic_url": self.profile_pic_url,
            "profile_pic_url_hd": self.profile_pic_url_hd,
            "verified": self.verified,
            "website": self.website,
            "category": self.category,
        }


@dataclass(frozen=True)
class ScrapeResult:
    """
    Outcome of one scrape invocation.

    A result is always returned to the caller. Partial failure is reported
    through warnings; error is set only when the scrape could not run at all.
    """
    platform: str
    identifier: str
    profile: Optional[Profile] = None
    posts: Tuple[Post, ...] = ()
    warnings: Tuple[str, ...] = ()
    error: Optional[str] = None
    scraped_at: datetime = field(default_factory=utc_now)

    @property
    def success(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "platform": self.platform,
            "identifier": self.identifier,
            "success": self.success,
            "profile": self.profile.to_dict() if self.profile else None,
            "posts": [post.to_dict() for post in self.posts],
            "warnings": list(self.warnings),
            "scraped_at": _iso(self.scraped_at),
        }
        if self.error is not None:
            data["error"] = self.error
        return data
