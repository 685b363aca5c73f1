# Copyright (c) 2024 Mountain Jewels Intelligence. All rights reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# modification, distribution, or use is strictly prohibited.

"""
Field Resolution for the Social Presence Scraper

Each logical post field is declared as an ordered tuple of candidate paths
into a matched record. The first candidate that is present and of the right
kind wins; counts default to zero and text to absent. Keeping the lists as
data lets every render context's layout be tested on its own.
"""

import logging
import math
import re
from datetime import datetime, timezone
from typing import Any, List, Optional, Sequence

from ..core.models import Post, utc_now
from .tree import JsonKind, first_typed, kind_of, resolve_path
from .validator import ContentValidator, default_validator

logger = logging.getLogger(__name__)

POST_TYPENAMES = frozenset({"Story", "FeedUnit", "Post"})

_COMET_FEEDBACK = ("comet_sections.feedback.story.feedback_context."
                   "feedback_target_with_context.comet_ufi_summary_and_actions_renderer.feedback")

LIKE_COUNT_PATHS = (
    "feedback.reaction_count",
    "feedback.reaction_count.count",
    "feedback.reactors.count",
    "feedback.comet_ufi_summary_and_actions_renderer.feedback.reaction_count",
    "feedback.comet_ufi_summary_and_actions_renderer.feedback.reactors.count",
    "feedback.count",
    "like_count",
    "reaction_count",
    "attached_story.feedback.reaction_count",
    "attached_story.feedback.count",
    f"{_COMET_FEEDBACK}.reaction_count",
)

COMMENT_COUNT_PATHS = (
    "feedback.comment_count",
    "feedback.comments_count",
    "comments.count",
    "comment_count",
    "comments_count",
    "attached_story.feedback.comment_count",
    "attached_story.comments.count",
    f"{_COMET_FEEDBACK}.comment_count",
)

SHARE_COUNT_PATHS = (
    "feedback.share_count",
    "shares.count",
    "share_count",
    "shares_count",
    "attached_story.feedback.share_count",
    "attached_story.shares.count",
    f"{_COMET_FEEDBACK}.share_count",
)

MESSAGE_PATHS = (
    "message.text",
    "message.text_with_entities.text",
    "text",
    "body.text",
    "description.text",
    "title_with_entities.text",
    "story.message.text",
    "attached_story.message.text",
    "attached_story.story.message.text",
    "comet_sections.content.story.message.text",
    "comet_sections.content.story.attached_story.message.text",
    "comet_sections.content.story.story.message.text",
)

# Link and media posts often carry their text on the attachment
ATTACHMENT_MESSAGE_PATHS = (
    "story_attachment.description.text",
    "story_attachment.title_with_entities.text",
    "media.title.text",
    "title",
)

ATTACHMENT_CONTAINERS = (
    "attachments",
    "attached_story.attachments",
    "comet_sections.content.story.attachments",
)

MEDIA_URL_PATHS = (
    "media.image.uri",
    "media.image.url",
    "story_attachment.media.image.uri",
    "story_attachment.media.image.url",
    "photo_image.uri",
    "photo_image.url",
    "image.uri",
    "image.url",
    "thumbnailImage.uri",
    "thumbnailImage.url",
)

POST_ID_PATHS = ("id", "postID", "fbid", "legacy_fbid", "post_id", "storyId")

TIMESTAMP_PATHS = (
    "creation_time",
    "timestamp",
    "time",
    "created_time",
    "attached_story.creation_time",
    "comet_sections.content.story.creation_time",
)

MESSAGE_SEARCH_DEPTH = 6
MIN_RECORD_MESSAGE_LENGTH = 10

_WHITESPACE = re.compile(r"\s+")


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def resolve_count(record: Any, paths: Sequence[str]) -> int:
    """First finite numeric candidate, clamped to a non-negative int."""
    for path in paths:
        value = resolve_path(record, path)
        if kind_of(value) is JsonKind.NUMBER and math.isfinite(value):
            return max(0, int(value))
    return 0


def _first_text(record: Any, paths: Sequence[str]) -> Optional[str]:
    for path in paths:
        value = resolve_path(record, path)
        if kind_of(value) is JsonKind.STRING:
            text = collapse_whitespace(value)
            if text:
                return text
    return None


def _attachment_nodes(container: Any) -> List[Any]:
    edges = resolve_path(container, "edges")
    if edges is None:
        edges = container
    if kind_of(edges) is not JsonKind.ARRAY:
        return []
    nodes = []
    for edge in edges:
        node = resolve_path(edge, "node")
        nodes.append(node if node is not None else edge)
    return nodes


def resolve_message(record: Any, depth: int = 0,
                    max_depth: int = MESSAGE_SEARCH_DEPTH) -> Optional[str]:
    """
    Post text for a record.

    Tries direct message paths, then attachment titles and descriptions,
    then recurses into child objects down to `max_depth`.
    """
    if kind_of(record) not in (JsonKind.OBJECT, JsonKind.ARRAY) or depth > max_depth:
        return None

    if kind_of(record) is JsonKind.OBJECT:
        text = _first_text(record, MESSAGE_PATHS)
        if text:
            return text

        edges = resolve_path(record, "attachments.edges")
        if kind_of(edges) is JsonKind.ARRAY:
            for edge in edges:
                text = _first_text(resolve_path(edge, "node"), ATTACHMENT_MESSAGE_PATHS)
                if text:
                    return text

        children = record.values()
    else:
        children = record

    for child in children:
        if kind_of(child) in (JsonKind.OBJECT, JsonKind.ARRAY):
            found = resolve_message(child, depth + 1, max_depth)
            if found:
                return found
    return None


def resolve_media(record: Any) -> List[str]:
    """Ordered, de-duplicated media URLs from the record's attachments."""
    urls: List[str] = []
    for container_path in ATTACHMENT_CONTAINERS:
        for node in _attachment_nodes(resolve_path(record, container_path)):
            for path in MEDIA_URL_PATHS:
                url = resolve_path(node, path)
                if kind_of(url) is JsonKind.STRING:
                    url = url.strip()
                    if url and url not in urls:
                        urls.append(url)
    return urls


def resolve_post_id(record: Any) -> Optional[str]:
    for path in POST_ID_PATHS:
        value = resolve_path(record, path)
        if kind_of(value) in (JsonKind.STRING, JsonKind.NUMBER) and value != "" and value != 0:
            return str(value)
    return None


def normalize_timestamp(value: Any) -> datetime:
    """
    Absolute UTC instant for an epoch number or ISO string.

    Numbers below 1e10 are seconds, larger ones milliseconds. Anything
    unparseable falls back to now, never None.
    """
    kind = kind_of(value)
    if kind is JsonKind.NUMBER and math.isfinite(value) and value > 0:
        seconds = value if value < 10_000_000_000 else value / 1000.0
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return utc_now()
    if kind is JsonKind.STRING and value.strip():
        text = value.strip()
        if text.isdigit():
            return normalize_timestamp(int(text))
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return utc_now()
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)
    return utc_now()


def resolve_timestamp(record: Any) -> datetime:
    for path in TIMESTAMP_PATHS:
        value = resolve_path(record, path)
        if kind_of(value) in (JsonKind.NUMBER, JsonKind.STRING) and value:
            return normalize_timestamp(value)
    return utc_now()


def post_from_record(record: Any,
                     validator: ContentValidator = default_validator) -> Optional[Post]:
    """
    Build a Post from a Story-like record, or None if it does not qualify.

    A record qualifies when it has an id and a message that is at least ten
    characters long and passes the content validator.
    """
    post_id = resolve_post_id(record)
    message = resolve_message(record)

    if not post_id or not message or len(message) < MIN_RECORD_MESSAGE_LENGTH:
        return None
    if not validator.is_valid(message):
        logger.debug(f"Rejected record {post_id}: message failed validation")
        return None

    return Post(
        id=post_id,
        content=message,
        timestamp=resolve_timestamp(record),
        like_count=resolve_count(record, LIKE_COUNT_PATHS),
        comment_count=resolve_count(record, COMMENT_COUNT_PATHS),
        share_count=resolve_count(record, SHARE_COUNT_PATHS),
        media_urls=tuple(resolve_media(record)),
    )


# Instagram private API layouts

IG_CAPTION_PATHS = ("caption.text", "edge_media_to_caption.edges.0.node.text")
IG_LIKE_PATHS = ("like_count", "edge_liked_by.count", "edge_media_preview_like.count")
IG_COMMENT_PATHS = ("comment_count", "edge_media_to_comment.count")
IG_MEDIA_PATHS = ("image_versions2.candidates.0.url", "display_url", "thumbnail_src")
IG_VIDEO_PATHS = ("video_versions.0.url", "video_url")
IG_TIMESTAMP_PATHS = ("taken_at", "taken_at_timestamp")


def instagram_media_urls(item: Any) -> List[str]:
    urls = []
    for paths in (IG_MEDIA_PATHS, IG_VIDEO_PATHS):
        url = first_typed(item, paths, JsonKind.STRING)
        if url and url not in urls:
            urls.append(url)
    return urls


def instagram_timestamp(item: Any) -> datetime:
    return normalize_timestamp(first_typed(item, IG_TIMESTAMP_PATHS, JsonKind.NUMBER))
