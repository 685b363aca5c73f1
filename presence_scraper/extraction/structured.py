# Copyright (c) 2024 Mountain Jewels Intelligence. All rights reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# modification, distribution, or use is strictly prohibited.

"""
Structured Object Extraction for the Social Presence Scraper

Pulls complete JSON objects and arrays out of larger documents that are not
valid JSON as a whole (HTML pages with inline script payloads). A single
forward scan balances braces and brackets while skipping quoted strings and
escape sequences, so the exact end of the embedded structure is found
without parsing the surrounding text.
"""

import json
import logging
from typing import Any, Iterator, List, Optional, Sequence, Tuple

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

_OPENERS = {"{": "}", "[": "]"}
_CLOSERS = {"}", "]"}


def find_structure_end(text: str, start: int) -> Optional[int]:
    """
    Offset one past the delimiter closing the structure opened at `start`.

    Returns None when text[start] is not an opening delimiter or the
    structure never closes before end of input.
    """
    if start < 0 or start >= len(text) or text[start] not in _OPENERS:
        return None

    depth = 0
    in_string = False
    escaped = False

    for index in range(start, len(text)):
        ch = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
        elif ch in _OPENERS:
            depth += 1
        elif ch in _CLOSERS:
            depth -= 1
            if depth == 0:
                return index + 1

    return None


def extract_at(text: str, start: int) -> Optional[str]:
    """Raw substring of the balanced structure starting at `start`."""
    end = find_structure_end(text, start)
    if end is None:
        return None
    return text[start:end]


def parse_at(text: str, start: int) -> Optional[Any]:
    """Parsed structure starting at `start`, or None if unbalanced or invalid."""
    raw = extract_at(text, start)
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        logger.debug(f"Balanced structure at offset {start} did not parse ({len(raw)} chars)")
        return None


def iter_anchor_offsets(text: str, anchor: str, limit: Optional[int] = None) -> Iterator[int]:
    """Offsets where `anchor` occurs, oldest first, at most `limit` of them."""
    found = 0
    position = text.find(anchor)
    while position != -1 and (limit is None or found < limit):
        yield position
        found += 1
        position = text.find(anchor, position + 1)


def iter_anchored_objects(text: str, anchor: str, limit: Optional[int] = None) -> Iterator[Any]:
    """
    Parse every structure that begins at an occurrence of `anchor`.

    The anchor must start with the opening delimiter (e.g. '{"require":').
    Occurrences that do not yield valid JSON are skipped.
    """
    for offset in iter_anchor_offsets(text, anchor, limit):
        parsed = parse_at(text, offset)
        if parsed is not None:
            yield parsed


def extract_first(text: str, anchors: Sequence[str]) -> Optional[Any]:
    """First parseable structure across an ordered list of anchors."""
    for anchor in anchors:
        for parsed in iter_anchored_objects(text, anchor):
            return parsed
    return None


def script_bodies(soup: BeautifulSoup) -> List[str]:
    """Inline script contents, skipping external script references."""
    bodies = []
    for script in soup.find_all("script"):
        if script.get("src"):
            continue
        body = script.string if script.string is not None else script.get_text()
        if body:
            bodies.append(body)
    return bodies


def json_ld_objects(soup: BeautifulSoup) -> List[Tuple[Any, str]]:
    """Parsed JSON-LD blocks with their @type (flattened from @graph and lists)."""
    objects = []
    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        raw = script.string or script.get_text()
        if not raw:
            continue
        try:
            data = json.loads(raw)
        except ValueError:
            logger.debug("Skipping malformed JSON-LD block")
            continue

        queue = data if isinstance(data, list) else [data]
        while queue:
            item = queue.pop(0)
            if not isinstance(item, dict):
                continue
            if isinstance(item.get("@graph"), list):
                queue.extend(item["@graph"])
            item_type = item.get("@type")
            if isinstance(item_type, list):
                item_type = item_type[0] if item_type else ""
            objects.append((item, item_type or ""))
    return objects
