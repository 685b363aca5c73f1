# Copyright (c) 2024 Mountain Jewels Intelligence. All rights reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# modification, distribution, or use is strictly prohibited.

"""
Page Identifier Resolution for the Social Presence Scraper

Turns a Facebook handle or URL into the page's numeric ID by searching the
fetched page for it. Each search is a pure function from text to an optional
ID; they run in a fixed priority order through a first-some combinator. Not
finding an ID is a normal outcome: callers carry on with the handle.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Callable, List, Optional, Pattern, Sequence

from .tree import first_some

logger = logging.getLogger(__name__)

MIN_ID_LENGTH = 10
MAX_ID_LENGTH = 20

# Values shorter than this are checked against recent epoch timestamps.
CONFIDENT_ID_LENGTH = 15
# How many years back (besides the current one) count as "recent".
TIMESTAMP_YEAR_WINDOW = 1

IdPattern = Callable[[str], Optional[str]]


def normalize_page_name(raw: str) -> str:
    """Bare page handle from a handle, vanity URL or numeric ID."""
    name = raw.strip()
    name = re.sub(r"^https?://", "", name, flags=re.IGNORECASE)
    name = re.sub(r"^(?:www\.|m\.|web\.)?facebook\.com/", "", name, flags=re.IGNORECASE)
    name = name.split("?", 1)[0].split("#", 1)[0]
    return name.rstrip("/")


def regex_pattern(expression: str, flags: int = re.IGNORECASE,
                  min_length: int = MIN_ID_LENGTH) -> IdPattern:
    """Pattern function returning group 1 of the first match, if long enough."""
    compiled: Pattern[str] = re.compile(expression, flags)

    def search(text: str) -> Optional[str]:
        match = compiled.search(text)
        if match and match.group(1) and len(match.group(1)) >= min_length:
            return match.group(1)
        return None

    search.__name__ = f"match_{expression[:40]}"
    return search


HTML_PATTERNS: Sequence[IdPattern] = (
    # Meta tags
    regex_pattern(r'<meta property="al:android:url" content="fb://page/(\d+)"'),
    regex_pattern(r'<meta property="al:ios:url" content="fb://page/(\d+)"'),
    regex_pattern(r'<meta property="og:url" content="https://www\.facebook\.com/(\d+)/"'),
    # Inline JSON
    regex_pattern(r'"pageID":"(\d+)"'),
    regex_pattern(r'"pageID":(\d+)'),
    regex_pattern(r'"profile_id":(\d+)'),
    regex_pattern(r'"entity_id":(\d+)'),
    regex_pattern(r'"target_id":(\d+)'),
    regex_pattern(r'"page_id":(\d+)'),
    regex_pattern(r'"fbid":(\d+)'),
    regex_pattern(r'"id":(\d+)'),
    # IDs embedded in URLs
    regex_pattern(r'fb://page/(\d+)'),
    regex_pattern(r'/pages/.*?/(\d+)/'),
    regex_pattern(r'/page/(\d+)/'),
    regex_pattern(r'pageID=(\d+)'),
    # Canonical and alternate links
    regex_pattern(r'<link rel="canonical" href="https://www\.facebook\.com/(\d+)/"'),
    regex_pattern(r'<link rel="alternate" href="https://www\.facebook\.com/(\d+)/"'),
    # Script assignments and session data
    regex_pattern(r'pageID["\']?\s*[:=]\s*["\']?(\d+)'),
    regex_pattern(r'"__user":"(\d+)"'),
    regex_pattern(r'"actorID":"(\d+)"'),
)

FINAL_URL_PATTERN: IdPattern = regex_pattern(r'facebook\.com/(\d+)/')

SCRIPT_PATTERNS: Sequence[IdPattern] = (
    regex_pattern(r'"pageID":"(\d{10,})"', flags=0),
    regex_pattern(r'pageID["\']?\s*[:=]\s*["\']?(\d{10,})', flags=0),
    regex_pattern(r'"profile_id":(\d{10,})', flags=0),
    regex_pattern(r'"entity_id":(\d{10,})', flags=0),
    regex_pattern(r'"target_id":(\d{10,})', flags=0),
    regex_pattern(r'"id":"(\d{15,20})"', flags=0),
)

LONG_NUMBER_PATTERNS: Sequence[Pattern[str]] = (
    re.compile(r'"(\d{15,20})"'),
    re.compile(r'"(\d{12,})"'),
    re.compile(r'(\d{15,20})'),
)

ANY_QUOTED_ID = re.compile(r'"(\d{15,20})"')

_SCRIPT_BODY = re.compile(r"<script[^>]*>([\s\S]*?)</script>", re.IGNORECASE)


def looks_like_recent_timestamp(candidate: str, now: Optional[datetime] = None,
                                year_window: int = TIMESTAMP_YEAR_WINDOW) -> bool:
    """
    True when the digits read as a Unix timestamp (seconds or milliseconds)
    falling in the current year or the `year_window` years before it.
    """
    now = now or datetime.now(timezone.utc)
    value = int(candidate)
    years = range(now.year - year_window, now.year + 1)
    for divisor in (1, 1000):
        try:
            moment = datetime.fromtimestamp(value / divisor, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            continue
        if moment.year in years:
            return True
    return False


def plausible_long_id(candidate: str, now: Optional[datetime] = None) -> bool:
    if not MIN_ID_LENGTH <= len(candidate) <= MAX_ID_LENGTH:
        return False
    if len(candidate) >= CONFIDENT_ID_LENGTH:
        return True
    return not looks_like_recent_timestamp(candidate, now)


def search_scripts(html: str) -> Optional[str]:
    """Targeted patterns applied to each inline script body."""
    for body in _SCRIPT_BODY.findall(html):
        found = first_some(SCRIPT_PATTERNS, body)
        if found:
            return found
    return None


def search_long_numbers(html: str, now: Optional[datetime] = None) -> Optional[str]:
    """Any long numeral that does not read as a recent timestamp."""
    for pattern in LONG_NUMBER_PATTERNS:
        for match in pattern.finditer(html):
            if plausible_long_id(match.group(1), now):
                return match.group(1)
    return None


def search_any_quoted(html: str) -> Optional[str]:
    """Best effort: the first quoted 15-20 digit numeral anywhere."""
    match = ANY_QUOTED_ID.search(html)
    return match.group(1) if match else None


class PageIdentifierResolver:
    """Ordered cascade of ID searches over a fetched page."""

    def __init__(self, html_patterns: Sequence[IdPattern] = HTML_PATTERNS,
                 clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)):
        self.html_patterns: List[IdPattern] = list(html_patterns)
        self._clock = clock

    def resolve(self, page_name: str, html: str, final_url: Optional[str] = None) -> Optional[str]:
        """
        Numeric page ID, or None when no search succeeds.

        Args:
            page_name: Normalized handle; returned as-is if already numeric
            html: Body of the page fetch
            final_url: URL after redirects, which may embed the ID
        """
        if page_name.isdigit() and len(page_name) >= MIN_ID_LENGTH:
            return page_name

        found = first_some(self.html_patterns, html)
        if found:
            logger.debug(f"Page ID {found} for {page_name} found in markup")
            return found

        if final_url:
            found = FINAL_URL_PATTERN(final_url)
            if found:
                logger.debug(f"Page ID {found} for {page_name} found in redirect URL")
                return found

        now = self._clock()
        found = first_some(
            (search_scripts, lambda text: search_long_numbers(text, now), search_any_quoted),
            html,
        )
        if found:
            logger.info(f"Page ID {found} for {page_name} found by fallback scan")
            return found

        logger.info(f"No page ID found for {page_name} "
                    f"(html {len(html)} chars, pageID marker: {'pageID' in html})")
        return None
