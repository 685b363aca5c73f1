# Copyright (c) 2024 Mountain Jewels Intelligence. All rights reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# modification, distribution, or use is strictly prohibited.

"""
Content Validator for the Social Presence Scraper

Heuristic separating genuine post text from technical strings (user agents,
hashes, CSS, identifiers, URLs) that structural extraction tends to pick up.
Every strategy funnels candidate text through the same validator.
"""

import re
from typing import Iterable, Pattern, Sequence

MIN_LENGTH = 20
MIN_LETTER_RATIO = 0.3
MIN_WORDS = 3

TECHNICAL_PATTERNS: Sequence[Pattern[str]] = (
    re.compile(r"^Mozilla/5\.0"),                      # user agent
    re.compile(r"^[a-f0-9]{32,}$", re.IGNORECASE),     # md5-like
    re.compile(r"^[a-f0-9]{40,}$", re.IGNORECASE),     # sha-like
    re.compile(r"^invert\("),                          # css filter
    re.compile(r"^adp_"),
    re.compile(r"^[A-Z_]+$"),                          # CONSTANT_TOKEN
    re.compile(r"^[a-z]+_[a-z]+_[a-z]+"),              # snake_case_token
    re.compile(r"^https?://"),
    re.compile(r"^[0-9]+$"),
    re.compile(r"^[^a-zA-Z]{10,}$"),
    re.compile(r"AppleWebKit|Chrome|Safari|Firefox", re.IGNORECASE),
    re.compile(r"\.(js|css|json|html|xml)$", re.IGNORECASE),
)

BOILERPLATE_MARKERS = (
    "see more about",
    "page ·",
    "commenting has been turned off",
    "a server error",
    "field_exception",
)


class ContentValidator:
    """Classifies candidate text as user content or technical noise."""

    def __init__(self, min_length: int = MIN_LENGTH,
                 min_letter_ratio: float = MIN_LETTER_RATIO,
                 min_words: int = MIN_WORDS,
                 patterns: Iterable[Pattern[str]] = TECHNICAL_PATTERNS):
        self.min_length = min_length
        self.min_letter_ratio = min_letter_ratio
        self.min_words = min_words
        self.patterns = tuple(patterns)

    def is_valid(self, text: str) -> bool:
        trimmed = text.strip() if text else ""
        if not trimmed or len(trimmed) < self.min_length:
            return False

        if any(pattern.search(trimmed) for pattern in self.patterns):
            return False

        letters = sum(1 for ch in trimmed if ch.isalpha())
        if letters / len(trimmed) < self.min_letter_ratio:
            return False

        return len(trimmed.split()) >= self.min_words

    def is_boilerplate(self, text: str) -> bool:
        lowered = text.lower()
        return any(marker in lowered for marker in BOILERPLATE_MARKERS)


default_validator = ContentValidator()


def is_valid_post_content(text: str) -> bool:
    return default_validator.is_valid(text)
