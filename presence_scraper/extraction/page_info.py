# Copyright (c) 2024 Mountain Jewels Intelligence. All rights reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# modification, distribution, or use is strictly prohibited.

"""
Page Info Parsing for the Social Presence Scraper

Builds a Profile for a public Facebook page from JSON-LD, Open Graph meta
tags and the visible "people like this" count.
"""

import logging
import re
from typing import Optional

from bs4 import BeautifulSoup

from ..core.models import Profile
from .structured import json_ld_objects

logger = logging.getLogger(__name__)

FOLLOWERS_PATTERN = re.compile(
    r"(\d+(?:,\d+)*(?:\.\d+)?[KMB]?)\s*(?:people\s*)?like this", re.IGNORECASE
)

_MULTIPLIERS = {"K": 1_000, "M": 1_000_000, "B": 1_000_000_000}


def parse_follower_count(text: str) -> Optional[int]:
    """'1,234 people like this' -> 1234, '2.5K like this' -> 2500."""
    match = FOLLOWERS_PATTERN.search(text)
    if not match:
        return None
    raw = match.group(1).replace(",", "").upper()
    suffix = raw[-1] if raw[-1] in _MULTIPLIERS else ""
    number = raw[:-1] if suffix else raw
    try:
        value = float(number)
    except ValueError:
        return None
    return int(value * _MULTIPLIERS.get(suffix, 1))


def meta_content(soup: BeautifulSoup, prop: str) -> Optional[str]:
    tag = soup.find("meta", attrs={"property": prop}) or soup.find("meta", attrs={"name": prop})
    if tag and tag.get("content"):
        return tag["content"].strip() or None
    return None


def parse_page_info(soup: BeautifulSoup, page_name: str,
                    page_id: Optional[str] = None) -> Profile:
    """Profile for a page. Meta tags take precedence over JSON-LD."""
    name = page_name
    about = None
    website = None

    for obj, obj_type in json_ld_objects(soup):
        if obj_type in ("Organization", "Person", "LocalBusiness"):
            name = obj.get("name") or name
            about = obj.get("description") or about
            website = obj.get("url") or website
            break

    name = meta_content(soup, "og:title") or name
    about = meta_content(soup, "og:description") or about
    picture = meta_content(soup, "og:image")

    followers = parse_follower_count(soup.get_text(" ", strip=True))

    return Profile(
        id=page_id or "",
        name=name,
        username=page_name,
        about=about,
        follower_count=followers,
        profile_pic_url=picture,
        website=website,
    )
