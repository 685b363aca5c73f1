# Copyright (c) 2024 Mountain Jewels Intelligence. All rights reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# modification, distribution, or use is strictly prohibited.

"""
Social Presence Scraper

Best-effort extraction of a business's social-media posts, profile attributes
and comments from Facebook pages and Instagram profiles.
"""

__version__ = "1.0.0"
__author__ = "Mountain Jewels Intelligence"
__email__ = "engineering@mountainjewels.com"

from .engine import ScraperEngine
from .core.base_scraper import BaseScraper
from .core.models import Comment, Post, Profile, ScrapeResult

__all__ = [
    "ScraperEngine",
    "BaseScraper",
    "Comment",
    "Post",
    "Profile",
    "ScrapeResult",
]
