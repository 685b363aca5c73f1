# Copyright (c) 2024 Mountain Jewels Intelligence. All rights reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# modification, distribution, or use is strictly prohibited.

"""
Scraper Engine for the Social Presence Scraper

Keeps a registry of platform scrapers, maps identifiers to platforms, and
runs single scrapes with settings loaded from the YAML config file.
"""

import logging
import re
from typing import Any, Callable, Dict, Optional

from .core.base_scraper import BaseScraper
from .core.config import SettingsFile
from .core.models import ScrapeResult
from .scrapers.facebook_scraper import FacebookScraper
from .scrapers.instagram_scraper import InstagramScraper

logger = logging.getLogger(__name__)

ScraperFactory = Callable[[SettingsFile, Dict[str, Any]], BaseScraper]

_PLATFORM_HOSTS = (
    ("instagram", re.compile(r"(?:^|[/.])instagram\.com(?:/|$)", re.IGNORECASE)),
    ("facebook", re.compile(r"(?:^|[/.])(?:facebook|fb)\.com(?:/|$)", re.IGNORECASE)),
)


def detect_platform(identifier: str) -> Optional[str]:
    """Platform named by a URL identifier; None for bare handles."""
    for platform, pattern in _PLATFORM_HOSTS:
        if pattern.search(identifier.strip()):
            return platform
    return None


def _facebook_factory(settings: SettingsFile, overrides: Dict[str, Any]) -> BaseScraper:
    return FacebookScraper(settings.facebook_config(**overrides))


def _instagram_factory(settings: SettingsFile, overrides: Dict[str, Any]) -> BaseScraper:
    return InstagramScraper(settings.instagram_config(**overrides),
                            credentials=settings.instagram_credentials())


class ScraperEngine:
    """Registry and entry point for platform scrapers."""

    def __init__(self, settings: Optional[SettingsFile] = None):
        self.settings = settings or SettingsFile()
        self.logger = logging.getLogger(f"{__name__}.ScraperEngine")
        self.scrapers: Dict[str, ScraperFactory] = {}
        self.active_scrapers: Dict[str, BaseScraper] = {}

        self.register_scraper(FacebookScraper.PLATFORM, _facebook_factory)
        self.register_scraper(InstagramScraper.PLATFORM, _instagram_factory)

    def register_scraper(self, platform: str, factory: ScraperFactory) -> None:
        """
        Register a scraper factory for a platform.

        Args:
            platform: Platform key used by run()
            factory: Builds a scraper from settings and per-run config overrides
        """
        self.scrapers[platform] = factory
        self.logger.debug(f"Registered scraper: {platform}")

    def unregister_scraper(self, platform: str) -> None:
        self.scrapers.pop(platform, None)
        self.logger.info(f"Unregistered scraper: {platform}")

    @property
    def platforms(self):
        return sorted(self.scrapers)

    async def run(self, platform: Optional[str], identifier: str,
                  max_posts: Optional[int] = None,
                  include_comments: Optional[bool] = None) -> ScrapeResult:
        """
        Scrape one page or profile.

        Args:
            platform: Registered platform, or None to detect it from the identifier
            identifier: Handle, numeric ID or profile URL
            max_posts: Overrides the configured post limit
            include_comments: Overrides the configured comment setting

        Raises:
            ValueError: If the platform is unknown or cannot be detected
        """
        platform = platform or detect_platform(identifier)
        if platform is None:
            raise ValueError(f"Cannot detect platform for {identifier!r}; specify one of "
                             f"{', '.join(self.platforms)}")
        if platform not in self.scrapers:
            raise ValueError(f"Unknown platform {platform!r}; expected one of "
                             f"{', '.join(self.platforms)}")

        overrides: Dict[str, Any] = {}
        if max_posts is not None:
            overrides["max_posts"] = max_posts
        if include_comments is not None:
            overrides["include_comments"] = include_comments

        scraper = self.scrapers[platform](self.settings, overrides)
        self.active_scrapers[platform] = scraper
        self.logger.info(f"Running {scraper} for {identifier}")
        try:
            return await scraper.scrape(identifier)
        finally:
            await scraper.cleanup()
            self.active_scrapers.pop(platform, None)

    def get_metrics(self) -> Dict[str, Any]:
        return {
            "registered": self.platforms,
            "active": {name: s.get_metrics() for name, s in self.active_scrapers.items()},
        }

    async def close(self) -> None:
        for scraper in list(self.active_scrapers.values()):
            await scraper.cleanup()
        self.active_scrapers.clear()
