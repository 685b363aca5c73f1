# Copyright (c) 2024 Mountain Jewels Intelligence. All rights reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# modification, distribution, or use is strictly prohibited.

"""
Facebook Page Scraper for the Social Presence Scraper

Extracts posts and page info from public Facebook pages without an API.
The main page is fetched once to resolve the numeric page ID and page info,
then strategies run in priority order: mobile site markup, desktop feed
markup, embedded script payloads, generic HTML post containers, and finally
the page's Open Graph description.
"""

import logging
import re
from typing import List, Optional, Sequence

from bs4 import BeautifulSoup

from ..anti_detection.browser_identity import FACEBOOK_IDENTITY
from ..anti_detection.proxy_manager import ProxyManager
from ..core.base_scraper import BaseScraper, ScrapeContext
from ..core.config import FacebookConfig
from ..core.errors import RECOVERABLE_ERRORS, LoginRequired, ScrapeError
from ..core.http_client import FetchResponse, ResilientHttpClient, default_retry_policy
from ..core.models import Post, Profile
from ..core.strategy import Strategy
from ..extraction.fields import POST_TYPENAMES, collapse_whitespace, post_from_record
from ..extraction.page_id import PageIdentifierResolver, normalize_page_name
from ..extraction.page_info import meta_content, parse_page_info
from ..extraction.merger import synthetic_post_id
from ..extraction.structured import iter_anchored_objects, script_bodies
from ..extraction.tree import find_records, has_typename
from ..extraction.validator import ContentValidator

logger = logging.getLogger(__name__)

__version__ = "2.0.0"
__description__ = "Public Facebook page scraper using layered HTML and embedded-data strategies"
__author__ = "MJ Intelligence"
__dependencies__ = ["aiohttp", "beautifulsoup4", "lxml"]

FACEBOOK_BASE = "https://www.facebook.com"
MOBILE_BASE = "https://m.facebook.com"

LOGIN_WALL_MARKERS = ('id="login_form"', "Log In to Facebook", "You must log in")

STORY_MARKERS = ('"__typename":"Story"', '"__typename":"FeedUnit"')
SCRIPT_ANCHORS = ('{"require":', '{"__typename":"Story"', '{"__typename":"FeedUnit"')
MAX_OBJECTS_PER_ANCHOR = 20
MIN_SCRIPT_LENGTH = 100
FALLBACK_SCRIPT_LENGTH = 1000
MIN_HTML_TEXT_LENGTH = 20

FALLBACK_TEXT_PATTERNS = (
    re.compile(r'"message":"([^"]{20,})"'),
    re.compile(r'"text":"([^"]{20,})"'),
    re.compile(r'"story":"([^"]{20,})"'),
    re.compile(r'"post_text":"([^"]{20,})"'),
)

MOBILE_CONTAINERS = ('article', 'div[role="article"]', 'div[class*="story"]')
MOBILE_TEXT = ('p', 'div[data-testid="post_message"]', 'span')

DESKTOP_CONTAINERS = ('div[role="article"]', 'article', 'div[data-pagelet="FeedUnit"]')
DESKTOP_TEXT = ('div[data-testid="post_message"]', 'p', 'span[class*="userContent"]')

GENERIC_CONTAINERS = (
    'div[data-pagelet="FeedUnit"]',
    'div[role="article"]',
    'article',
    'div[class*="userContent"]',
)
GENERIC_TEXT = (
    'p',
    'div[data-testid="post_message"]',
    'span[data-testid="post_message"]',
    'div[class*="userContent"]',
)

NO_POSTS_WARNING = ("No posts found. Facebook's feed may be JavaScript-rendered "
                    "or require authentication.")
NO_PAGE_ID_WARNING = "Could not extract page ID. Posts feed requires page ID to access."


def mobile_urls(page_key: str) -> List[str]:
    return [
        f"{MOBILE_BASE}/{page_key}/posts/",
        f"{MOBILE_BASE}/profile.php?id={page_key}",
        f"{MOBILE_BASE}/{page_key}?v=timeline&mibextid=ZbWKwL",
    ]


def desktop_urls(page_key: str) -> List[str]:
    return [
        f"{FACEBOOK_BASE}/{page_key}/posts/",
        f"{FACEBOOK_BASE}/profile.php?id={page_key}",
        f"{FACEBOOK_BASE}/{page_key}?v=timeline",
        f"{FACEBOOK_BASE}/{page_key}?sk=wall",
    ]


def is_login_wall(html: str) -> bool:
    return any(marker in html for marker in LOGIN_WALL_MARKERS)


def has_story_markers(scripts: Sequence[str]) -> bool:
    return any(marker in body for body in scripts for marker in STORY_MARKERS)


def scan_containers(soup: BeautifulSoup, containers: Sequence[str], text_selectors: Sequence[str],
                    limit: int, validator: ContentValidator) -> List[str]:
    """
    Post texts from markup containers, at most one per container.

    Container selectors are tried in order; the first one yielding any text
    wins.
    """
    for container_selector in containers:
        texts: List[str] = []
        for container in soup.select(container_selector)[:limit]:
            text = _first_container_text(container, text_selectors, validator, texts)
            if text:
                texts.append(text)
        if texts:
            logger.debug(f"Container selector {container_selector!r} yielded {len(texts)} texts")
            return texts
    return []


def _first_container_text(container, text_selectors: Sequence[str],
                          validator: ContentValidator, taken: List[str]) -> Optional[str]:
    for selector in text_selectors:
        for element in container.select(selector):
            text = collapse_whitespace(element.get_text(" "))
            if len(text) > MIN_HTML_TEXT_LENGTH and validator.is_valid(text) and text not in taken:
                return text
    return None


def scan_embedded_scripts(scripts: Sequence[str], limit: int,
                          validator: ContentValidator) -> List[Post]:
    """Story and FeedUnit records from structured payloads inside scripts."""
    posts: List[Post] = []
    seen_ids = set()
    is_post = has_typename(POST_TYPENAMES)

    for index, body in enumerate(scripts):
        if len(posts) >= limit:
            break
        if len(body) < MIN_SCRIPT_LENGTH:
            continue
        if not (any(marker in body for marker in STORY_MARKERS)
                or ('"message"' in body and '"creation_time"' in body)):
            continue

        found = 0
        for anchor in SCRIPT_ANCHORS:
            for payload in iter_anchored_objects(body, anchor, limit=MAX_OBJECTS_PER_ANCHOR):
                for record in find_records(payload, is_post):
                    post = post_from_record(record, validator)
                    if post and post.id not in seen_ids:
                        seen_ids.add(post.id)
                        posts.append(post)
                        found += 1
        if found:
            logger.debug(f"Script {index + 1}: {found} post records")

    return posts[:limit]


def scan_text_patterns(scripts: Sequence[str], limit: int,
                       validator: ContentValidator) -> List[str]:
    """Loose "message"/"text" string values from large scripts."""
    texts: List[str] = []
    for body in scripts:
        if len(texts) >= limit:
            break
        if len(body) <= FALLBACK_SCRIPT_LENGTH:
            continue
        for pattern in FALLBACK_TEXT_PATTERNS:
            for match in pattern.finditer(body):
                if len(texts) >= limit:
                    break
                content = match.group(1).replace("\\n", " ").replace('\\"', '"').strip()
                if validator.is_boilerplate(content):
                    continue
                if validator.is_valid(content) and content not in texts:
                    texts.append(content)
    return texts


class FacebookScraper(BaseScraper):
    """
    Public page scraper.

    A login wall on the main page fetch ends the scrape. Every later failure
    only costs the strategy it happened in.
    """

    PLATFORM = "facebook"

    def __init__(self, config: Optional[FacebookConfig] = None,
                 http_client: Optional[ResilientHttpClient] = None,
                 proxy_manager: Optional[ProxyManager] = None,
                 resolver: Optional[PageIdentifierResolver] = None,
                 **kwargs):
        config = config or FacebookConfig()
        super().__init__(config, **kwargs)
        self.facebook_config = config
        self.http = http_client or ResilientHttpClient(
            FACEBOOK_IDENTITY,
            proxy_manager=proxy_manager or ProxyManager(config.proxy),
            retry_policy=default_retry_policy(
                sleep=self.delay.sleep,
                max_attempts=config.rate_limit_attempts,
                base_delay=config.rate_limit_base_delay,
                max_delay=config.rate_limit_max_delay,
            ),
            timeout=config.timeout,
        )
        self.resolver = resolver or PageIdentifierResolver()

    async def _fetch(self, context: ScrapeContext, url: str) -> FetchResponse:
        return await self.http.fetch(url, sticky_key=f"facebook:{context.handle}")

    async def _resolve_identifier(self, context: ScrapeContext) -> None:
        context.handle = normalize_page_name(context.identifier)
        main_url = f"{FACEBOOK_BASE}/{context.handle}/"
        context.data["main_html"] = ""
        context.data["main_scripts"] = []

        try:
            response = await self._fetch(context, main_url)
        except LoginRequired:
            raise
        except RECOVERABLE_ERRORS as e:
            context.warn(f"Main page fetch failed ({type(e).__name__}: {e}); "
                         f"continuing with handle")
            response = None

        if response is not None and not response.ok:
            context.warn(f"Main page returned HTTP {response.status}; continuing with handle")
            response = None

        if response is not None:
            if is_login_wall(response.text):
                raise LoginRequired("Facebook requires login or page is not accessible",
                                    url=main_url, status=response.status)
            soup = BeautifulSoup(response.text, "lxml")
            context.data["main_html"] = response.text
            context.data["main_soup"] = soup
            context.data["main_scripts"] = script_bodies(soup)
            context.surrogate_id = self.resolver.resolve(context.handle, response.text, response.url)
            context.profile = parse_page_info(soup, context.handle, context.surrogate_id)

        if context.surrogate_id is None:
            context.warn(f"Page ID not found for '{context.handle}'; using the handle instead")
        if context.profile is None:
            context.profile = Profile(id=context.surrogate_id or "", name=context.handle,
                                      username=context.handle)

        self.logger.info(f"Resolved {context.identifier} -> {context.surrogate_id or context.handle}")

    def _strategies(self, context: ScrapeContext) -> List[Strategy]:
        page_key = context.surrogate_id or context.handle
        strategies = []
        if self.facebook_config.use_mobile_site:
            strategies.append(Strategy(
                "mobile", lambda remaining: self._scan_urls(
                    context, "mobile", mobile_urls(page_key),
                    MOBILE_CONTAINERS, MOBILE_TEXT, remaining),
                "Mobile site post containers"))
        if self.facebook_config.use_desktop_site:
            strategies.append(Strategy(
                "desktop", lambda remaining: self._scan_urls(
                    context, "desktop", desktop_urls(page_key),
                    DESKTOP_CONTAINERS, DESKTOP_TEXT, remaining),
                "Desktop feed post containers"))
        strategies.extend([
            Strategy("embedded_script", lambda remaining: self._embedded_script(context, remaining),
                     "Story and FeedUnit payloads in main page scripts", fetches=False),
            Strategy("html_containers", lambda remaining: self._html_containers(context, remaining),
                     "Generic post containers on the main page", fetches=False),
            Strategy("meta_description", lambda remaining: self._meta_description(context),
                     "Open Graph description when nothing else worked", fetches=False),
        ])
        return strategies

    async def _scan_urls(self, context: ScrapeContext, name: str, urls: Sequence[str],
                         containers: Sequence[str], text_selectors: Sequence[str],
                         remaining: int) -> List[Post]:
        """Fetch candidate URLs in turn until one yields posts."""
        last_error: Optional[ScrapeError] = None
        failures = 0

        for position, url in enumerate(urls):
            if position:
                await self.delay.between_requests()
            try:
                response = await self._fetch(context, url)
            except RECOVERABLE_ERRORS as e:
                self.logger.debug(f"{name}: {url} failed: {e}")
                last_error = e
                failures += 1
                continue

            if not response.ok:
                self.logger.debug(f"{name}: {url} returned HTTP {response.status}")
                continue

            self.parsing()
            soup = BeautifulSoup(response.text, "lxml")
            texts = scan_containers(soup, containers, text_selectors, remaining, self.validator)
            if texts:
                self.logger.info(f"{name}: {len(texts)} posts from {url}")
                return [Post(id=synthetic_post_id(name, text), content=text) for text in texts]

        if last_error is not None and failures == len(urls):
            raise last_error
        return []

    async def _embedded_script(self, context: ScrapeContext, remaining: int) -> List[Post]:
        self.parsing()
        scripts = context.data["main_scripts"]
        posts = scan_embedded_scripts(scripts, remaining, self.validator)

        if has_story_markers(scripts) or len(posts) >= remaining:
            return posts

        texts = scan_text_patterns(scripts, remaining - len(posts), self.validator)
        if texts:
            self.logger.info(f"Script text patterns yielded {len(texts)} candidate posts")
        return posts + [Post(id=synthetic_post_id("script_text", text), content=text)
                        for text in texts]

    async def _html_containers(self, context: ScrapeContext, remaining: int) -> List[Post]:
        soup = context.data.get("main_soup")
        if soup is None:
            return []
        self.parsing()
        texts = scan_containers(soup, GENERIC_CONTAINERS, GENERIC_TEXT, remaining, self.validator)
        return [Post(id=synthetic_post_id("html", text), content=text) for text in texts]

    async def _meta_description(self, context: ScrapeContext) -> List[Post]:
        soup = context.data.get("main_soup")
        if soup is None or len(context.merger):
            return []
        self.parsing()
        description = meta_content(soup, "og:description")
        if description and len(description) > MIN_HTML_TEXT_LENGTH and self.validator.is_valid(description):
            return [Post(id=synthetic_post_id("meta", description), content=description)]
        return []

    def _no_posts_warning(self, context: ScrapeContext) -> str:
        return NO_POSTS_WARNING if context.surrogate_id else NO_PAGE_ID_WARNING

    async def cleanup(self) -> None:
        await self.http.close()
