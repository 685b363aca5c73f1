# Copyright (c) 2024 Mountain Jewels Intelligence. All rights reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# modification, distribution, or use is strictly prohibited.

"""
Instagram Profile Scraper for the Social Presence Scraper

Reads profile info, recent posts and optionally comments from Instagram's
private web API using a pre-provisioned session. Posts come from the user
feed endpoint, falling back to the timeline edges embedded in the profile
payload. Comments use the REST listing first and the legacy GraphQL query
second.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

from ..anti_detection.browser_identity import instagram_identity
from ..anti_detection.proxy_manager import ProxyManager
from ..core.base_scraper import BaseScraper, ScrapeContext
from ..core.config import InstagramConfig, InstagramCredentials
from ..core.errors import (
    RECOVERABLE_ERRORS, LoginRequired, MissingCredentials, NoDataFound, ParseFailure,
)
from ..core.http_client import FetchResponse, ResilientHttpClient, default_retry_policy
from ..core.models import Comment, Post, Profile
from ..core.strategy import Strategy
from ..extraction.fields import (
    IG_CAPTION_PATHS, IG_COMMENT_PATHS, IG_LIKE_PATHS, collapse_whitespace,
    instagram_media_urls, instagram_timestamp, normalize_timestamp, resolve_count,
)
from ..extraction.tree import JsonKind, first_typed, kind_of, resolve_path

logger = logging.getLogger(__name__)

__version__ = "2.0.0"
__description__ = "Instagram profile, feed and comment scraper over the private web API"
__author__ = "MJ Intelligence"
__dependencies__ = ["aiohttp"]

INSTAGRAM_BASE = "https://www.instagram.com"
PROFILE_ENDPOINT = INSTAGRAM_BASE + "/api/v1/users/web_profile_info/?username={username}"
FEED_ENDPOINT = INSTAGRAM_BASE + "/api/v1/feed/user/{user_id}/?count={count}"
SHORTCODE_ENDPOINT = INSTAGRAM_BASE + "/api/v1/media/shortcode/{shortcode}/"
COMMENTS_ENDPOINT = (INSTAGRAM_BASE + "/api/v1/media/{pk}/comments/"
                     "?can_support_threading=true&permalink_enabled=false&count={count}")
GRAPHQL_ENDPOINT = INSTAGRAM_BASE + "/graphql/query/?query_hash={query_hash}&variables={variables}"
COMMENTS_QUERY_HASH = "bc3296d1ce80a24b1b6e40b1e72903f5"

PROFILE_USER_PATHS = (
    "data.user",
    "user",
    "data.xdt_api__v1__fb_user__profile_home__web.user",
)

SESSION_PROBE_USERNAME = "instagram"
AUTHORIZATION_HEADER = "ig-set-authorization"
MIN_FEED_COUNT = 12

_USERNAME_PREFIX = re.compile(r"^(?:https?://)?(?:www\.|m\.)?instagram\.com/", re.IGNORECASE)


def normalize_username(raw: str) -> str:
    name = _USERNAME_PREFIX.sub("", raw.strip())
    name = name.split("?", 1)[0].strip("/")
    return name.lstrip("@")


def profile_from_user(user: Dict[str, Any], username: str) -> Profile:
    biography = user.get("biography")
    if kind_of(biography) is not JsonKind.STRING:
        biography = user.get("bio")
    followers = resolve_path(user, "edge_followed_by.count")
    return Profile(
        id=str(user.get("id") or user.get("pk") or ""),
        name=user.get("full_name") or username,
        username=user.get("username") or username,
        about=biography if kind_of(biography) is JsonKind.STRING and biography else None,
        follower_count=followers if kind_of(followers) is JsonKind.NUMBER else None,
        profile_pic_url=user.get("profile_pic_url") or None,
        profile_pic_url_hd=user.get("profile_pic_url_hd") or None,
        verified=bool(user.get("is_verified")),
        website=user.get("external_url") or None,
        category=user.get("category_name") or None,
    )


def comment_from_node(node: Dict[str, Any], graphql: bool = False) -> Optional[Comment]:
    """Comment from a REST comment or a GraphQL comment node."""
    text = node.get("text")
    if kind_of(text) is not JsonKind.STRING or not text.strip():
        return None

    if graphql:
        owner = node.get("owner") or {}
        created = node.get("created_at")
        likes = resolve_count(node, ("edge_liked_by.count",))
        replies = tuple(
            reply for reply in (
                comment_from_node(edge.get("node") or {}, graphql=True)
                for edge in resolve_path(node, "edge_threaded_comments.edges") or []
                if isinstance(edge, dict)
            ) if reply is not None
        )
    else:
        owner = node.get("user") or {}
        created = node.get("created_at_utc") or node.get("created_at")
        likes = resolve_count(node, ("comment_like_count",))
        replies = ()

    return Comment(
        id=str(node.get("pk") or node.get("id") or ""),
        author_username=owner.get("username") or "",
        author_display_name=owner.get("full_name") or "",
        text=text.strip(),
        timestamp=normalize_timestamp(created),
        like_count=likes,
        replies=replies,
    )


class InstagramScraper(BaseScraper):
    """
    Session-authenticated feed client.

    Without credentials the scrape does not start. A login redirect on the
    profile request ends it; later failures only cost their strategy.
    """

    PLATFORM = "instagram"

    def __init__(self, config: Optional[InstagramConfig] = None,
                 credentials: Optional[InstagramCredentials] = None,
                 http_client: Optional[ResilientHttpClient] = None,
                 proxy_manager: Optional[ProxyManager] = None,
                 **kwargs):
        config = config or InstagramConfig()
        super().__init__(config, **kwargs)
        self.instagram_config = config
        self.credentials = credentials
        self.http = http_client or ResilientHttpClient(
            instagram_identity(),
            proxy_manager=proxy_manager or ProxyManager(config.proxy),
            retry_policy=default_retry_policy(
                sleep=self.delay.sleep,
                max_attempts=config.rate_limit_attempts,
                base_delay=config.rate_limit_base_delay,
                max_delay=config.rate_limit_max_delay,
            ),
            timeout=config.timeout,
        )
        self.authorization: Optional[str] = None

    def _request_headers(self) -> Dict[str, str]:
        headers = {"Cookie": self.credentials.cookie_header()}
        if self.credentials.csrf_token:
            headers["X-CSRFToken"] = self.credentials.csrf_token
        if self.authorization:
            headers["Authorization"] = self.authorization
        return headers

    async def _get(self, url: str, sticky_key: str) -> FetchResponse:
        response = await self.http.fetch(url, headers=self._request_headers(),
                                         redirect="manual", sticky_key=sticky_key)
        # Instagram often sets it on the 302 rather than the final response
        authorization = next((hop.header(AUTHORIZATION_HEADER) for hop in reversed(response.hops())
                              if hop.header(AUTHORIZATION_HEADER)), None)
        if authorization and authorization != self.authorization:
            self.logger.debug("Captured authorization header from response")
            self.authorization = authorization
        return response

    async def _get_json(self, url: str, sticky_key: str) -> Any:
        response = await self._get(url, sticky_key)
        if not response.ok:
            raise ParseFailure(f"HTTP {response.status} from {url}", url=url, status=response.status)
        return response.json()

    @staticmethod
    def _sticky_key(context: ScrapeContext) -> str:
        return f"instagram:{context.handle}"

    async def _resolve_identifier(self, context: ScrapeContext) -> None:
        if self.credentials is None:
            raise MissingCredentials("Instagram session credentials are required")

        context.handle = normalize_username(context.identifier)
        url = PROFILE_ENDPOINT.format(username=quote(context.handle))

        try:
            response = await self._get(url, self._sticky_key(context))
        except LoginRequired:
            raise
        except RECOVERABLE_ERRORS as e:
            context.warn(f"Profile fetch failed for @{context.handle} ({type(e).__name__}: {e})")
            return

        if not response.ok:
            context.warn(f"Profile fetch for @{context.handle} returned HTTP {response.status}")
            return

        try:
            data = response.json()
        except ParseFailure as e:
            context.warn(f"Profile response for @{context.handle} was not JSON: {e}")
            return

        user = first_typed(data, PROFILE_USER_PATHS, JsonKind.OBJECT)
        if user is None:
            context.warn(f"Profile payload for @{context.handle} had no user record")
            return

        context.data["user"] = user
        context.profile = profile_from_user(user, context.handle)
        context.surrogate_id = context.profile.id or None
        self.logger.info(f"Resolved @{context.handle} -> user {context.surrogate_id}")

    def _strategies(self, context: ScrapeContext) -> List[Strategy]:
        return [
            Strategy("user_feed", lambda remaining: self._user_feed(context, remaining),
                     "Private API user feed"),
            Strategy("profile_timeline", lambda remaining: self._profile_timeline(context, remaining),
                     "Timeline edges embedded in the profile payload", fetches=False),
        ]

    def _accept(self, context: ScrapeContext, post_id: str, caption: Optional[str],
                shortcode: Optional[str], **fields) -> Optional[Post]:
        caption = collapse_whitespace(caption) if caption else ""
        if not self.accept_content(caption):
            context.data.setdefault("dropped_captions", set()).add(post_id)
            return None
        if shortcode:
            context.data.setdefault("shortcodes", {})[post_id] = shortcode
        return Post(id=post_id, content=caption, **fields)

    async def _user_feed(self, context: ScrapeContext, remaining: int) -> List[Post]:
        if not context.surrogate_id:
            raise NoDataFound("No user ID to request the feed with")

        url = FEED_ENDPOINT.format(user_id=context.surrogate_id,
                                   count=max(remaining, MIN_FEED_COUNT))
        data = await self._get_json(url, self._sticky_key(context))
        self.parsing()

        items = resolve_path(data, "items")
        if kind_of(items) is not JsonKind.ARRAY:
            raise ParseFailure("Feed response has no items list", url=url)

        posts = []
        for item in items:
            if not isinstance(item, dict):
                continue
            post_id = str(item.get("id") or item.get("pk") or "")
            if not post_id:
                continue
            post = self._accept(
                context, post_id, first_typed(item, IG_CAPTION_PATHS, JsonKind.STRING),
                item.get("code"),
                timestamp=instagram_timestamp(item),
                like_count=resolve_count(item, IG_LIKE_PATHS),
                comment_count=resolve_count(item, IG_COMMENT_PATHS),
                media_urls=tuple(instagram_media_urls(item)),
            )
            if post:
                posts.append(post)
        return posts

    async def _profile_timeline(self, context: ScrapeContext, remaining: int) -> List[Post]:
        user = context.data.get("user")
        if user is None:
            raise NoDataFound("No profile payload")
        self.parsing()

        posts = []
        for edge in resolve_path(user, "edge_owner_to_timeline_media.edges") or []:
            node = resolve_path(edge, "node")
            if kind_of(node) is not JsonKind.OBJECT or not node.get("id"):
                continue
            post = self._accept(
                context, str(node["id"]), first_typed(node, IG_CAPTION_PATHS, JsonKind.STRING),
                node.get("shortcode"),
                timestamp=instagram_timestamp(node),
                like_count=resolve_count(node, IG_LIKE_PATHS),
                comment_count=resolve_count(node, IG_COMMENT_PATHS),
                media_urls=tuple(instagram_media_urls(node)),
            )
            if post:
                posts.append(post)
            if len(posts) >= remaining:
                break
        return posts

    async def _finalize_posts(self, context: ScrapeContext, posts: List[Post]) -> List[Post]:
        dropped = len(context.data.get("dropped_captions", ()))
        if dropped:
            context.warn(f"Dropped {dropped} posts whose captions did not pass content validation")

        if not context.include_comments or not posts:
            return posts

        shortcodes = context.data.get("shortcodes", {})
        enriched = []
        for index, post in enumerate(posts):
            shortcode = shortcodes.get(post.id)
            if not shortcode or index >= self.instagram_config.comment_posts_limit:
                enriched.append(post)
                continue
            if index:
                await self.delay.between_requests()
            comments = await self._comments_for(context, post, shortcode)
            enriched.append(post.with_comments(comments))
        return enriched

    async def _comments_for(self, context: ScrapeContext, post: Post,
                            shortcode: str) -> Tuple[Comment, ...]:
        """REST comments for a post, falling back to the GraphQL listing."""
        sticky = self._sticky_key(context)
        count = self.instagram_config.comments_per_post

        try:
            media = await self._get_json(SHORTCODE_ENDPOINT.format(shortcode=shortcode), sticky)
            pk = resolve_path(media, "pk") or resolve_path(media, "items.0.pk") or post.id
            data = await self._get_json(COMMENTS_ENDPOINT.format(pk=pk, count=count), sticky)
            nodes = resolve_path(data, "comments") or []
            comments = tuple(c for c in (comment_from_node(n) for n in nodes if isinstance(n, dict)) if c)
            if comments:
                return comments
            self.logger.debug(f"REST listing empty for {shortcode}, trying GraphQL")
        except RECOVERABLE_ERRORS as e:
            self.logger.debug(f"REST comments failed for {shortcode}: {e}")

        variables = quote(json.dumps({"shortcode": shortcode, "first": count}, separators=(",", ":")))
        try:
            data = await self._get_json(
                GRAPHQL_ENDPOINT.format(query_hash=COMMENTS_QUERY_HASH, variables=variables), sticky)
        except RECOVERABLE_ERRORS as e:
            context.warn(f"Comments unavailable for some posts ({type(e).__name__})")
            self.logger.warning(f"GraphQL comments failed for {shortcode}: {e}")
            return ()

        edges = resolve_path(data, "data.shortcode_media.edge_media_to_parent_comment.edges") or []
        return tuple(
            c for c in (comment_from_node(edge.get("node") or {}, graphql=True)
                        for edge in edges if isinstance(edge, dict)) if c
        )

    async def validate_session(self) -> bool:
        """Probe a well-known profile; a login redirect means the session is dead."""
        if self.credentials is None:
            return False
        url = PROFILE_ENDPOINT.format(username=SESSION_PROBE_USERNAME)
        try:
            response = await self._get(url, sticky_key="instagram:session-probe")
        except LoginRequired:
            self.logger.warning("Instagram session is invalid or expired")
            return False
        except RECOVERABLE_ERRORS as e:
            self.logger.warning(f"Could not validate Instagram session: {e}")
            return False
        return response.ok or response.is_redirect

    def _no_posts_warning(self, context: ScrapeContext) -> str:
        if context.profile is None:
            return "No posts found. Profile could not be loaded; session may be invalid or rate limited."
        return "No posts found. Profile may be private or have no posts."

    async def cleanup(self) -> None:
        await self.http.close()
