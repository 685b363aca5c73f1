# Copyright (c) 2024 Mountain Jewels Intelligence. All rights reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# modification, distribution, or use is strictly prohibited.

"""
Proxy Affinity Manager for the Social Presence Scraper

Routes outbound requests through configured residential proxy endpoints.

Features:
- Per-request round-robin or per-profile sticky rotation
- Sticky table keyed by caller-supplied sticky key, with TTL
- Cooldown for endpoints that returned 429 or failed to connect
- Provider session tags embedded in the proxy username
- Credential-free redaction for logging
"""

import asyncio
import logging
import re
import time
import uuid
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import quote, unquote, urlsplit

from ..core.config import ProxySettings

logger = logging.getLogger(__name__)

STICKY_WINDOW_SECONDS = 10 * 60

_SESSION_TAG = re.compile(r"-session-[A-Za-z0-9]+")
_NON_ALNUM = re.compile(r"[^A-Za-z0-9]")


class RotationStrategy(Enum):
    """Proxy rotation strategies."""
    PER_REQUEST = "request"
    STICKY_PROFILE = "profile"


@dataclass
class StickyAssignment:
    proxy_index: int
    expires_at: float


@dataclass
class ProxyStats:
    """Statistics for a proxy endpoint."""
    requests: int = 0
    successes: int = 0
    failures: int = 0
    last_used: float = 0.0
    cooldown_until: float = 0.0


def redact(proxy_url: Optional[str]) -> str:
    """host:port of a proxy URL, never its credentials."""
    if not proxy_url:
        return "direct"
    try:
        parts = urlsplit(proxy_url)
        return f"{parts.hostname}:{parts.port or 80}"
    except ValueError:
        return "***"


def with_session_tag(proxy_url: str, session_id: str) -> str:
    """
    Embed a provider session tag in the proxy username.

    Only usernames of the form ``user-<name>[-geo params]`` carry a tag; the
    tag goes right after ``user-<name>`` so any geo parameters survive.
    """
    parts = urlsplit(proxy_url)
    username = unquote(parts.username or "")
    if not username.startswith("user-"):
        return proxy_url

    username = _SESSION_TAG.sub("", username)
    pieces = username.split("-")
    base, geo = "-".join(pieces[:2]), "-".join(pieces[2:])
    tagged = f"{base}-session-{session_id}" + (f"-{geo}" if geo else "")

    password = unquote(parts.password or "")
    netloc = f"{quote(tagged, safe='')}:{quote(password, safe='')}@{parts.hostname}"
    if parts.port:
        netloc += f":{parts.port}"
    return f"{parts.scheme}://{netloc}"


class ProxyManager:
    """
    Sticky-affinity proxy manager.

    Requests sharing a sticky key in profile mode go through the same endpoint
    until the assignment expires, so one profile's request sequence presents a
    single network identity. The sticky table is safe for concurrent use by
    independent scrapes.
    """

    def __init__(self, settings: Optional[ProxySettings] = None,
                 clock: Callable[[], float] = time.time):
        self.settings = settings or ProxySettings()
        self.rotation_strategy = RotationStrategy(self.settings.rotation)
        self.endpoints: List[str] = list(self.settings.endpoints)
        self.proxy_stats: Dict[str, ProxyStats] = defaultdict(ProxyStats)
        self._sticky: Dict[str, StickyAssignment] = {}
        self._lock = asyncio.Lock()
        self._next_index = 0
        self._clock = clock

        if self.endpoints:
            logger.info(f"Proxy manager configured with {len(self.endpoints)} endpoints "
                        f"({self.rotation_strategy.value} rotation)")

    @property
    def enabled(self) -> bool:
        return bool(self.endpoints)

    async def get_proxy(self, sticky_key: Optional[str] = None) -> Optional[str]:
        """
        Proxy URL for the next request, or None to connect directly.

        Args:
            sticky_key: Caller token pinning a request sequence to one endpoint
        """
        if not self.endpoints:
            return None

        now = self._clock()
        sticky = self.rotation_strategy is RotationStrategy.STICKY_PROFILE and sticky_key

        if sticky:
            async with self._lock:
                self._prune_expired(now)
                assignment = self._sticky.get(sticky_key)
                if assignment is None:
                    assignment = StickyAssignment(
                        proxy_index=self._pick_index(now),
                        expires_at=now + self.settings.sticky_ttl,
                    )
                    self._sticky[sticky_key] = assignment
                    logger.debug(f"Sticky key {sticky_key!r} pinned to "
                                 f"{redact(self.endpoints[assignment.proxy_index])}")
                index = assignment.proxy_index
        else:
            async with self._lock:
                index = self._pick_index(now)

        proxy_url = self.endpoints[index]
        self.proxy_stats[proxy_url].requests += 1
        self.proxy_stats[proxy_url].last_used = now
        return with_session_tag(proxy_url, self.session_id(sticky_key, now))

    def _prune_expired(self, now: float) -> None:
        expired = [key for key, a in self._sticky.items() if a.expires_at <= now]
        for key in expired:
            del self._sticky[key]
        if expired:
            logger.debug(f"Dropped {len(expired)} expired sticky assignments")

    def _pick_index(self, now: float) -> int:
        """Round-robin over endpoints, skipping ones still cooling down."""
        count = len(self.endpoints)
        for offset in range(count):
            index = (self._next_index + offset) % count
            if self.proxy_stats[self.endpoints[index]].cooldown_until <= now:
                self._next_index = index + 1
                return index
        # All cooling down: plain round-robin
        index = self._next_index % count
        self._next_index = index + 1
        return index

    def session_id(self, sticky_key: Optional[str], now: Optional[float] = None) -> str:
        """
        Alphanumeric provider session ID.

        Stable per sticky key within a ten minute window in profile mode,
        fresh for every request otherwise.
        """
        now = self._clock() if now is None else now
        safe_key = _NON_ALNUM.sub("", sticky_key or "default")
        if self.rotation_strategy is RotationStrategy.STICKY_PROFILE and sticky_key:
            return f"{safe_key}{int(now // STICKY_WINDOW_SECONDS)}"
        return f"{safe_key}{int(now * 1000)}{uuid.uuid4().hex[:6]}"

    def _base_endpoint(self, proxy_url: str) -> Optional[str]:
        target = redact(proxy_url)
        for endpoint in self.endpoints:
            if redact(endpoint) == target:
                return endpoint
        return None

    def mark_failed(self, proxy_url: Optional[str]) -> None:
        """Put an endpoint on cooldown after a 429 or connection failure."""
        endpoint = self._base_endpoint(proxy_url) if proxy_url else None
        if endpoint is None:
            return
        stats = self.proxy_stats[endpoint]
        stats.failures += 1
        stats.cooldown_until = self._clock() + self.settings.failure_cooldown
        logger.warning(f"Proxy {redact(endpoint)} cooling down for "
                       f"{self.settings.failure_cooldown:.0f}s")

    def report_success(self, proxy_url: Optional[str]) -> None:
        endpoint = self._base_endpoint(proxy_url) if proxy_url else None
        if endpoint is not None:
            self.proxy_stats[endpoint].successes += 1

    def sticky_assignment(self, sticky_key: str) -> Optional[StickyAssignment]:
        return self._sticky.get(sticky_key)

    def get_metrics(self) -> Dict[str, Any]:
        """Per-endpoint counters keyed by redacted endpoint."""
        now = self._clock()
        return {
            'rotation': self.rotation_strategy.value,
            'endpoints': len(self.endpoints),
            'sticky_keys': sum(1 for a in self._sticky.values() if a.expires_at > now),
            'proxies': {
                redact(url): {
                    'requests': stats.requests,
                    'successes': stats.successes,
                    'failures': stats.failures,
                    'cooling_down': stats.cooldown_until > now,
                }
                for url, stats in self.proxy_stats.items()
            },
        }
