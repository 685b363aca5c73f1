# Copyright (c) 2024 Mountain Jewels Intelligence. All rights reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# modification, distribution, or use is strictly prohibited.

"""
Resilient HTTP Client for the Social Presence Scraper

Issues outbound requests with a fixed browser identity, a hard per-request
timeout, manual or automatic redirect handling, login-wall and rate-limit
detection, backoff retries, and sticky proxy affinity. Ordinary non-2xx
responses are returned to the caller rather than raised.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple
from urllib.parse import urljoin, urlsplit

import aiohttp

from ..anti_detection.browser_identity import BrowserIdentity
from ..anti_detection.proxy_manager import ProxyManager, redact
from .errors import LoginRequired, NetworkError, ParseFailure, RateLimited, ScrapeError, Timeout
from .retry_utils import RetryError, RetryPolicy, call_with_retry

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0

RATE_LIMIT_STATUS = 429
TRANSIENT_STATUSES = frozenset({408, 500, 502, 503, 504})

LOGIN_PATH_MARKERS = ("/accounts/login", "/login")
LOGIN_BODY_MARKERS = (
    "login_required",
    "require_login",
    "checkpoint_required",
    "please wait a few minutes",
    "/accounts/login",
)


@dataclass
class FetchResponse:
    """A completed HTTP exchange."""
    status: int
    url: str
    text: str = ""
    headers: Dict[str, str] = field(default_factory=dict)  # lower-cased names
    proxy: Optional[str] = None
    history: Tuple["FetchResponse", ...] = ()  # redirect hops, oldest first

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def is_redirect(self) -> bool:
        return 300 <= self.status < 400

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.headers.get(name.lower(), default)

    def hops(self) -> Tuple["FetchResponse", ...]:
        """Every response of the exchange, redirects first and this one last."""
        return self.history + (self,)

    def json(self) -> Any:
        try:
            return json.loads(self.text)
        except ValueError as e:
            raise ParseFailure(f"Response from {self.url} is not JSON: {e}",
                               url=self.url, status=self.status) from e


@dataclass
class TransportRequest:
    method: str
    url: str
    headers: Dict[str, str]
    allow_redirects: bool = True
    proxy: Optional[str] = None
    timeout: float = DEFAULT_TIMEOUT


Transport = Callable[[TransportRequest], Awaitable[FetchResponse]]


class AiohttpTransport:
    """Default transport backed by a lazily created aiohttp session."""

    def __init__(self):
        self._session: Optional[aiohttp.ClientSession] = None

    async def __call__(self, request: TransportRequest) -> FetchResponse:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()

        async with self._session.request(
            request.method,
            request.url,
            headers=request.headers,
            allow_redirects=request.allow_redirects,
            proxy=request.proxy,
            timeout=aiohttp.ClientTimeout(total=request.timeout),
        ) as resp:
            text = await resp.text(errors="replace")
            return FetchResponse(
                status=resp.status,
                url=str(resp.url),
                text=text,
                headers={k.lower(): v for k, v in resp.headers.items()},
                proxy=request.proxy,
                history=tuple(
                    FetchResponse(status=hop.status, url=str(hop.url),
                                  headers={k.lower(): v for k, v in hop.headers.items()},
                                  proxy=request.proxy)
                    for hop in resp.history
                ),
            )

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None


class _RetryableStatus(ScrapeError):
    """Internal signal carrying a response the retry policy should try again."""

    def __init__(self, response: FetchResponse, rate_limited: bool):
        super().__init__(f"Retryable response from {response.url}",
                         url=response.url, status=response.status)
        self.response = response
        self.rate_limited = rate_limited


def is_login_location(location: Optional[str]) -> bool:
    if not location:
        return False
    path = (urlsplit(location).path or location).lower()
    if path.rstrip("/") == "/login" or path.endswith("login.php"):
        return True
    return any(path.startswith(marker + "/") or path == marker
               for marker in LOGIN_PATH_MARKERS)


def is_login_shaped_400(response: FetchResponse) -> bool:
    if response.status != 400:
        return False
    body = response.text[:4000].lower()
    return any(marker in body for marker in LOGIN_BODY_MARKERS)


def default_retry_policy(sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
                         max_attempts: int = 4, base_delay: float = 3.0,
                         max_delay: float = 60.0) -> RetryPolicy:
    """Backoff for rate limits, transient statuses and connection failures."""
    return RetryPolicy(
        max_attempts=max_attempts,
        base_delay=base_delay,
        max_delay=max_delay,
        backoff_factor=2.0,
        jitter_factor=0.1,
        retryable=lambda e: isinstance(e, (_RetryableStatus, NetworkError)),
        sleep=sleep,
    )


class ResilientHttpClient:
    """
    Browser-mimicking HTTP client with retry, redirect and affinity handling.

    Raises Timeout, NetworkError, RateLimited or LoginRequired; every other
    response, successful or not, comes back as a FetchResponse.
    """

    def __init__(
        self,
        identity: BrowserIdentity,
        proxy_manager: Optional[ProxyManager] = None,
        transport: Optional[Transport] = None,
        retry_policy: Optional[RetryPolicy] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.identity = identity
        self.proxy_manager = proxy_manager or ProxyManager()
        self._owns_transport = transport is None
        self.transport: Transport = transport or AiohttpTransport()
        self.retry_policy = retry_policy or default_retry_policy()
        self.timeout = timeout
        self.request_count = 0

    async def fetch(
        self,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        redirect: str = "follow",
        sticky_key: Optional[str] = None,
        timeout: Optional[float] = None,
        method: str = "GET",
    ) -> FetchResponse:
        """
        Fetch a URL.

        Args:
            url: Absolute URL
            headers: Per-request headers layered over the identity profile
            redirect: "follow" or "manual"
            sticky_key: Pins this request to the same proxy as earlier ones
            timeout: Hard cap for each attempt, in seconds
        """
        if redirect not in ("follow", "manual"):
            raise ValueError(f"redirect must be 'follow' or 'manual', got {redirect!r}")

        request_headers = self.identity.build_headers(headers)
        try:
            return await call_with_retry(
                self._fetch_once, self.retry_policy,
                method, url, request_headers, redirect, sticky_key,
                timeout or self.timeout,
            )
        except RetryError as e:
            last = e.last_exception
            if isinstance(last, _RetryableStatus):
                if last.rate_limited:
                    raise RateLimited(
                        f"Rate limited on {url} after {e.attempts} attempts",
                        url=url, status=last.status,
                    ) from e
                logger.warning(f"Giving up on {url} after {e.attempts} attempts "
                               f"(status {last.status})")
                return last.response
            if isinstance(last, ScrapeError):
                raise last from e
            raise

    async def _fetch_once(self, method: str, url: str, headers: Dict[str, str],
                          redirect: str, sticky_key: Optional[str],
                          timeout: float) -> FetchResponse:
        proxy = await self.proxy_manager.get_proxy(sticky_key)
        response = await self._send(method, url, headers, redirect == "follow", proxy, timeout)

        if redirect == "manual" and response.is_redirect:
            response = await self._handle_redirect(method, url, response, headers, proxy, timeout)
        elif redirect == "follow" and response.url != url and is_login_location(response.url):
            raise LoginRequired(f"Redirected to login wall: {response.url}",
                                url=url, status=response.status)

        if response.status == RATE_LIMIT_STATUS or is_login_shaped_400(response):
            self.proxy_manager.mark_failed(proxy)
            raise _RetryableStatus(response, rate_limited=True)
        if response.status in TRANSIENT_STATUSES:
            raise _RetryableStatus(response, rate_limited=False)

        if response.ok:
            self.proxy_manager.report_success(proxy)
        return response

    async def _handle_redirect(self, method: str, url: str, response: FetchResponse,
                               headers: Dict[str, str], proxy: Optional[str],
                               timeout: float) -> FetchResponse:
        """Follow a 3xx by hand, at most once."""
        location = response.header("location")
        logger.debug(f"Redirect {response.status} from {url} to {location}")

        if is_login_location(location):
            raise LoginRequired(f"Redirected to login: {location}", url=url,
                                status=response.status)
        if not location:
            return response

        target = urljoin(url, location)
        if target == url:
            logger.warning(f"Redirect loop detected for {url}")
            return response

        followed = await self._send(method, target, headers, False, proxy, timeout)
        if followed.is_redirect and is_login_location(followed.header("location")):
            raise LoginRequired(f"Redirected to login: {followed.header('location')}",
                                url=url, status=followed.status)
        followed.history = response.hops() + followed.history
        return followed

    async def _send(self, method: str, url: str, headers: Dict[str, str],
                    allow_redirects: bool, proxy: Optional[str],
                    timeout: float) -> FetchResponse:
        self.request_count += 1
        request = TransportRequest(method=method, url=url, headers=headers,
                                   allow_redirects=allow_redirects, proxy=proxy,
                                   timeout=timeout)
        try:
            response = await asyncio.wait_for(self.transport(request), timeout)
        except asyncio.TimeoutError as e:
            logger.warning(f"Request to {url} timed out after {timeout:.0f}s via {redact(proxy)}")
            raise Timeout(f"Request timed out after {timeout:.0f}s", url=url) from e
        except (aiohttp.ClientError, OSError) as e:
            self.proxy_manager.mark_failed(proxy)
            raise NetworkError(f"Network error for {url}: {e}", url=url) from e

        logger.debug(f"{method} {url} -> {response.status} via {redact(proxy)}")
        return response

    async def close(self) -> None:
        close = getattr(self.transport, "close", None)
        if self._owns_transport and close is not None:
            await close()
