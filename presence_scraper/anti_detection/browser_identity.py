# Copyright (c) 2024 Mountain Jewels Intelligence. All rights reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# modification, distribution, or use is strictly prohibited.

"""
Browser Identity Profiles for the Social Presence Scraper

Each platform gets one fixed, internally consistent header set (user agent,
client hints, fetch metadata, origin and referer). Fields are never randomized
independently of each other. Also provides the jittered politeness delay used
between outbound requests.
"""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]

CHROME_WINDOWS_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
INSTAGRAM_ANDROID_UA = "Instagram 267.0.0.19.301 Android"
INSTAGRAM_APP_ID = "567067343352427"


@dataclass(frozen=True)
class BrowserIdentity:
    """An immutable header profile presented to one platform."""
    name: str
    headers: Tuple[Tuple[str, str], ...]

    def build_headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        """Copy of the profile headers, with per-request additions layered on top."""
        headers = dict(self.headers)
        if extra:
            headers.update(extra)
        return headers

    @property
    def user_agent(self) -> str:
        return dict(self.headers).get("User-Agent", "")


FACEBOOK_IDENTITY = BrowserIdentity(
    name="facebook-desktop-chrome",
    headers=(
        ("User-Agent", CHROME_WINDOWS_UA),
        ("Accept", "text/html,application/xhtml+xml,application/xml;q=0.9,"
                   "image/avif,image/webp,image/apng,*/*;q=0.8"),
        ("Accept-Language", "en-US,en;q=0.9"),
        ("Accept-Encoding", "gzip, deflate"),
        ("Cache-Control", "no-cache"),
        ("Pragma", "no-cache"),
        ("Sec-Ch-Ua", '"Not_A Brand";v="8", "Chromium";v="120", "Google Chrome";v="120"'),
        ("Sec-Ch-Ua-Mobile", "?0"),
        ("Sec-Ch-Ua-Platform", '"Windows"'),
        ("Sec-Fetch-Dest", "document"),
        ("Sec-Fetch-Mode", "navigate"),
        ("Sec-Fetch-Site", "same-origin"),
        ("Sec-Fetch-User", "?1"),
        ("Upgrade-Insecure-Requests", "1"),
        ("Origin", "https://www.facebook.com"),
        ("Referer", "https://www.facebook.com/"),
    ),
)


def _generate_device_id() -> str:
    return "android-" + "".join(str(random.randint(0, 9)) for _ in range(16))


def instagram_identity(device_id: Optional[str] = None) -> BrowserIdentity:
    """
    Header profile for Instagram's private web API.

    The device ID is fixed for the lifetime of the returned identity so one
    client presents the same device on every request.
    """
    device_id = device_id or _generate_device_id()
    return BrowserIdentity(
        name="instagram-app",
        headers=(
            ("User-Agent", INSTAGRAM_ANDROID_UA),
            ("X-IG-App-ID", INSTAGRAM_APP_ID),
            ("Accept", "application/json, text/plain, */*"),
            ("Accept-Language", "en-US,en;q=0.9"),
            ("Sec-Fetch-Dest", "empty"),
            ("Sec-Fetch-Mode", "cors"),
            ("Sec-Fetch-Site", "same-origin"),
            ("Sec-Ch-Ua", '"Not/A)Brand";v="99", "Google Chrome";v="115", "Chromium";v="115"'),
            ("Sec-Ch-Ua-Mobile", "?0"),
            ("Sec-Ch-Ua-Platform", '"Windows"'),
            ("X-IG-Device-ID", device_id),
            ("X-IG-Android-ID", device_id),
            ("X-IG-App-Locale", "en_US"),
            ("X-IG-Device-Locale", "en_US"),
            ("X-IG-Connection-Type", "WIFI"),
            ("X-IG-Capabilities", "3brTvw=="),
            ("Origin", "https://www.instagram.com"),
            ("Referer", "https://www.instagram.com/"),
        ),
    )


@dataclass
class PolitenessDelay:
    """Jittered pauses between outbound requests and between strategies."""
    request_delay: float = 0.5
    strategy_delay: Tuple[float, float] = (1.0, 2.0)
    sleep: SleepFunc = field(default=asyncio.sleep)

    async def between_requests(self) -> None:
        if self.request_delay > 0:
            await self.sleep(self.request_delay)

    async def between_strategies(self) -> None:
        low, high = self.strategy_delay
        if high <= 0:
            return
        delay = random.uniform(low, high)
        logger.debug(f"Politeness delay {delay:.2f}s before next strategy")
        await self.sleep(delay)
