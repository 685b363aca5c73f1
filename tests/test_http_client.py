# Copyright (c) 2024 Mountain Jewels Intelligence. All rights reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# modification, distribution, or use is strictly prohibited.

"""
Test Resilient HTTP Client for the Social Presence Scraper

Exercises retry and backoff on rate limits, login-wall detection on both
redirect modes, timeouts, and header layering against a fake transport.
"""

import asyncio

import aiohttp
import pytest

from fakes import FakeTransport, respond
from presence_scraper.anti_detection.browser_identity import FACEBOOK_IDENTITY
from presence_scraper.anti_detection.proxy_manager import ProxyManager
from presence_scraper.core.config import ProxySettings
from presence_scraper.core.errors import LoginRequired, NetworkError, RateLimited, Timeout
from presence_scraper.core.http_client import (
    ResilientHttpClient, default_retry_policy, is_login_location,
)

URL = "https://www.facebook.com/example-cafe/"


def make_client(transport, sleeper, **kwargs):
    return ResilientHttpClient(FACEBOOK_IDENTITY, transport=transport,
                               retry_policy=default_retry_policy(sleep=sleeper), **kwargs)


class TestRetries:
    """Test backoff on retryable statuses."""

    @pytest.mark.asyncio
    async def test_rate_limit_then_success(self, sleeper):
        transport = FakeTransport({URL: [respond(429), respond(429), respond(429),
                                         respond(200, "<html>ok</html>")]})
        client = make_client(transport, sleeper)

        response = await client.fetch(URL)

        assert response.status == 200
        assert response.text == "<html>ok</html>"
        assert len(transport.requests) == 4
        assert len(sleeper.delays) == 3
        assert sleeper.delays == sorted(sleeper.delays)
        assert sleeper.delays[0] < sleeper.delays[1] < sleeper.delays[2]

    @pytest.mark.asyncio
    async def test_persistent_rate_limit_raises(self, sleeper):
        client = make_client(FakeTransport({URL: respond(429)}), sleeper)
        with pytest.raises(RateLimited):
            await client.fetch(URL)
        assert len(sleeper.delays) == 3

    @pytest.mark.asyncio
    async def test_login_shaped_400_counts_as_rate_limit(self, sleeper):
        body = '{"message":"Please wait a few minutes before you try again.","status":"fail"}'
        client = make_client(FakeTransport({URL: respond(400, body)}), sleeper)
        with pytest.raises(RateLimited):
            await client.fetch(URL)

    @pytest.mark.asyncio
    async def test_server_errors_return_last_response(self, sleeper):
        transport = FakeTransport({URL: respond(503)})
        client = make_client(transport, sleeper)

        response = await client.fetch(URL)

        assert response.status == 503
        assert len(transport.requests) == 4

    @pytest.mark.asyncio
    async def test_not_found_is_returned_without_retry(self, sleeper):
        transport = FakeTransport({URL: respond(404)})
        client = make_client(transport, sleeper)

        response = await client.fetch(URL)

        assert response.status == 404
        assert not response.ok
        assert len(transport.requests) == 1
        assert sleeper.delays == []

    @pytest.mark.asyncio
    async def test_network_errors_are_retried(self, sleeper):
        transport = FakeTransport({URL: [aiohttp.ClientConnectionError("reset"), respond(200)]})
        client = make_client(transport, sleeper)

        response = await client.fetch(URL)

        assert response.status == 200
        assert len(transport.requests) == 2

    @pytest.mark.asyncio
    async def test_persistent_network_error_raises(self, sleeper):
        client = make_client(FakeTransport({URL: OSError("unreachable")}), sleeper)
        with pytest.raises(NetworkError):
            await client.fetch(URL)

    @pytest.mark.asyncio
    async def test_timeout_is_not_retried(self, sleeper):
        transport = FakeTransport({URL: asyncio.TimeoutError()})
        client = make_client(transport, sleeper)

        with pytest.raises(Timeout):
            await client.fetch(URL)
        assert len(transport.requests) == 1


class TestRedirects:
    """Test login-wall detection in both redirect modes."""

    @pytest.mark.asyncio
    async def test_manual_redirect_to_login(self, sleeper):
        location = "https://www.instagram.com/accounts/login/?next=/api/"
        client = make_client(FakeTransport({URL: respond(302, headers={"Location": location})}),
                             sleeper)
        with pytest.raises(LoginRequired):
            await client.fetch(URL, redirect="manual")

    @pytest.mark.asyncio
    async def test_manual_redirect_is_followed_once(self, sleeper):
        target = "https://www.facebook.com/ExampleCafe/"
        transport = FakeTransport({
            URL: respond(301, headers={"Location": "/ExampleCafe/"}),
            target: respond(200, "moved"),
        })
        client = make_client(transport, sleeper)

        response = await client.fetch(URL, redirect="manual")

        assert response.status == 200
        assert transport.urls() == [URL, target]
        assert all(not request.allow_redirects for request in transport.requests)
        assert [hop.status for hop in response.history] == [301]
        assert response.history[0].header("location") == "/ExampleCafe/"
        assert [hop.status for hop in response.hops()] == [301, 200]

    @pytest.mark.asyncio
    async def test_redirect_loop_returns_redirect(self, sleeper):
        transport = FakeTransport({URL: respond(302, headers={"Location": URL})})
        client = make_client(transport, sleeper)

        response = await client.fetch(URL, redirect="manual")

        assert response.status == 302
        assert len(transport.requests) == 1

    @pytest.mark.asyncio
    async def test_followed_redirect_landing_on_login(self, sleeper):
        landing = "https://www.facebook.com/login/?next=https%3A%2F%2Fwww.facebook.com%2Fexample-cafe"
        client = make_client(FakeTransport({URL: respond(200, "login", url=landing)}), sleeper)
        with pytest.raises(LoginRequired):
            await client.fetch(URL)

    @pytest.mark.asyncio
    async def test_invalid_redirect_mode(self, sleeper):
        client = make_client(FakeTransport(), sleeper)
        with pytest.raises(ValueError):
            await client.fetch(URL, redirect="sometimes")

    @pytest.mark.parametrize("location, expected", [
        ("https://www.facebook.com/login/", True),
        ("https://www.facebook.com/login.php?next=x", True),
        ("/accounts/login/?next=/", True),
        ("https://www.instagram.com/accounts/login", True),
        ("https://www.facebook.com/loginbakery/", False),
        ("https://www.facebook.com/example-cafe/", False),
        (None, False),
    ])
    def test_is_login_location(self, location, expected):
        assert is_login_location(location) is expected


class TestRequestShape:
    """Test headers and proxy selection."""

    @pytest.mark.asyncio
    async def test_headers_are_layered_over_identity(self, sleeper):
        transport = FakeTransport({URL: respond(200)})
        client = make_client(transport, sleeper)

        await client.fetch(URL, headers={"Cookie": "a=b"})

        sent = transport.requests[0].headers
        assert sent["User-Agent"] == FACEBOOK_IDENTITY.user_agent
        assert sent["Cookie"] == "a=b"
        assert "Cookie" not in FACEBOOK_IDENTITY.build_headers()

    @pytest.mark.asyncio
    async def test_sticky_key_pins_proxy(self, sleeper):
        settings = ProxySettings(endpoints=["http://gate-a.example.net:7000",
                                            "http://gate-b.example.net:7000"])
        transport = FakeTransport(default=respond(200))
        client = make_client(transport, sleeper, proxy_manager=ProxyManager(settings))

        for path in ("a", "b", "c"):
            await client.fetch(URL + path, sticky_key="facebook:example-cafe")

        proxies = {request.proxy for request in transport.requests}
        assert len(proxies) == 1
        assert client.request_count == 3
