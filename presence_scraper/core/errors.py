# Copyright (c) 2024 Mountain Jewels Intelligence. All rights reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# modification, distribution, or use is strictly prohibited.

"""
Scrape Error Taxonomy for the Social Presence Scraper

Every upstream condition the pipeline can meet is expressed as a subclass of
ScrapeError. Strategy orchestration recovers most of them locally; only
MissingCredentials and a login wall on the first fetch end a scrape.
"""

from typing import Optional


class ScrapeError(Exception):
    """Base class for all scrape pipeline failures."""

    def __init__(self, message: str, url: Optional[str] = None,
                 status: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status = status

    def __str__(self) -> str:
        base = super().__str__()
        if self.status is not None:
            base = f"{base} (status {self.status})"
        return base


class Timeout(ScrapeError):
    """The request exceeded its hard timeout."""


class NetworkError(ScrapeError):
    """DNS, connection or transport level failure."""


class RateLimited(ScrapeError):
    """Upstream kept answering 429 (or a login-shaped 400) after all retries."""


class LoginRequired(ScrapeError):
    """Upstream redirected to, or rendered, a login wall."""


class ParseFailure(ScrapeError):
    """Structured data was located but did not parse or lacked expected fields."""


class NoDataFound(ScrapeError):
    """Every strategy ran and none produced a qualifying record."""


class MissingCredentials(ScrapeError):
    """A required session credential was not configured."""


# Conditions a strategy orchestrator absorbs as warnings
RECOVERABLE_ERRORS = (Timeout, NetworkError, RateLimited, LoginRequired, ParseFailure)
