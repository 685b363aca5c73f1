# Copyright (c) 2024 Mountain Jewels Intelligence. All rights reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# modification, distribution, or use is strictly prohibited.

"""
Base Scraper Class for the Social Presence Scraper

Provides the per-scrape lifecycle shared by the platform pipelines: state
tracking, strategy orchestration, result merging, and conversion of every
outcome into a well-formed ScrapeResult.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..anti_detection.browser_identity import PolitenessDelay
from ..extraction.merger import ResultMerger
from ..extraction.validator import ContentValidator, default_validator
from .config import ScraperConfig
from .errors import LoginRequired, MissingCredentials
from .models import Post, Profile, ScrapeResult
from .strategy import Strategy, StrategyOrchestrator

logger = logging.getLogger(__name__)

NO_POSTS_WARNING = "No posts found."


class ScrapeState(Enum):
    IDLE = "idle"
    RESOLVING_IDENTIFIER = "resolving_identifier"
    FETCHING = "fetching"
    PARSING = "parsing"
    MERGING = "merging"
    COMPLETE = "complete"
    FATAL_ERROR = "fatal_error"


@dataclass
class ScrapeContext:
    """Mutable working state of one scrape; frozen into a ScrapeResult at the end."""
    identifier: str
    max_posts: int
    include_comments: bool = False
    handle: str = ""
    surrogate_id: Optional[str] = None
    profile: Optional[Profile] = None
    warnings: List[str] = field(default_factory=list)
    merger: ResultMerger = None
    data: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.merger is None:
            self.merger = ResultMerger(limit=self.max_posts)

    def warn(self, message: str) -> None:
        if message not in self.warnings:
            self.warnings.append(message)


class BaseScraper(ABC):
    """Base class for platform pipelines."""

    PLATFORM = ""

    def __init__(self, config: ScraperConfig,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
                 validator: ContentValidator = default_validator):
        self.config = config
        self.logger = logging.getLogger(f"{__name__}.{config.name}")
        self.validator = validator
        self.delay = PolitenessDelay(
            request_delay=config.request_delay,
            strategy_delay=config.strategy_delay,
            sleep=sleep,
        )
        self.orchestrator = StrategyOrchestrator(self.delay, on_strategy=self._on_strategy)
        self.state = ScrapeState.IDLE
        self.strategy_index: Optional[int] = None
        self.state_history: List[ScrapeState] = []
        self._success_count = 0
        self._error_count = 0

        # Callbacks
        self.on_error: Optional[Callable[[Exception, str], None]] = None
        self.on_state_change: Optional[Callable[[ScrapeState], None]] = None

    def _transition(self, state: ScrapeState) -> None:
        self.state = state
        self.state_history.append(state)
        self.logger.debug(f"State -> {state.value}"
                          + (f" (strategy {self.strategy_index})" if self.strategy_index is not None
                             and state in (ScrapeState.FETCHING, ScrapeState.PARSING) else ""))
        if self.on_state_change:
            self.on_state_change(state)

    def _on_strategy(self, index: int, strategy: Strategy) -> None:
        self.strategy_index = index
        self._transition(ScrapeState.FETCHING)

    def parsing(self) -> None:
        """Called by strategies once their fetch is done."""
        self._transition(ScrapeState.PARSING)

    async def scrape(self, identifier: str, max_posts: Optional[int] = None,
                     include_comments: Optional[bool] = None) -> ScrapeResult:
        """
        Run the pipeline for one page or profile.

        Never raises for upstream conditions. Missing credentials and a login
        wall on the identifier fetch produce a result with `error` set; every
        other failure is reported through `warnings`.
        """
        start_time = time.time()
        self.strategy_index = None
        self.state_history = []
        context = ScrapeContext(
            identifier=identifier,
            max_posts=max_posts if max_posts is not None else self.config.max_posts,
            include_comments=(self.config.include_comments if include_comments is None
                              else include_comments),
        )

        try:
            self._transition(ScrapeState.RESOLVING_IDENTIFIER)
            await self._resolve_identifier(context)

            outcomes = await self.orchestrator.run(self._strategies(context), context.merger, context.warnings)
            self.strategy_index = None

            self._transition(ScrapeState.MERGING)
            posts = await self._finalize_posts(context, context.merger.result())

            if not posts:
                context.warn(self._no_posts_warning(context))

            self._transition(ScrapeState.COMPLETE)
            self._success_count += 1
            self.logger.info(f"Scrape of {identifier} complete: {len(posts)} posts, "
                             f"{len(context.warnings)} warnings, "
                             f"{sum(1 for o in outcomes if o.error)} strategies failed, "
                             f"{time.time() - start_time:.2f}s")
            return ScrapeResult(
                platform=self.PLATFORM,
                identifier=identifier,
                profile=context.profile,
                posts=tuple(posts),
                warnings=tuple(context.warnings),
            )

        except (MissingCredentials, LoginRequired) as e:
            return self._fatal(context, e, f"{type(e).__name__}: {e}")
        except Exception as e:
            self.logger.exception(f"Unexpected failure scraping {identifier}")
            return self._fatal(context, e, f"Unexpected error: {e}")

    def _fatal(self, context: ScrapeContext, error: Exception, message: str) -> ScrapeResult:
        self._transition(ScrapeState.FATAL_ERROR)
        self._error_count += 1
        self.logger.error(f"Scrape of {context.identifier} failed: {message}")
        if self.on_error:
            self.on_error(error, context.identifier)
        return ScrapeResult(
            platform=self.PLATFORM,
            identifier=context.identifier,
            profile=context.profile,
            posts=tuple(context.merger.result()),
            warnings=tuple(context.warnings),
            error=message,
        )

    def accept_content(self, text: Optional[str]) -> bool:
        return bool(text) and self.validator.is_valid(text)

    @abstractmethod
    async def _resolve_identifier(self, context: ScrapeContext) -> None:
        """Normalize the identifier and fetch whatever the strategies depend on."""

    @abstractmethod
    def _strategies(self, context: ScrapeContext) -> List[Strategy]:
        """Extraction strategies in priority order."""

    async def _finalize_posts(self, context: ScrapeContext, posts: List[Post]) -> List[Post]:
        """Hook for enrichment after merging (comments, for instance)."""
        return posts

    def _no_posts_warning(self, context: ScrapeContext) -> str:
        return NO_POSTS_WARNING

    def get_metrics(self) -> Dict[str, Any]:
        total = self._success_count + self._error_count
        return {
            'scraper_name': self.config.name,
            'platform': self.PLATFORM,
            'success_count': self._success_count,
            'error_count': self._error_count,
            'success_rate': self._success_count / max(1, total),
            'state': self.state.value,
        }

    async def cleanup(self) -> None:
        """Release network resources."""

    def __str__(self) -> str:
        return f"{self.__class__.__name__}(name={self.config.name}, state={self.state.value})"
