# Copyright (c) 2024 Mountain Jewels Intelligence. All rights reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# modification, distribution, or use is strictly prohibited.

"""
Strategy Orchestration for the Social Presence Scraper

Runs a platform's extraction strategies one at a time in priority order,
stopping as soon as the merged result meets the requested count. Recoverable
failures are recorded as warnings and the next strategy runs.
"""

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Sequence

from ..anti_detection.browser_identity import PolitenessDelay
from ..extraction.merger import ResultMerger
from .errors import RECOVERABLE_ERRORS, NoDataFound
from .models import Post

logger = logging.getLogger(__name__)

StrategyFunc = Callable[[int], Awaitable[List[Post]]]


@dataclass
class Strategy:
    """One extraction technique: a fetch target plus a parsing approach."""
    name: str
    run: StrategyFunc
    description: str = ""
    fetches: bool = True  # False when only re-parsing already fetched pages


@dataclass
class StrategyOutcome:
    name: str
    found: int = 0
    added: int = 0
    error: Optional[str] = None
    skipped: bool = False


class StrategyOrchestrator:
    """Sequential, short-circuiting executor of strategies."""

    def __init__(self, delay: Optional[PolitenessDelay] = None,
                 on_strategy: Optional[Callable[[int, Strategy], None]] = None):
        self.delay = delay or PolitenessDelay()
        self.on_strategy = on_strategy

    async def run(self, strategies: Sequence[Strategy], merger: ResultMerger,
                  warnings: List[str]) -> List[StrategyOutcome]:
        """
        Execute strategies until the merger is satisfied.

        Args:
            strategies: In priority order
            merger: Accumulates and de-duplicates posts; its limit is the target
            warnings: Receives one entry per recovered strategy failure

        Returns:
            One outcome per strategy, including skipped ones
        """
        outcomes: List[StrategyOutcome] = []
        attempted = 0

        for index, strategy in enumerate(strategies):
            if merger.satisfied:
                logger.debug(f"Skipping strategy {strategy.name}: {len(merger)} posts already")
                outcomes.append(StrategyOutcome(name=strategy.name, skipped=True))
                continue

            if attempted and strategy.fetches:
                await self.delay.between_strategies()
            attempted += 1

            if self.on_strategy:
                self.on_strategy(index, strategy)

            remaining = merger.remaining
            quota = remaining if remaining is not None else 0
            outcome = StrategyOutcome(name=strategy.name)
            try:
                posts = await strategy.run(quota)
            except NoDataFound:
                logger.debug(f"Strategy {strategy.name} found nothing")
                outcomes.append(outcome)
                continue
            except RECOVERABLE_ERRORS as e:
                outcome.error = f"{type(e).__name__}: {e}"
                warnings.append(f"Strategy '{strategy.name}' failed: {outcome.error}")
                logger.warning(f"Strategy {strategy.name} failed, moving on: {e}")
                outcomes.append(outcome)
                continue

            outcome.found = len(posts)
            outcome.added = merger.extend(posts)
            logger.info(f"Strategy {strategy.name}: {outcome.found} found, "
                        f"{outcome.added} new, {len(merger)} total")
            outcomes.append(outcome)

        return outcomes
