# Copyright (c) 2024 Mountain Jewels Intelligence. All rights reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# modification, distribution, or use is strictly prohibited.

"""
Test Strategy Orchestration for the Social Presence Scraper

Short-circuiting, failure isolation and politeness delays.
"""

from unittest.mock import AsyncMock, Mock

import pytest

from presence_scraper.anti_detection.browser_identity import PolitenessDelay
from presence_scraper.core.errors import NetworkError, NoDataFound
from presence_scraper.core.models import Post
from presence_scraper.core.strategy import Strategy, StrategyOrchestrator
from presence_scraper.extraction.merger import ResultMerger


def posts(*ids):
    return [Post(id=i, content=f"Post {i} about the new seasonal menu") for i in ids]


@pytest.fixture
def orchestrator(sleeper):
    return StrategyOrchestrator(PolitenessDelay(request_delay=0, strategy_delay=(1.0, 1.0),
                                                sleep=sleeper))


class TestStrategyOrchestrator:
    """Test sequential strategy execution."""

    @pytest.mark.asyncio
    async def test_stops_once_satisfied(self, orchestrator, sleeper):
        first = AsyncMock(return_value=posts("1", "2", "3"))
        second = AsyncMock(return_value=posts("4"))
        merger = ResultMerger(limit=3)
        warnings = []

        outcomes = await orchestrator.run(
            [Strategy("first", first), Strategy("second", second)], merger, warnings)

        first.assert_awaited_once_with(3)
        second.assert_not_called()
        assert outcomes[1].skipped
        assert len(merger) == 3
        assert sleeper.delays == []
        assert warnings == []

    @pytest.mark.asyncio
    async def test_failure_becomes_warning_and_next_runs(self, orchestrator, sleeper):
        failing = AsyncMock(side_effect=NetworkError("connection reset"))
        fallback = AsyncMock(return_value=posts("1"))
        merger = ResultMerger(limit=5)
        warnings = []

        outcomes = await orchestrator.run(
            [Strategy("mobile", failing), Strategy("desktop", fallback)], merger, warnings)

        assert warnings == ["Strategy 'mobile' failed: NetworkError: connection reset"]
        assert outcomes[0].error is not None
        assert outcomes[1].added == 1
        fallback.assert_awaited_once_with(5)
        assert sleeper.delays == [1.0]

    @pytest.mark.asyncio
    async def test_no_data_is_quiet(self, orchestrator):
        merger = ResultMerger(limit=5)
        warnings = []

        await orchestrator.run([Strategy("empty", AsyncMock(side_effect=NoDataFound("none")))],
                               merger, warnings)

        assert warnings == []

    @pytest.mark.asyncio
    async def test_remaining_quota_shrinks(self, orchestrator):
        second = AsyncMock(return_value=[])
        merger = ResultMerger(limit=5)

        await orchestrator.run([Strategy("first", AsyncMock(return_value=posts("1", "2"))),
                                Strategy("second", second)], merger, [])

        second.assert_awaited_once_with(3)

    @pytest.mark.asyncio
    async def test_unexpected_errors_propagate(self, orchestrator):
        with pytest.raises(KeyError):
            await orchestrator.run([Strategy("broken", AsyncMock(side_effect=KeyError("x")))],
                                   ResultMerger(limit=1), [])

    @pytest.mark.asyncio
    async def test_on_strategy_callback(self, sleeper):
        callback = Mock()
        orchestrator = StrategyOrchestrator(PolitenessDelay(sleep=sleeper), on_strategy=callback)
        strategy = Strategy("only", AsyncMock(return_value=[]))

        await orchestrator.run([strategy], ResultMerger(limit=1), [])

        callback.assert_called_once_with(0, strategy)

    @pytest.mark.asyncio
    async def test_delay_only_before_fetching_strategies(self, orchestrator, sleeper):
        merger = ResultMerger(limit=10)

        await orchestrator.run([
            Strategy("remote", AsyncMock(return_value=posts("1"))),
            Strategy("reparse", AsyncMock(return_value=posts("2")), fetches=False),
            Strategy("remote_again", AsyncMock(return_value=posts("3"))),
        ], merger, [])

        assert len(merger) == 3
        assert sleeper.delays == [1.0]
