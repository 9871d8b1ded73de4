"""Tests for token usage aggregation."""

import pytest

from srchd.db.usage_db import TokenUsage


class TestUsageAggregation:

    @pytest.mark.asyncio
    async def test_sums_all_counters(self, usage_db, artifacts_db, experiment, agent):
        message = await artifacts_db.create_message(experiment, agent, "assistant", "done")
        assert (await usage_db.create(experiment, agent, message, TokenUsage(10, 5, 0, 0))).is_ok()
        assert (await usage_db.create(experiment, agent, message, TokenUsage(3, 2, 1, 0))).is_ok()

        result = await usage_db.total_by_experiment(experiment)

        assert result.is_ok()
        assert result.value == TokenUsage(13, 7, 1, 0)
        assert result.value.total == 21

    @pytest.mark.asyncio
    async def test_no_rows_is_all_zero(self, usage_db, experiment):
        result = await usage_db.total_by_experiment(experiment)

        assert result.is_ok()
        assert result.value == TokenUsage(0, 0, 0, 0)

    @pytest.mark.asyncio
    async def test_totals_are_per_experiment(self, usage_db, artifacts_db, experiments_db, agents_db, experiment, agent):
        other = (await experiments_db.create("other")).value
        other_agent = (await agents_db.create(other, "noether")).value
        message = await artifacts_db.create_message(other, other_agent, "assistant", "x")
        await usage_db.create(other, other_agent, message, TokenUsage(100, 100, 100, 100))

        result = await usage_db.total_by_experiment(experiment)
        assert result.value.total == 0

    @pytest.mark.asyncio
    async def test_dangling_message_is_creation_error(self, usage_db, artifacts_db, experiment, agent):
        message = await artifacts_db.create_message(experiment, agent, "user", "hi")
        message.id = 424242

        result = await usage_db.create(experiment, agent, message, TokenUsage(1, 1, 1, 1))

        assert result.is_err()
        assert result.error.code == "resource_creation_error"
