"""Tests for usage accounting and budgets."""

import pytest

from dapp_agent.agent.cost_tracker import DEFAULT_PRICING, BudgetStatus, CostTracker


def usage(input_tokens=0, output_tokens=0, cache_read=0, cache_creation=0):
    return {
        "input_tokens": input_tokens,
        "output_tokens": output_tokens,
        "total_tokens": input_tokens + output_tokens,
        "input_token_details": {"cache_read": cache_read, "cache_creation": cache_creation},
    }


class TestRecordUsage:
    """Tests for CostTracker.record_usage."""

    def test_accumulates_tokens_and_calls(self):
        tracker = CostTracker("gpt-4o-mini", max_api_calls=10, max_calls_per_step=5)
        tracker.record_usage(usage(1000, 100, cache_read=200))
        tracker.record_usage(usage(500, 50, cache_creation=100))

        u = tracker.usage
        assert u.total_api_calls == 2
        assert u.input_tokens == 1500
        assert u.output_tokens == 150
        assert u.cache_read_tokens == 200
        assert u.cache_creation_tokens == 100

    def test_missing_metadata_still_counts_the_call(self):
        tracker = CostTracker("gpt-4o-mini", max_api_calls=10, max_calls_per_step=5)
        tracker.record_usage(None)

        assert tracker.total_calls == 1
        assert tracker.usage.input_tokens == 0

    def test_usage_is_a_snapshot(self):
        tracker = CostTracker("gpt-4o-mini", max_api_calls=10, max_calls_per_step=5)
        tracker.record_usage(usage(100, 10))

        copy = tracker.usage
        copy.total_api_calls = 99

        assert tracker.total_calls == 1


class TestEstimateCost:
    """Tests for cost estimation."""

    def test_uncached_input_and_cache_reads_priced_separately(self):
        tracker = CostTracker("gpt-4o-mini", max_api_calls=10, max_calls_per_step=5)
        tracker.record_usage(usage(1_000_000, 0, cache_read=200_000))

        # 800k uncached at $0.15/M + 200k cached at $0.075/M
        assert tracker.estimate_cost() == pytest.approx(0.135)

    def test_output_tokens(self):
        tracker = CostTracker("gpt-4o", max_api_calls=10, max_calls_per_step=5)
        tracker.record_usage(usage(0, 1_000_000))

        assert tracker.estimate_cost() == pytest.approx(10.0)

    def test_unknown_model_uses_default_pricing(self):
        tracker = CostTracker("some-local-model", max_api_calls=10, max_calls_per_step=5)
        tracker.record_usage(usage(1_000_000, 0))

        assert tracker.estimate_cost() == pytest.approx(DEFAULT_PRICING.input)

    def test_str_mentions_calls_and_cost(self):
        tracker = CostTracker("gpt-4o-mini", max_api_calls=10, max_calls_per_step=5)
        tracker.record_usage(usage(100, 10))

        assert "1 API calls" in str(tracker)
        assert "$" in str(tracker)


class TestBudget:
    """Tests for budget checks."""

    def test_ok_under_both_limits(self):
        tracker = CostTracker("gpt-4o-mini", max_api_calls=3, max_calls_per_step=2)
        assert tracker.check_budget(0) is BudgetStatus.OK
        assert tracker.has_remaining_calls(1) is True

    def test_step_budget(self):
        tracker = CostTracker("gpt-4o-mini", max_api_calls=3, max_calls_per_step=2)
        assert tracker.check_budget(2) is BudgetStatus.STEP_EXHAUSTED
        assert tracker.has_remaining_calls(2) is False

    def test_run_budget_takes_priority(self):
        tracker = CostTracker("gpt-4o-mini", max_api_calls=2, max_calls_per_step=2)
        tracker.record_usage(None)
        tracker.record_usage(None)

        assert tracker.check_budget(2) is BudgetStatus.RUN_EXHAUSTED
