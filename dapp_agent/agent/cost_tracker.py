"""Tracks LLM usage and enforces the API-call budgets of a run."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional

from dapp_agent.agent.types import AgentUsage
from dapp_agent.utils.logger import setup_logger

logger = setup_logger(__name__)


@dataclass(frozen=True)
class ModelPricing:
    """USD per million tokens."""

    input: float
    output: float
    cache_read: float
    cache_write: float


MODEL_PRICING: dict[str, ModelPricing] = {
    "gpt-4o": ModelPricing(input=2.5, output=10.0, cache_read=1.25, cache_write=2.5),
    "gpt-4o-mini": ModelPricing(input=0.15, output=0.6, cache_read=0.075, cache_write=0.15),
    "gpt-4.1": ModelPricing(input=2.0, output=8.0, cache_read=0.5, cache_write=2.0),
    "gpt-4.1-mini": ModelPricing(input=0.4, output=1.6, cache_read=0.1, cache_write=0.4),
    "claude-sonnet-4-5-20250929": ModelPricing(input=3.0, output=15.0, cache_read=0.3, cache_write=3.75),
    "claude-haiku-4-5-20251001": ModelPricing(input=0.8, output=4.0, cache_read=0.08, cache_write=1.0),
}

DEFAULT_PRICING = ModelPricing(input=3.0, output=15.0, cache_read=0.3, cache_write=3.75)


class BudgetStatus(str, Enum):
    OK = "ok"
    STEP_EXHAUSTED = "step_exhausted"
    RUN_EXHAUSTED = "run_exhausted"


class CostTracker:
    """
    Accumulates token usage for one run.

    The tracker is owned by the run orchestrator and is the only writer of
    AgentUsage; everything else reads snapshots through ``usage``.
    """

    def __init__(self, model: str, max_api_calls: int, max_calls_per_step: int):
        self.model = model
        self.max_api_calls = max_api_calls
        self.max_calls_per_step = max_calls_per_step
        self._usage = AgentUsage()

    @property
    def total_calls(self) -> int:
        return self._usage.total_api_calls

    @property
    def usage(self) -> AgentUsage:
        """Copy of the current totals with a fresh cost estimate."""
        return self._usage.model_copy(update={"estimated_cost_usd": self.estimate_cost()})

    def record_usage(self, usage_metadata: Optional[Mapping[str, Any]]) -> None:
        """
        Record one model call.

        Args:
            usage_metadata: LangChain ``AIMessage.usage_metadata``. Cache tokens
                are reported inside ``input_tokens`` and broken out in
                ``input_token_details``. A missing block still counts the call.
        """
        usage_metadata = usage_metadata or {}
        details = usage_metadata.get("input_token_details") or {}

        self._usage.total_api_calls += 1
        self._usage.input_tokens += int(usage_metadata.get("input_tokens") or 0)
        self._usage.output_tokens += int(usage_metadata.get("output_tokens") or 0)
        self._usage.cache_read_tokens += int(details.get("cache_read") or 0)
        self._usage.cache_creation_tokens += int(details.get("cache_creation") or 0)
        self._usage.estimated_cost_usd = self.estimate_cost()

    def estimate_cost(self) -> float:
        """Estimate cost in USD from the fixed pricing table."""
        pricing = MODEL_PRICING.get(self.model, DEFAULT_PRICING)
        u = self._usage
        uncached_input = max(0, u.input_tokens - u.cache_read_tokens - u.cache_creation_tokens)

        return (
            uncached_input * pricing.input
            + u.output_tokens * pricing.output
            + u.cache_read_tokens * pricing.cache_read
            + u.cache_creation_tokens * pricing.cache_write
        ) / 1_000_000

    def check_budget(self, per_step_count: int) -> BudgetStatus:
        """Which budget, if any, blocks the next model call."""
        if self.total_calls >= self.max_api_calls:
            logger.warning(f"Run-wide API budget reached ({self.max_api_calls} calls)")
            return BudgetStatus.RUN_EXHAUSTED
        if per_step_count >= self.max_calls_per_step:
            logger.warning(f"Per-step API budget reached ({self.max_calls_per_step} calls)")
            return BudgetStatus.STEP_EXHAUSTED
        return BudgetStatus.OK

    def has_remaining_calls(self, per_step_count: int) -> bool:
        return self.check_budget(per_step_count) is BudgetStatus.OK

    def __str__(self) -> str:
        u = self.usage
        return (
            f"{u.total_api_calls} API calls, {u.input_tokens + u.output_tokens} tokens, "
            f"~${u.estimated_cost_usd:.3f}"
        )
