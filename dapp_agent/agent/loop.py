"""Drives one agent-required step through the step graph."""

import asyncio
from dataclasses import dataclass
from typing import Optional, Sequence

from langchain_core.messages import HumanMessage
from langgraph.errors import GraphRecursionError

from dapp_agent.agent.cost_tracker import CostTracker
from dapp_agent.agent.graph import create_step_graph, recursion_limit_for
from dapp_agent.agent.prompts import build_step_message
from dapp_agent.agent.state import StepLoopState, initial_step_state
from dapp_agent.agent.tools.registry import ToolRegistry
from dapp_agent.agent.types import (
    AgentConfig,
    AgentContext,
    IntentStep,
    StepCompleteSignal,
    StepFailedSignal,
    StepResult,
    TestCompleteSignal,
)
from dapp_agent.utils.logger import setup_logger

logger = setup_logger(__name__)

LIMITS_MESSAGE = "Step did not complete within limits"


@dataclass
class StepOutcome:
    result: StepResult
    test_complete: Optional[TestCompleteSignal] = None
    abort_run: bool = False
    cancelled: bool = False


class AgentLoop:
    """
    Runs agent-required steps for one run.

    Owns the compiled step graph; the cost tracker and context are shared with
    the orchestrator that created it.
    """

    def __init__(
        self,
        llm,
        registry: ToolRegistry,
        tracker: CostTracker,
        config: AgentConfig,
        ctx: AgentContext,
        system_prompt: str,
        cancel: Optional[asyncio.Event] = None,
    ):
        self.config = config
        self.ctx = ctx
        self.graph = create_step_graph(llm, registry, tracker, config, ctx, system_prompt, cancel)

    async def run_step(
        self,
        step: IntentStep,
        index: int,
        all_steps: Sequence[IntentStep],
        test_type: str,
        dapp_url: str,
        completed_summaries: Sequence[str] = (),
    ) -> StepOutcome:
        """Run ``step`` until a control signal or a limit ends it. Never raises."""
        loop = asyncio.get_running_loop()
        started = loop.time()
        self.ctx.step_label = f"step-{index + 1}-{step.type_name}"

        message = HumanMessage(
            content=build_step_message(step, all_steps, index, test_type, dapp_url, completed_summaries)
        )
        state: StepLoopState = initial_step_state(step.id, message, started)
        error: Optional[str] = None

        try:
            async for values in self.graph.astream(
                state,
                config={"recursion_limit": recursion_limit_for(self.config)},
                stream_mode="values",
            ):
                state = values
        except GraphRecursionError:
            logger.warning(f"Step {step.id} hit the graph recursion limit")
            error = LIMITS_MESSAGE
        except Exception as e:
            logger.error(f"Agent loop crashed on step {step.id}: {e}", exc_info=True)
            error = f"Agent loop error: {e}"

        duration_ms = int((loop.time() - started) * 1000)
        return _outcome(step, state, duration_ms, error)


def _outcome(step: IntentStep, state: StepLoopState, duration_ms: int, error: Optional[str]) -> StepOutcome:
    signal = state.get("signal")
    result = StepResult(
        step_id=step.id,
        description=step.description,
        status="failed",
        api_calls=state.get("step_api_calls", 0),
        duration_ms=duration_ms,
        actions=list(state.get("actions") or []),
    )
    outcome = StepOutcome(
        result=result,
        abort_run=bool(state.get("abort_run")),
        cancelled=bool(state.get("cancelled")),
    )

    if isinstance(signal, StepCompleteSignal):
        result.status = "passed"
        result.summary = signal.summary
    elif isinstance(signal, StepFailedSignal):
        result.error = signal.error
    elif isinstance(signal, TestCompleteSignal):
        outcome.test_complete = signal
        result.summary = signal.summary
        if signal.passed:
            result.status = "passed"
        else:
            result.error = f"Test ended as failed: {signal.summary}"
    else:
        result.error = error or state.get("failure") or LIMITS_MESSAGE

    return outcome
