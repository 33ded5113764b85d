"""Model turn: check limits, snapshot the page, ask the model for the next tool."""

import asyncio
from typing import Literal, Optional

import openai
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage
from langgraph.graph import END
from langgraph.types import Command

from dapp_agent.agent.cost_tracker import BudgetStatus, CostTracker
from dapp_agent.agent.prompts import NUDGE_MESSAGE
from dapp_agent.agent.snapshot import refresh_snapshot
from dapp_agent.agent.state import StepLoopState
from dapp_agent.agent.tools.registry import ToolRegistry
from dapp_agent.agent.types import AgentAction, AgentConfig, AgentContext
from dapp_agent.utils.logger import setup_logger

logger = setup_logger(__name__)

RATE_LIMIT_BACKOFF_S = 5.0


def create_agent_node(
    llm,
    registry: ToolRegistry,
    tracker: CostTracker,
    config: AgentConfig,
    ctx: AgentContext,
    system_prompt: str,
    cancel: Optional[asyncio.Event] = None,
):
    """
    Factory to create the agent node with its collaborators.

    Args:
        llm: LangChain chat model supporting ``bind_tools``
        registry: Tools offered to the model
        tracker: Run-wide usage and budget tracker
        config: Per-run agent configuration
        ctx: Run context (page, wallet, snapshot refs)
        system_prompt: System prompt for every model call
        cancel: Run-level cancellation flag

    Returns:
        Agent node function that returns Command for routing
    """
    # One action per turn: every action changes the page the next one depends on
    llm_with_tools = llm.bind_tools(registry.definitions, parallel_tool_calls=False)

    async def agent_node(state: StepLoopState) -> Command[Literal["agent", "tools", "__end__"]]:
        step_calls = state["step_api_calls"]

        # Limits, in priority order
        if cancel is not None and cancel.is_set():
            logger.info(f"Step {state['step_id']}: run cancelled")
            return Command(update={"failure": "Run cancelled", "cancelled": True}, goto=END)

        elapsed_ms = (asyncio.get_running_loop().time() - state["started_at"]) * 1000
        if elapsed_ms > config.step_timeout_ms:
            logger.warning(f"Step {state['step_id']} timed out after {elapsed_ms:.0f}ms")
            return Command(update={"failure": f"Step timed out after {config.step_timeout_ms}ms"}, goto=END)

        budget = tracker.check_budget(step_calls)
        if budget is BudgetStatus.RUN_EXHAUSTED:
            return Command(
                update={
                    "failure": f"Run-wide API call budget exhausted ({tracker.max_api_calls} calls)",
                    "abort_run": True,
                },
                goto=END,
            )
        if budget is BudgetStatus.STEP_EXHAUSTED:
            return Command(
                update={"failure": f"Per-step API call budget exhausted ({config.max_calls_per_step} calls)"},
                goto=END,
            )

        try:
            snapshot_text = (await refresh_snapshot(ctx)).text
        except Exception as e:
            logger.warning(f"Snapshot capture failed: {e}")
            snapshot_text = f"[page] (snapshot unavailable: {e})"

        messages = [
            SystemMessage(content=system_prompt),
            *state["messages"],
            HumanMessage(content=f"Current page snapshot:\n{snapshot_text}"),
        ]

        try:
            response: AIMessage = await llm_with_tools.ainvoke(messages)
        except Exception as e:
            if _is_rate_limited(e):
                logger.warning(f"Rate limited, waiting {RATE_LIMIT_BACKOFF_S:.0f}s: {e}")
                await _backoff(cancel)
                return Command(goto="agent")
            logger.error(f"LLM call failed: {e}", exc_info=True)
            return Command(update={"failure": f"LLM error: {e}"}, goto=END)

        tracker.record_usage(response.usage_metadata)
        step_calls += 1

        if not response.tool_calls:
            text = response.content if isinstance(response.content, str) else str(response.content)
            logger.info(f"Model answered without a tool call: {text[:200]}")
            return Command(
                update={
                    "messages": [response, HumanMessage(content=NUDGE_MESSAGE)],
                    "step_api_calls": step_calls,
                    "actions": [
                        AgentAction(
                            tool="protocol_violation",
                            output=f"No tool call returned: {text[:450]}",
                            success=False,
                        )
                    ],
                },
                goto="agent",
            )

        first = response.tool_calls[0]
        logger.info(f"Model selected {first['name']} ({step_calls} calls this step, {tracker})")
        logger.debug(f"Tool call: {first['name']}({first.get('args', {})})")
        return Command(
            update={"messages": [response], "step_api_calls": step_calls},
            goto="tools",
        )

    return agent_node


async def _backoff(cancel: Optional[asyncio.Event]) -> None:
    """Wait out a rate limit; a set ``cancel`` event ends the wait early."""
    if cancel is None:
        await asyncio.sleep(RATE_LIMIT_BACKOFF_S)
        return
    try:
        await asyncio.wait_for(cancel.wait(), timeout=RATE_LIMIT_BACKOFF_S)
    except asyncio.TimeoutError:
        pass  # backoff elapsed, retry the call


def _is_rate_limited(error: Exception) -> bool:
    if isinstance(error, openai.RateLimitError):
        return True
    message = str(error).lower()
    return "rate_limit" in message or "rate limit" in message or "overloaded" in message
