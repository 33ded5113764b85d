"""Tool turn: run the model's selected tool and feed the result back."""

import asyncio
from typing import Any, Literal

from langchain_core.messages import ToolMessage
from langgraph.graph import END
from langgraph.types import Command

from dapp_agent.agent.state import StepLoopState
from dapp_agent.agent.tools.browser import capture_action_screenshot
from dapp_agent.agent.tools.registry import ToolRegistry
from dapp_agent.agent.types import AgentAction, AgentConfig, AgentContext, ToolCallResult
from dapp_agent.utils.logger import setup_logger

logger = setup_logger(__name__)

MAX_ACTION_OUTPUT = 500

# Tools that take their own highlighted "before" screenshot
SELF_CAPTURING_TOOLS = frozenset({"browser_click", "browser_type"})

# Read-only tools: nothing to show before/after
PASSIVE_TOOLS = frozenset({"browser_screenshot", "browser_evaluate", "assert_wallet_connected", "browser_wait"})

IGNORED_CALL_MESSAGE = (
    "Ignored: only the first tool call of a turn is executed. Call this tool again if it is still needed."
)


def create_tools_node(registry: ToolRegistry, config: AgentConfig, ctx: AgentContext):
    """
    Factory to create the tools node.

    Args:
        registry: Tool registry the call is dispatched through
        config: Per-run agent configuration (screenshot capture flag)
        ctx: Run context handed to tool handlers

    Returns:
        Tools node function that returns Command for routing
    """

    async def tools_node(state: StepLoopState) -> Command[Literal["agent", "__end__"]]:
        last = state["messages"][-1]
        call, *extra = last.tool_calls
        name = call["name"]
        tool_input: dict[str, Any] = call.get("args") or {}
        capture = (
            config.capture_step_screenshots
            and not registry.is_control(name)
            and name not in PASSIVE_TOOLS
        )

        ref = tool_input.get("ref") if isinstance(tool_input.get("ref"), str) else None
        node = ctx.snapshot_refs.get(ref) if ref else None

        loop = asyncio.get_running_loop()
        started = loop.time()

        before = None
        if capture and name not in SELF_CAPTURING_TOOLS:
            before = await capture_action_screenshot(ctx, f"{name}-before")

        result: ToolCallResult = await registry.execute(name, tool_input, ctx)
        duration_ms = int((loop.time() - started) * 1000)

        after = None
        if capture and result.success:
            after = await capture_action_screenshot(ctx, f"{name}-after")

        status = "OK" if result.success else "FAIL"
        logger.info(f"  {name} -> {status}: {result.output[:150]}")

        action = AgentAction(
            tool=name,
            input=tool_input,
            output=result.output[:MAX_ACTION_OUTPUT],
            success=result.success,
            screenshot_before=result.screenshot_before or before,
            screenshot_after=after,
            element_ref=ref,
            element_desc=f'{node.role} "{node.name}"' if node else None,
            duration_ms=duration_ms,
        )

        messages = [
            ToolMessage(
                content=result.output,
                tool_call_id=call["id"],
                name=name,
                status="success" if result.success else "error",
            )
        ]
        for ignored in extra:
            logger.debug(f"Ignoring extra tool call {ignored['name']}")
            messages.append(
                ToolMessage(
                    content=IGNORED_CALL_MESSAGE,
                    tool_call_id=ignored["id"],
                    name=ignored["name"],
                    status="error",
                )
            )

        update: dict[str, Any] = {"messages": messages, "actions": [action]}
        if result.control_signal is not None:
            update["signal"] = result.control_signal
            return Command(update=update, goto=END)
        return Command(update=update, goto="agent")

    return tools_node
