"""LangGraph step loop with Command-based routing."""

import asyncio
from typing import Optional

from langgraph.graph import START, StateGraph

from dapp_agent.agent.cost_tracker import CostTracker
from dapp_agent.agent.nodes import create_agent_node, create_tools_node
from dapp_agent.agent.state import StepLoopState
from dapp_agent.agent.tools.registry import ToolRegistry
from dapp_agent.agent.types import AgentConfig, AgentContext
from dapp_agent.utils.logger import setup_logger

logger = setup_logger(__name__)


def create_step_graph(
    llm,
    registry: ToolRegistry,
    tracker: CostTracker,
    config: AgentConfig,
    ctx: AgentContext,
    system_prompt: str,
    cancel: Optional[asyncio.Event] = None,
):
    """
    Create the per-step agent graph.

    Architecture:
    - Two nodes, no conditional edges: each node returns a Command naming the next one
    - agent: limit checks, fresh snapshot, one model call
    - tools: runs the selected tool, records the action
    - END: a control signal arrived or a limit was hit

    Flow:
        START → agent → tools → agent → ... → tools (step_complete) → END

    The graph is compiled once per run and invoked once per agent-driven step.

    Returns:
        Compiled LangGraph graph over StepLoopState
    """
    agent_node = create_agent_node(llm, registry, tracker, config, ctx, system_prompt, cancel)
    tools_node = create_tools_node(registry, config, ctx)

    workflow = StateGraph(StepLoopState)
    workflow.add_node("agent", agent_node)
    workflow.add_node("tools", tools_node)

    # Only the entry point is an edge - the rest is Command-based
    workflow.add_edge(START, "agent")

    graph = workflow.compile()
    logger.info(f"Step graph created with {len(registry.names)} tools")
    return graph


def recursion_limit_for(config: AgentConfig) -> int:
    """Each model call is at most two supersteps; the rest is slack for nudges and retries."""
    return 2 * config.max_calls_per_step + 10
