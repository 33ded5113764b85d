"""Export all node factory functions."""

from dapp_agent.agent.nodes.agent_node import create_agent_node
from dapp_agent.agent.nodes.tools_node import create_tools_node

__all__ = [
    "create_agent_node",
    "create_tools_node",
]
