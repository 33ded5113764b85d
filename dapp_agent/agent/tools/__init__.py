"""Agent tools package.

Three families share one registry:

- browser: act on the dApp page through snapshot refs
- wallet: click through wallet popups
- control: end the step or the whole test

Usage:
    from dapp_agent.agent.tools import create_default_registry

    registry = create_default_registry()
    llm.bind_tools(registry.definitions, parallel_tool_calls=False)
    result = await registry.execute(name, args, ctx)
"""

from dapp_agent.agent.tools.base import DomainToolFamily, ToolFamily, context_from, reply
from dapp_agent.agent.tools.browser import create_browser_tools
from dapp_agent.agent.tools.control import CONTROL_TOOL_NAMES, ControlTools, execute_control_tool
from dapp_agent.agent.tools.registry import ToolRegistry, create_default_registry
from dapp_agent.agent.tools.wallet import create_wallet_tools

__all__ = [
    "context_from",
    "reply",
    "ToolFamily",
    "DomainToolFamily",
    "ToolRegistry",
    "ControlTools",
    "CONTROL_TOOL_NAMES",
    "execute_control_tool",
    "create_browser_tools",
    "create_wallet_tools",
    "create_default_registry",
]
