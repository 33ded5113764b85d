"""Routes tool calls by name to the family that owns them."""

from typing import Any, Optional, Sequence

from dapp_agent.agent.tools.base import ToolFamily
from dapp_agent.agent.types import AgentContext, ToolCallResult
from dapp_agent.utils.logger import setup_logger

logger = setup_logger(__name__)


class ToolRegistry:
    """
    All tools available to the agent.

    Tool names are unique across families. ``execute`` never raises: unknown
    names and handler errors come back as unsuccessful results.
    """

    def __init__(self, families: Sequence[ToolFamily]):
        self._families = list(families)
        self._owner: dict[str, ToolFamily] = {}
        for family in self._families:
            for name in family.names:
                if name in self._owner:
                    raise ValueError(f"Duplicate tool name: {name}")
                self._owner[name] = family

    @property
    def definitions(self) -> list[dict[str, Any]]:
        """Tool definitions in the format passed to ``bind_tools``."""
        return [definition for family in self._families for definition in family.definitions]

    @property
    def names(self) -> list[str]:
        return [name for family in self._families for name in family.names]

    def family_for(self, name: str) -> Optional[ToolFamily]:
        return self._owner.get(name)

    def is_control(self, name: str) -> bool:
        family = self._owner.get(name)
        return family is not None and family.is_control

    async def execute(self, name: str, tool_input: dict[str, Any], ctx: AgentContext) -> ToolCallResult:
        family = self._owner.get(name)
        if family is None:
            logger.warning(f"Model called unknown tool: {name}")
            return ToolCallResult(success=False, output=f"Unknown tool: {name}")
        try:
            return await family.execute(name, tool_input, ctx)
        except Exception as e:
            logger.error(f"Tool {name} raised outside its family: {e}", exc_info=True)
            return ToolCallResult(success=False, output=f"Tool {name} failed: {e}")


def create_default_registry() -> ToolRegistry:
    from dapp_agent.agent.tools.browser import create_browser_tools
    from dapp_agent.agent.tools.control import ControlTools
    from dapp_agent.agent.tools.wallet import create_wallet_tools

    return ToolRegistry([create_browser_tools(), create_wallet_tools(), ControlTools()])
