"""Tool-family interface and the langchain-tool domain family."""

from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence

from langchain_core.runnables import RunnableConfig
from langchain_core.tools import BaseTool
from langchain_core.utils.function_calling import convert_to_openai_tool
from pydantic import ValidationError

from dapp_agent.agent.snapshot import StaleRefError
from dapp_agent.agent.types import AgentContext, ToolCallResult
from dapp_agent.utils.logger import setup_logger

logger = setup_logger(__name__)

# RunnableConfig["configurable"] key the run context travels under
CONTEXT_KEY = "agent_context"


def context_from(config: RunnableConfig) -> AgentContext:
    """The AgentContext a domain tool was invoked with."""
    return config["configurable"][CONTEXT_KEY]


def reply(success: bool, output: str, screenshot_before: Optional[str] = None) -> tuple[str, ToolCallResult]:
    """
    Content and artifact of a domain tool call.

    The content is what the model reads back; the ToolCallResult artifact
    carries the success flag and screenshot reference for the action log.
    """
    return output, ToolCallResult(success=success, output=output, screenshot_before=screenshot_before)


def invalid_input(name: str, error: ValidationError) -> ToolCallResult:
    problems = "; ".join(
        f"{'.'.join(str(p) for p in e['loc']) or 'input'}: {e['msg']}" for e in error.errors()
    )
    return ToolCallResult(success=False, output=f"Invalid input for {name}: {problems}")


class ToolFamily(ABC):
    """
    One family of tools (browser, wallet, control).

    The registry routes a tool name to exactly one family; the family owns
    validation and execution for its tools.
    """

    #: Domain families act on the page/wallet; control families end steps
    is_control: bool = False

    @property
    @abstractmethod
    def definitions(self) -> list[dict[str, Any]]:
        """OpenAI function-tool definitions, in the format ``bind_tools`` accepts."""

    @property
    @abstractmethod
    def names(self) -> list[str]:
        ...

    @abstractmethod
    async def execute(self, name: str, tool_input: dict[str, Any], ctx: AgentContext) -> ToolCallResult:
        ...


class DomainToolFamily(ToolFamily):
    """
    Open family of langchain tools acting on the page or the wallet.

    Tools are ``@tool`` coroutines with ``response_format="content_and_artifact"``
    returning ``reply(...)``; the run context reaches them through the
    RunnableConfig. Handler exceptions become unsuccessful results so a failing
    page action never crashes the loop.
    """

    def __init__(self, tools: Sequence[BaseTool]):
        self._tools = {tool.name: tool for tool in tools}

    @property
    def tools(self) -> list[BaseTool]:
        return list(self._tools.values())

    @property
    def definitions(self) -> list[dict[str, Any]]:
        return [convert_to_openai_tool(tool) for tool in self._tools.values()]

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    async def execute(self, name: str, tool_input: dict[str, Any], ctx: AgentContext) -> ToolCallResult:
        tool = self._tools.get(name)
        if tool is None:
            return ToolCallResult(success=False, output=f"Unknown tool: {name}")

        try:
            message = await tool.ainvoke(
                {"name": name, "args": tool_input or {}, "id": f"{name}-call", "type": "tool_call"},
                config={"configurable": {CONTEXT_KEY: ctx}},
            )
        except ValidationError as e:
            return invalid_input(name, e)
        except StaleRefError as e:
            return ToolCallResult(success=False, output=str(e))
        except Exception as e:
            logger.debug(f"Tool {name} raised: {e}", exc_info=True)
            return ToolCallResult(success=False, output=f"Tool {name} failed: {e}")

        if isinstance(message.artifact, ToolCallResult):
            return message.artifact
        content = message.content if isinstance(message.content, str) else str(message.content)
        return ToolCallResult(success=message.status != "error", output=content)
