"""Control tools: the only way a step (or the whole test) ends inside the agent loop."""

from typing import Any, Literal, get_args

from langchain_core.utils.function_calling import convert_to_openai_tool
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel
from typing_extensions import assert_never

from dapp_agent.agent.tools.base import ToolFamily, invalid_input
from dapp_agent.agent.types import (
    AgentContext,
    StepCompleteSignal,
    StepFailedSignal,
    TestCompleteSignal,
    ToolCallResult,
)

ControlToolName = Literal["step_complete", "step_failed", "test_complete"]
CONTROL_TOOL_NAMES: frozenset[str] = frozenset(get_args(ControlToolName))


class _ControlInput(BaseModel):
    # Wire names are camelCase (stepId); schema title is the tool name
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StepCompleteInput(_ControlInput):
    """Signal that the current intent step has been completed successfully. Call this when you have finished all actions for the current step and verified the outcome."""

    model_config = ConfigDict(title="step_complete")

    step_id: str = Field(description="ID of the completed step")
    summary: str = Field(description="Brief summary of what was accomplished")


class StepFailedInput(_ControlInput):
    """Signal that the current intent step has failed and cannot be completed. Call this when you have exhausted all approaches to complete the step."""

    model_config = ConfigDict(title="step_failed")

    step_id: str = Field(description="ID of the failed step")
    error: str = Field(description="Description of what went wrong and what was tried")


class TestCompleteInput(_ControlInput):
    """Signal that the entire test is complete. Call this after all steps have been processed, or if an unrecoverable error occurs. This ends the run immediately."""

    __test__ = False
    model_config = ConfigDict(title="test_complete")

    passed: bool = Field(description="Whether the test passed overall")
    summary: str = Field(description="Summary of the test run results")


CONTROL_SCHEMAS: dict[str, type[_ControlInput]] = {
    "step_complete": StepCompleteInput,
    "step_failed": StepFailedInput,
    "test_complete": TestCompleteInput,
}


class ControlTools(ToolFamily):
    """Closed family of the three control signals."""

    is_control = True

    @property
    def definitions(self) -> list[dict[str, Any]]:
        return [convert_to_openai_tool(schema) for schema in CONTROL_SCHEMAS.values()]

    @property
    def names(self) -> list[str]:
        return list(CONTROL_SCHEMAS)

    async def execute(self, name: str, tool_input: dict[str, Any], ctx: AgentContext) -> ToolCallResult:
        if name not in CONTROL_TOOL_NAMES:
            return ToolCallResult(success=False, output=f"Unknown control tool: {name}")
        return execute_control_tool(name, tool_input)  # type: ignore[arg-type]


def execute_control_tool(name: ControlToolName, tool_input: dict[str, Any]) -> ToolCallResult:
    """
    Turn a control tool call into a control signal.

    Malformed input yields an unsuccessful result without a signal, so the
    loop treats it as a failed turn and keeps going.
    """
    try:
        args = CONTROL_SCHEMAS[name].model_validate(tool_input or {})
    except ValidationError as e:
        return invalid_input(name, e)

    match name:
        case "step_complete":
            return ToolCallResult(
                success=True,
                output=f'Step "{args.step_id}" marked complete: {args.summary}',
                control_signal=StepCompleteSignal(step_id=args.step_id, summary=args.summary),
            )
        case "step_failed":
            return ToolCallResult(
                success=False,
                output=f'Step "{args.step_id}" failed: {args.error}',
                control_signal=StepFailedSignal(step_id=args.step_id, error=args.error),
            )
        case "test_complete":
            verdict = "PASSED" if args.passed else "FAILED"
            return ToolCallResult(
                success=args.passed,
                output=f"Test complete: {verdict}: {args.summary}",
                control_signal=TestCompleteSignal(passed=args.passed, summary=args.summary),
            )
        case _:
            assert_never(name)
