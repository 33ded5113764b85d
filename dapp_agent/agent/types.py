"""Data model shared by the executor, the agent loop and the run orchestrator.

Records serialize with camelCase keys (``stepId``, ``apiCalls`` ...) because the
dashboard replay timeline consumes them as JSON; Python code uses snake_case.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator
from pydantic.alias_generators import to_camel


class _Record(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_json_dict(self) -> dict[str, Any]:
        """Dump with camelCase keys, dropping unset optionals."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ============================================================================
# Intent steps
# ============================================================================


class IntentStepType(str, Enum):
    NAVIGATE = "navigate"
    CONNECT_WALLET = "connect_wallet"
    SIGN_MESSAGE = "sign_message"
    SWITCH_NETWORK = "switch_network"
    CONFIRM_TRANSACTION = "confirm_transaction"
    FILL_FORM = "fill_form"
    CLICK_ELEMENT = "click_element"
    VERIFY_STATE = "verify_state"
    DISMISS_OBSTACLE = "dismiss_obstacle"


class IntentStep(_Record):
    """Semantic unit of test intent derived from a recording. Read-only."""

    model_config = ConfigDict(frozen=True)

    id: str
    description: str
    # Unknown strings are kept as-is and routed to the agent loop
    type: Union[IntentStepType, str]
    source_step_indices: list[int] = Field(default_factory=list)
    context: Optional[dict[str, Any]] = None

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_known_type(cls, value: Any) -> Any:
        try:
            return IntentStepType(value)
        except ValueError:
            return value

    @property
    def type_name(self) -> str:
        return self.type.value if isinstance(self.type, IntentStepType) else str(self.type)


# ============================================================================
# Results
# ============================================================================

StepStatus = Literal["passed", "failed", "skipped"]


class RunStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    PASSED = "passed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class AgentAction(_Record):
    """One tool invocation, as shown on the replay timeline."""

    tool: str
    input: dict[str, Any] = Field(default_factory=dict)
    output: str = ""
    success: bool
    screenshot_before: Optional[str] = None
    screenshot_after: Optional[str] = None
    element_ref: Optional[str] = None
    element_desc: Optional[str] = None
    duration_ms: int = 0


class StepResult(_Record):
    """Per-step outcome (AgentStepData on the dashboard side)."""

    step_id: str
    description: str
    status: StepStatus
    summary: Optional[str] = None
    error: Optional[str] = None
    api_calls: int = 0
    duration_ms: int = 0
    screenshot_path: Optional[str] = None
    actions: list[AgentAction] = Field(default_factory=list)


class AgentUsage(_Record):
    total_api_calls: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    cache_read_tokens: int = 0
    cache_creation_tokens: int = 0
    estimated_cost_usd: float = 0.0


class AgentArtifact(_Record):
    type: Literal["screenshot", "log", "trace"]
    name: str
    path: str
    step_id: Optional[str] = None


class AgentRunResult(_Record):
    passed: bool
    status: RunStatus
    summary: str
    steps: list[StepResult] = Field(default_factory=list)
    duration_ms: int = 0
    usage: AgentUsage = Field(default_factory=AgentUsage)
    artifacts: list[AgentArtifact] = Field(default_factory=list)
    error: Optional[str] = None
    model: Optional[str] = None


# ============================================================================
# Control signals
# ============================================================================


class StepCompleteSignal(_Record):
    type: Literal["step_complete"] = "step_complete"
    step_id: str
    summary: str


class StepFailedSignal(_Record):
    type: Literal["step_failed"] = "step_failed"
    step_id: str
    error: str


class TestCompleteSignal(_Record):
    __test__ = False  # not a pytest class

    type: Literal["test_complete"] = "test_complete"
    passed: bool
    summary: str


ControlSignal = Annotated[
    Union[StepCompleteSignal, StepFailedSignal, TestCompleteSignal],
    Field(discriminator="type"),
]


class ToolCallResult(BaseModel):
    success: bool
    output: str
    control_signal: Optional[ControlSignal] = None
    # Internal only, never sent to the model
    screenshot_before: Optional[str] = None


# ============================================================================
# Snapshot + context
# ============================================================================


class SnapshotNode(BaseModel):
    role: str
    name: str
    ref: str
    locator_strategy: str
    # Position among nodes sharing the same role and name
    nth: int = 0


@dataclass
class AgentContext:
    """
    Per-run handle passed to every executor and tool handler.

    Owned by exactly one run; never share between concurrent runs.
    """

    page: Any  # playwright.async_api.Page
    context: Any  # playwright.async_api.BrowserContext
    wallet: Any  # dapp_agent.wallet.WalletAutomation
    artifacts_dir: Path
    snapshot_refs: dict[str, SnapshotNode] = field(default_factory=dict)
    snapshot_generation: int = 0
    screenshot_counter: int = 0
    # Artifact name prefix of the step being executed, e.g. "step-3-fill_form"
    step_label: str = "run"

    def next_artifact_path(self, label: str) -> Path:
        """Reserve a unique screenshot path for the current step."""
        self.screenshot_counter += 1
        safe = "".join(c if c.isalnum() or c in "-_" else "_" for c in label)[:40]
        return self.artifacts_dir / f"{self.step_label}-action-{self.screenshot_counter}-{safe}.png"


# ============================================================================
# Configuration
# ============================================================================


class AgentConfig(BaseModel):
    """Per-run agent configuration. Immutable once the run starts."""

    model_config = ConfigDict(frozen=True)

    model: str = "gpt-4o-mini"
    max_api_calls: int = 60
    max_calls_per_step: int = 20
    step_timeout_ms: int = 90_000
    capture_step_screenshots: bool = True
    api_key: SecretStr = SecretStr("")
    base_url: Optional[str] = None
    temperature: float = 0.0
