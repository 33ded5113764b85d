"""Runs an ordered list of intent steps and aggregates the run result."""

import asyncio
import json
import re
import time
from typing import Optional, Sequence

from dapp_agent.agent.classifier import is_deterministic
from dapp_agent.agent.cost_tracker import CostTracker
from dapp_agent.agent.deterministic import DeterministicExecutor, capture_step_screenshot, step_screenshot_name
from dapp_agent.agent.loop import AgentLoop
from dapp_agent.agent.prompts import build_system_prompt
from dapp_agent.agent.tools.registry import ToolRegistry, create_default_registry
from dapp_agent.agent.types import (
    AgentArtifact,
    AgentConfig,
    AgentContext,
    AgentRunResult,
    IntentStep,
    RunStatus,
    StepResult,
)
from dapp_agent.utils.logger import setup_logger

logger = setup_logger(__name__)

RUN_LOG_NAME = "agent-run.log"
USAGE_NAME = "usage.json"
SCREENSHOT_SUFFIXES = (".png", ".jpg", ".jpeg")
LOG_SUFFIXES = (".log", ".json")
TRACE_SUFFIXES = (".zip",)

STEP_PREFIX = re.compile(r"^step-(\d+)")


class RunOrchestrator:
    """
    Executes one run: steps in order, deterministic or agent-driven.

    State machine: PENDING → RUNNING → {PASSED, FAILED, CANCELLED}. The
    orchestrator is the only writer of the AgentRunResult and owns the run's
    CostTracker. ``run`` never raises.
    """

    def __init__(
        self,
        llm,
        config: AgentConfig,
        registry: Optional[ToolRegistry] = None,
        executor: Optional[DeterministicExecutor] = None,
    ):
        self.llm = llm
        self.config = config
        self.registry = registry or create_default_registry()
        self.executor = executor or DeterministicExecutor()
        self.status = RunStatus.PENDING
        self._cancel = asyncio.Event()

    def cancel(self) -> None:
        """Request cooperative cancellation; the current tool call is allowed to finish."""
        logger.info("Run cancellation requested")
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    @property
    def cancel_event(self) -> asyncio.Event:
        """Shared with collaborators that wait, such as wallet popup polling."""
        return self._cancel

    async def run(
        self,
        steps: Sequence[IntentStep],
        ctx: AgentContext,
        dapp_url: str,
        test_type: str = "flow",
        dapp_context: Optional[str] = None,
    ) -> AgentRunResult:
        started = time.monotonic()
        tracker = CostTracker(self.config.model, self.config.max_api_calls, self.config.max_calls_per_step)
        self.status = RunStatus.RUNNING

        try:
            result = await self._run_steps(list(steps), ctx, dapp_url, test_type, dapp_context, tracker, started)
        except Exception as e:
            logger.error(f"Fatal error during run: {e}", exc_info=True)
            result = AgentRunResult(
                passed=False,
                status=RunStatus.FAILED,
                summary=f"Fatal error: {e}",
                duration_ms=int((time.monotonic() - started) * 1000),
                usage=tracker.usage,
                error=str(e),
                model=self.config.model,
            )

        self.status = result.status
        await self._finalize(result, ctx, test_type, tracker)
        logger.info(f"Run complete: {result.status.value.upper()} - {tracker}")
        return result

    async def _run_steps(
        self,
        steps: list[IntentStep],
        ctx: AgentContext,
        dapp_url: str,
        test_type: str,
        dapp_context: Optional[str],
        tracker: CostTracker,
        started: float,
    ) -> AgentRunResult:
        results: list[StepResult] = []
        completed_summaries: list[str] = []
        agent_loop: Optional[AgentLoop] = None

        stop_reason: Optional[str] = None  # "test_complete" | "budget" | "cancelled"
        test_signal = None
        total = len(steps)

        for index, step in enumerate(steps):
            if stop_reason is None and self._cancel.is_set():
                stop_reason = "cancelled"
            if stop_reason is not None:
                results.append(_skipped(step, stop_reason))
                continue

            logger.info(f"Step {index + 1}/{total} [{step.type_name}]: {step.description}")

            if is_deterministic(step):
                result = await self.executor.execute(step, index, total, ctx)
                shot = ctx.artifacts_dir / step_screenshot_name(step, index)
                if shot.exists():
                    result.screenshot_path = str(shot)
            else:
                if agent_loop is None:
                    agent_loop = AgentLoop(
                        self.llm,
                        self.registry,
                        tracker,
                        self.config,
                        ctx,
                        build_system_prompt(dapp_context),
                        self._cancel,
                    )
                outcome = await agent_loop.run_step(step, index, steps, test_type, dapp_url, completed_summaries)
                result = outcome.result

                if self.config.capture_step_screenshots:
                    name = await capture_step_screenshot(ctx, step, index)
                    if name:
                        result.screenshot_path = str(ctx.artifacts_dir / name)

                if outcome.test_complete is not None:
                    test_signal = outcome.test_complete
                    stop_reason = "test_complete"
                elif outcome.abort_run:
                    stop_reason = "budget"
                elif outcome.cancelled:
                    stop_reason = "cancelled"

            results.append(result)
            if result.status == "passed":
                completed_summaries.append(f"{step.description}: {(result.summary or 'done')[:100]}")
                logger.info(
                    f"Step {index + 1} PASSED ({result.api_calls} calls, {result.duration_ms}ms, "
                    f"{len(result.actions)} actions)"
                )
            else:
                logger.warning(f"Step {index + 1} FAILED: {result.error}")

        duration_ms = int((time.monotonic() - started) * 1000)
        failed = [r for r in results if r.status == "failed"]
        cancelled = stop_reason == "cancelled"

        if cancelled:
            done = sum(1 for r in results if r.status != "skipped")
            summary = f"Run cancelled after {done}/{total} steps"
        elif stop_reason == "budget":
            summary = f"Run aborted: API call budget exhausted ({tracker.total_calls} calls)"
        elif test_signal is not None:
            summary = test_signal.summary
        elif not failed:
            summary = f"All {total} steps passed"
        else:
            summary = f"{len(failed)}/{total} steps failed: " + "; ".join(r.error or "unknown error" for r in failed)

        passed = (
            not cancelled
            and not failed
            and stop_reason != "budget"
            and (test_signal is None or test_signal.passed)
        )
        if cancelled:
            status = RunStatus.CANCELLED
        else:
            status = RunStatus.PASSED if passed else RunStatus.FAILED

        return AgentRunResult(
            passed=passed,
            status=status,
            summary=summary,
            steps=results,
            duration_ms=duration_ms,
            usage=tracker.usage,
            error=None if passed else summary,
            model=self.config.model,
        )

    async def _finalize(self, result: AgentRunResult, ctx: AgentContext, test_type: str, tracker: CostTracker) -> None:
        """Write the run log and usage file, then collect artifacts. Never changes the outcome."""
        try:
            ctx.artifacts_dir.mkdir(parents=True, exist_ok=True)
            (ctx.artifacts_dir / RUN_LOG_NAME).write_text(render_run_log(result, test_type, tracker))
            (ctx.artifacts_dir / USAGE_NAME).write_text(
                json.dumps(result.usage.to_json_dict(), indent=2)
            )
            result.artifacts = collect_artifacts(ctx, result.steps)
        except Exception as e:
            logger.error(f"Failed to finalize run artifacts: {e}", exc_info=True)


def _skipped(step: IntentStep, reason: str) -> StepResult:
    summaries = {
        "test_complete": "Skipped: test completed early",
        "budget": "Skipped: API call budget exhausted",
        "cancelled": "Skipped: run cancelled",
    }
    return StepResult(
        step_id=step.id,
        description=step.description,
        status="skipped",
        summary=summaries[reason],
    )


def render_run_log(result: AgentRunResult, test_type: str, tracker: CostTracker) -> str:
    lines = [
        f"Test Type: {test_type}",
        f"Model: {result.model}",
        f"Result: {result.status.value.upper()}",
        f"Summary: {result.summary}",
        f"Usage: {tracker}",
        "",
        "Step Results:",
    ]
    for step in result.steps:
        line = f"  [{step.status.upper()}] {step.description} ({step.api_calls} calls, {step.duration_ms}ms)"
        if step.error:
            line += f" - {step.error}"
        lines.append(line)
    return "\n".join(lines) + "\n"


def collect_artifacts(ctx: AgentContext, steps: Sequence[StepResult]) -> list[AgentArtifact]:
    """Scan the artifacts directory; ``step-<n>`` files are tied to the n-th step."""
    if not ctx.artifacts_dir.is_dir():
        return []

    artifacts = []
    for path in sorted(ctx.artifacts_dir.iterdir()):
        if not path.is_file():
            continue
        suffix = path.suffix.lower()
        if suffix in SCREENSHOT_SUFFIXES:
            artifacts.append(
                AgentArtifact(type="screenshot", name=path.name, path=str(path), step_id=_step_id_for(path.name, steps))
            )
        elif suffix in LOG_SUFFIXES:
            artifacts.append(AgentArtifact(type="log", name=path.name, path=str(path)))
        elif suffix in TRACE_SUFFIXES:
            artifacts.append(AgentArtifact(type="trace", name=path.name, path=str(path)))
    return artifacts


def _step_id_for(filename: str, steps: Sequence[StepResult]) -> Optional[str]:
    match = STEP_PREFIX.match(filename)
    if not match:
        return None
    position = int(match.group(1)) - 1
    if 0 <= position < len(steps):
        return steps[position].step_id
    return None