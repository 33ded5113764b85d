"""Console rendering of runs with rich."""

from typing import Sequence

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from dapp_agent.agent.classifier import is_deterministic
from dapp_agent.agent.types import AgentRunResult, IntentStep, RunStatus

console = Console()

STATUS_STYLES = {
    "passed": "green",
    "failed": "red",
    "skipped": "dim",
}

RUN_STYLES = {
    RunStatus.PASSED: "green",
    RunStatus.FAILED: "red",
    RunStatus.CANCELLED: "yellow",
}


def show_plan(steps: Sequence[IntentStep], dapp_url: str) -> None:
    """Print the steps about to run and how each will be executed."""
    table = Table(title=f"Intent steps for {dapp_url}", show_lines=False)
    table.add_column("#", justify="right")
    table.add_column("ID")
    table.add_column("Type")
    table.add_column("Mode")
    table.add_column("Description", overflow="fold")

    for index, step in enumerate(steps, start=1):
        mode = "[cyan]deterministic[/cyan]" if is_deterministic(step) else "[magenta]agent[/magenta]"
        table.add_row(str(index), step.id, step.type_name, mode, step.description)

    console.print(table)


def render_run_result(result: AgentRunResult) -> None:
    table = Table(title="Step results")
    table.add_column("Step")
    table.add_column("Status")
    table.add_column("API calls", justify="right")
    table.add_column("Duration", justify="right")
    table.add_column("Actions", justify="right")
    table.add_column("Details", overflow="fold")

    for step in result.steps:
        style = STATUS_STYLES.get(step.status, "white")
        details = step.error if step.status == "failed" else (step.summary or "")
        table.add_row(
            step.step_id,
            f"[{style}]{step.status.upper()}[/{style}]",
            str(step.api_calls),
            f"{step.duration_ms / 1000:.1f}s",
            str(len(step.actions)),
            details or "",
        )

    console.print(table)

    usage = result.usage
    style = RUN_STYLES.get(result.status, "white")
    console.print(
        Panel(
            f"[{style}]{result.summary}[/{style}]\n\n"
            f"Model: {result.model}\n"
            f"API calls: {usage.total_api_calls}  "
            f"Tokens: {usage.input_tokens} in / {usage.output_tokens} out  "
            f"Cost: ~${usage.estimated_cost_usd:.3f}\n"
            f"Duration: {result.duration_ms / 1000:.1f}s  "
            f"Artifacts: {len(result.artifacts)}",
            title=f"Run {result.status.value.upper()}",
            border_style=style,
        )
    )
