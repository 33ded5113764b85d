"""
dapp-agent - hybrid deterministic / LLM test runner for dApps.

Entry point: runs a list of intent steps against a dApp in Chromium with a
browser wallet extension.
"""

import argparse
import asyncio
import json
import shutil
import signal
import sys
from pathlib import Path
from typing import Optional

from langchain_openai import ChatOpenAI
from playwright.async_api import async_playwright
from pydantic import ValidationError
from rich.console import Console

from dapp_agent.agent.runner import RunOrchestrator
from dapp_agent.agent.types import AgentArtifact, AgentContext, IntentStep
from dapp_agent.ui.cli import render_run_result, show_plan
from dapp_agent.utils.config import Config, load_config
from dapp_agent.utils.logger import set_package_level, setup_logger
from dapp_agent.wallet import MetaMaskPopupWallet

console = Console()
logger = setup_logger(__name__)


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run dApp intent steps in a wallet-enabled browser")
    parser.add_argument("steps", type=Path, help="JSON file with intent steps")
    parser.add_argument("--url", help="dApp URL (defaults to dappUrl from the steps file)")
    parser.add_argument("--test-type", choices=["connection", "flow"], default="flow")
    parser.add_argument("--context", type=Path, help="Markdown file with dApp-specific agent context")
    parser.add_argument("--env-file", type=Path, help="Alternative .env file")
    return parser.parse_args(argv)


def load_steps(path: Path) -> tuple[list[IntentStep], Optional[str]]:
    """
    Read intent steps from JSON.

    Accepts a bare list of steps or an object ``{"dappUrl": ..., "steps": [...]}``.
    """
    data = json.loads(path.read_text(encoding="utf-8"))
    dapp_url = None
    if isinstance(data, dict):
        dapp_url = data.get("dappUrl")
        data = data.get("steps", [])
    return [IntentStep.model_validate(item) for item in data], dapp_url


def create_llm(config: Config) -> ChatOpenAI:
    return ChatOpenAI(
        api_key=config.llm_api_key,
        base_url=config.llm_base_url,
        model=config.llm_model,
        temperature=config.llm_temperature,
        streaming=False,
    )


async def launch_browser(playwright, config: Config):
    """Persistent Chromium context, with the wallet extension when configured."""
    args = []
    if config.wallet_extension_path:
        extension = str(config.wallet_extension_path.resolve())
        args += [f"--disable-extensions-except={extension}", f"--load-extension={extension}"]

    context = await playwright.chromium.launch_persistent_context(
        str(config.browser_user_data_dir),
        headless=config.headless,
        args=args,
        viewport={"width": 1280, "height": 800},
    )
    page = await context.new_page()
    return context, page


async def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 = run passed, 1 = failed or error)
    """
    args = parse_args(argv)

    try:
        console.print("[cyan]Loading configuration...[/cyan]")
        config = load_config(args.env_file)
        set_package_level(config.log_level)

        steps, file_url = load_steps(args.steps)
        dapp_url = args.url or file_url
        if not dapp_url:
            console.print("[red]No dApp URL: pass --url or set dappUrl in the steps file[/red]")
            return 1
        dapp_context = args.context.read_text(encoding="utf-8") if args.context else None
    except FileNotFoundError as e:
        console.print(f"[red]File not found: {e}[/red]")
        return 1
    except (ValidationError, json.JSONDecodeError, ValueError) as e:
        console.print(f"[red]Invalid configuration or steps file: {e}[/red]")
        return 1

    show_plan(steps, dapp_url)

    llm = create_llm(config)
    logger.info(f"LLM client created: {config.llm_model}")
    orchestrator = RunOrchestrator(llm, config.agent_config())

    artifacts_dir = config.artifacts_dir
    if artifacts_dir.exists():
        shutil.rmtree(artifacts_dir)
    artifacts_dir.mkdir(parents=True)

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, orchestrator.cancel)
    except NotImplementedError:
        logger.debug("Signal handlers not supported; Ctrl+C will abort immediately")

    try:
        async with async_playwright() as playwright:
            console.print("[cyan]Launching browser...[/cyan]")
            context, page = await launch_browser(playwright, config)
            await context.tracing.start(screenshots=True, snapshots=False, sources=False)

            ctx = AgentContext(
                page=page,
                context=context,
                wallet=MetaMaskPopupWallet(context, cancel=orchestrator.cancel_event),
                artifacts_dir=artifacts_dir,
            )
            try:
                result = await orchestrator.run(
                    steps, ctx, dapp_url=dapp_url, test_type=args.test_type, dapp_context=dapp_context
                )

                trace_path = artifacts_dir / "trace.zip"
                try:
                    await context.tracing.stop(path=str(trace_path))
                    result.artifacts.append(AgentArtifact(type="trace", name=trace_path.name, path=str(trace_path)))
                except Exception as e:
                    logger.error(f"Failed to save trace: {e}")
            finally:
                await context.close()
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        console.print(f"[red]Unexpected error: {e}[/red]")
        return 1

    (artifacts_dir / "result.json").write_text(json.dumps(result.to_json_dict(), indent=2))
    render_run_result(result)
    return 0 if result.passed else 1


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
