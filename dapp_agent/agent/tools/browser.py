"""Browser tools the agent drives the dApp page with.

Element-targeting tools take a snapshot ref (``s4e12``) rather than a selector.
A ref from an older snapshot is rejected with a message telling the model to
use the latest one.
"""

from typing import Literal, Optional

from langchain_core.runnables import RunnableConfig
from langchain_core.tools import tool
from pydantic import BaseModel, Field

from dapp_agent.agent.snapshot import locator_for, resolve_ref
from dapp_agent.agent.tools.base import DomainToolFamily, context_from, reply
from dapp_agent.agent.types import AgentContext
from dapp_agent.utils.logger import setup_logger

logger = setup_logger(__name__)

NAVIGATION_TIMEOUT_MS = 30_000
MAX_SLEEP_MS = 30_000


# ============================================================================
# Input schemas
# ============================================================================


class ClickInput(BaseModel):
    ref: str = Field(description='Element ref from the latest snapshot (e.g., "s3e5")')
    description: str = Field(description="What you are clicking and why")


class TypeInput(BaseModel):
    ref: str = Field(description="Element ref from the latest snapshot")
    text: str = Field(description="Text to type")
    clear: bool = Field(default=True, description="Whether to clear the field first")


class SelectInput(BaseModel):
    ref: str = Field(description="Combobox/select ref from the latest snapshot")
    value: str = Field(description="Option text to select")


class NavigateInput(BaseModel):
    url: str = Field(description="URL to navigate to")


class ScrollInput(BaseModel):
    direction: Literal["up", "down"] = Field(description="Scroll direction")
    amount: int = Field(default=500, ge=1, description="Pixels to scroll")


class WaitInput(BaseModel):
    text: Optional[str] = Field(default=None, description="Text to wait for on the page")
    timeout: int = Field(default=10_000, ge=0, description="Max wait time in ms")
    sleep: Optional[int] = Field(default=None, ge=0, description="Fixed sleep in ms (use instead of text)")


class EvaluateInput(BaseModel):
    expression: str = Field(
        description='JavaScript expression to evaluate (e.g., "document.title" or "window.ethereum?.selectedAddress")'
    )


class PressKeyInput(BaseModel):
    key: str = Field(description='Key name (e.g., "Enter", "Escape", "Tab", "ArrowDown")')


class ScreenshotInput(BaseModel):
    name: str = Field(description='Descriptive name for the screenshot (e.g., "after-connect")')


class NoInput(BaseModel):
    pass


# ============================================================================
# Helpers
# ============================================================================


def dapp_page(ctx: AgentContext):
    """First open page that is not a wallet extension page, else the run's page."""
    try:
        for page in ctx.context.pages:
            url = page.url
            if not url.startswith("chrome-extension://") and url != "about:blank" and not page.is_closed():
                return page
    except Exception as e:
        logger.debug(f"Could not list context pages: {e}")
    return ctx.page


async def capture_action_screenshot(ctx: AgentContext, label: str) -> Optional[str]:
    """Screenshot the dApp page under the next action name. Failure is non-fatal."""
    try:
        ctx.artifacts_dir.mkdir(parents=True, exist_ok=True)
        path = ctx.next_artifact_path(label)
        await dapp_page(ctx).screenshot(path=str(path), full_page=False)
        return path.name
    except Exception as e:
        logger.debug(f"Action screenshot failed: {e}")
        return None


async def _highlight_and_screenshot(ctx: AgentContext, locator, label: str) -> Optional[str]:
    """Outline the target element and capture it. Failure is non-fatal."""
    try:
        await locator.evaluate(
            "el => { el.style.outline = '3px solid #ef4444'; el.style.outlineOffset = '2px'; }"
        )
    except Exception as e:
        logger.debug(f"Could not highlight element: {e}")
        return None

    name = await capture_action_screenshot(ctx, label)
    try:
        await locator.evaluate("el => { el.style.outline = ''; el.style.outlineOffset = ''; }")
    except Exception as e:
        logger.debug(f"Could not clear highlight: {e}")
    return name


# ============================================================================
# Tools
# ============================================================================


@tool("browser_click", args_schema=ClickInput, response_format="content_and_artifact")
async def browser_click(ref: str, description: str, config: RunnableConfig):
    """Click an element identified by its ref from the latest accessibility snapshot."""
    ctx = context_from(config)
    node = resolve_ref(ctx, ref)
    locator = locator_for(ctx.page, node)
    before = await _highlight_and_screenshot(ctx, locator, f"click-{node.name or ref}")

    await locator.click(timeout=10_000)
    return reply(True, f'Clicked {node.role} "{node.name}" [{ref}]', screenshot_before=before)


@tool("browser_type", args_schema=TypeInput, response_format="content_and_artifact")
async def browser_type(ref: str, text: str, config: RunnableConfig, clear: bool = True):
    """Type text into a text input identified by its ref. Clears the field first unless clear=false."""
    ctx = context_from(config)
    node = resolve_ref(ctx, ref)
    locator = locator_for(ctx.page, node)
    before = await _highlight_and_screenshot(ctx, locator, f"type-{ref}")

    if clear:
        await locator.clear(timeout=5000)
    await locator.fill(text, timeout=5000)
    return reply(True, f'Typed "{text}" into [{ref}]', screenshot_before=before)


@tool("browser_select", args_schema=SelectInput, response_format="content_and_artifact")
async def browser_select(ref: str, value: str, config: RunnableConfig):
    """Select an option in a dropdown/combobox by its visible text."""
    ctx = context_from(config)
    locator = locator_for(ctx.page, resolve_ref(ctx, ref))
    await locator.select_option(label=value, timeout=5000)
    return reply(True, f'Selected "{value}" in [{ref}]')


@tool("browser_navigate", args_schema=NavigateInput, response_format="content_and_artifact")
async def browser_navigate(url: str, config: RunnableConfig):
    """Navigate to a URL."""
    page = context_from(config).page
    await page.goto(url, wait_until="domcontentloaded", timeout=NAVIGATION_TIMEOUT_MS)
    await page.wait_for_timeout(2000)
    return reply(True, f"Navigated to {url}")


@tool("browser_scroll", args_schema=ScrollInput, response_format="content_and_artifact")
async def browser_scroll(direction: str, config: RunnableConfig, amount: int = 500):
    """Scroll the page up or down."""
    page = context_from(config).page
    await page.mouse.wheel(0, amount if direction == "down" else -amount)
    await page.wait_for_timeout(500)
    return reply(True, f"Scrolled {direction} by {amount}px")


@tool("browser_wait", args_schema=WaitInput, response_format="content_and_artifact")
async def browser_wait(
    config: RunnableConfig,
    text: Optional[str] = None,
    timeout: int = 10_000,
    sleep: Optional[int] = None,
):
    """Wait for a condition: specific text to appear, or a fixed sleep."""
    page = context_from(config).page
    if sleep:
        ms = min(sleep, MAX_SLEEP_MS)
        await page.wait_for_timeout(ms)
        return reply(True, f"Waited {ms}ms")
    if text:
        await page.get_by_text(text, exact=False).first.wait_for(state="visible", timeout=timeout)
        return reply(True, f'Text "{text}" appeared on page')
    return reply(True, "No wait condition specified")


@tool("browser_go_back", args_schema=NoInput, response_format="content_and_artifact")
async def browser_go_back(config: RunnableConfig):
    """Navigate back in browser history."""
    page = context_from(config).page
    await page.go_back(wait_until="domcontentloaded", timeout=10_000)
    await page.wait_for_timeout(1000)
    return reply(True, "Navigated back")


@tool("browser_evaluate", args_schema=EvaluateInput, response_format="content_and_artifact")
async def browser_evaluate(expression: str, config: RunnableConfig):
    """Evaluate a JavaScript expression in the page context. Returns the result as a string."""
    result = await context_from(config).page.evaluate(
        "expr => { try { return String(eval(expr)); } catch (e) { return 'Error: ' + e; } }",
        expression,
    )
    return reply(True, f"Result: {result}")


@tool("browser_press_key", args_schema=PressKeyInput, response_format="content_and_artifact")
async def browser_press_key(key: str, config: RunnableConfig):
    """Press a keyboard key."""
    await context_from(config).page.keyboard.press(key)
    return reply(True, f"Pressed key: {key}")


@tool("browser_screenshot", args_schema=ScreenshotInput, response_format="content_and_artifact")
async def browser_screenshot(name: str, config: RunnableConfig):
    """Take a screenshot of the dApp page for artifacts or visual verification."""
    ctx = context_from(config)
    ctx.artifacts_dir.mkdir(parents=True, exist_ok=True)
    path = ctx.next_artifact_path(name)
    await dapp_page(ctx).screenshot(path=str(path), full_page=False)
    return reply(True, f"Screenshot saved: {path.name}")


@tool("assert_wallet_connected", args_schema=NoInput, response_format="content_and_artifact")
async def assert_wallet_connected(config: RunnableConfig):
    """Assert that the wallet is connected by checking window.ethereum.selectedAddress."""
    address = await context_from(config).page.evaluate(
        "() => { const eth = window.ethereum; return eth?.selectedAddress || eth?.accounts?.[0] || null; }"
    )
    if isinstance(address, str) and address.lower().startswith("0x"):
        return reply(True, f"Wallet connected: {address}")
    return reply(False, f"Wallet NOT connected. ethereum.selectedAddress = {address}")


BROWSER_TOOLS = [
    browser_click,
    browser_type,
    browser_select,
    browser_navigate,
    browser_scroll,
    browser_wait,
    browser_go_back,
    browser_evaluate,
    browser_press_key,
    browser_screenshot,
    assert_wallet_connected,
]


def create_browser_tools() -> DomainToolFamily:
    return DomainToolFamily(BROWSER_TOOLS)
