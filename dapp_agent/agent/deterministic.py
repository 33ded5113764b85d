"""Steps with a fixed execution path, run without calling the model.

navigate, switch_network and verify_state never need adaptive decisions, so
they go straight to the browser / wallet surface. Results have the same shape
as agent-driven steps with ``api_calls`` always 0.
"""

import re
import time
from abc import ABC, abstractmethod
from typing import Any, Optional

from dapp_agent.agent.networks import chain_id_for, find_network_in_text, parse_chain_id, to_hex_chain_id
from dapp_agent.agent.types import AgentAction, AgentContext, IntentStep, IntentStepType, StepResult
from dapp_agent.utils.logger import setup_logger

logger = setup_logger(__name__)

NAVIGATION_TIMEOUT_MS = 30_000
SETTLE_MS = 3000

URL_PATTERN = re.compile(r"https?://\S+")

READ_CHAIN_ID_JS = """async () => {
    const eth = window.ethereum;
    if (!eth) return null;
    try {
        return await eth.request({ method: 'eth_chainId' });
    } catch (e) {
        return eth.chainId ?? null;
    }
}"""

READ_ADDRESS_JS = """() => {
    const eth = window.ethereum;
    if (!eth) return { connected: false, address: null, error: 'No ethereum provider' };
    const addr = eth.selectedAddress;
    return { connected: !!addr, address: addr, error: addr ? null : 'selectedAddress is null' };
}"""

SWITCH_CHAIN_JS = """async (chainIdHex) => {
    await window.ethereum.request({
        method: 'wallet_switchEthereumChain',
        params: [{ chainId: chainIdHex }],
    });
}"""


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


# ============================================================================
# Network switch strategies
# ============================================================================


class NetworkSwitchStrategy(ABC):
    """One way of switching the wallet's active network."""

    name: str

    def applies(self, chain_id: Optional[int]) -> bool:
        return True

    @abstractmethod
    async def switch(self, ctx: AgentContext, network_name: str, chain_id: Optional[int]) -> None:
        """Request the switch. Raises on failure."""


class ProviderRpcStrategy(NetworkSwitchStrategy):
    """``wallet_switchEthereumChain`` through the injected provider.

    MetaMask auto-approves built-in networks, so no popup is involved.
    """

    name = "provider_rpc"

    def applies(self, chain_id: Optional[int]) -> bool:
        return chain_id is not None

    async def switch(self, ctx: AgentContext, network_name: str, chain_id: Optional[int]) -> None:
        await ctx.page.evaluate(SWITCH_CHAIN_JS, to_hex_chain_id(chain_id))
        await ctx.page.wait_for_timeout(SETTLE_MS)


class WalletSurfaceStrategy(NetworkSwitchStrategy):
    """The wallet UI's own network picker."""

    name = "dappwright"

    async def switch(self, ctx: AgentContext, network_name: str, chain_id: Optional[int]) -> None:
        await ctx.wallet.switch_network(network_name)
        await ctx.page.bring_to_front()
        await ctx.page.wait_for_timeout(SETTLE_MS)


DEFAULT_SWITCH_STRATEGIES: tuple[NetworkSwitchStrategy, ...] = (
    ProviderRpcStrategy(),
    WalletSurfaceStrategy(),
)


# ============================================================================
# Executor
# ============================================================================


class DeterministicExecutor:
    """Runs navigate / switch_network / verify_state steps directly."""

    def __init__(self, switch_strategies: tuple[NetworkSwitchStrategy, ...] = DEFAULT_SWITCH_STRATEGIES):
        self.switch_strategies = switch_strategies

    async def execute(self, step: IntentStep, index: int, total: int, ctx: AgentContext) -> StepResult:
        """
        Execute one step. Never raises.

        Args:
            step: Step to run
            index: Zero-based position of the step in the run
            total: Number of steps in the run
            ctx: Run context

        Returns:
            StepResult with ``api_calls == 0``
        """
        started = time.monotonic()
        actions: list[AgentAction] = []
        logger.info(f"[Deterministic] Step {index + 1}/{total}: {step.description} (no model call)")

        try:
            if step.type_name == IntentStepType.NAVIGATE.value:
                result = await self._navigate(step, index, ctx, actions)
            elif step.type_name == IntentStepType.SWITCH_NETWORK.value:
                result = await self._switch_network(step, index, ctx, actions)
            elif step.type_name == IntentStepType.VERIFY_STATE.value:
                result = await self._verify_state(step, index, ctx, actions)
            else:
                await capture_step_screenshot(ctx, step, index)
                result = ("failed", None, f"Unhandled deterministic step type: {step.type_name}")
        except Exception as e:
            logger.error(f"[Deterministic] Step {step.id} raised: {e}", exc_info=True)
            await capture_step_screenshot(ctx, step, index)
            result = ("failed", None, str(e) or type(e).__name__)

        status, summary, error = result
        if status == "passed":
            logger.info(f"[Deterministic]   -> {summary}")
        else:
            logger.warning(f"[Deterministic]   -> FAIL: {error}")

        return StepResult(
            step_id=step.id,
            description=step.description,
            status=status,
            summary=summary,
            error=error,
            api_calls=0,
            duration_ms=_elapsed_ms(started),
            actions=actions,
        )

    # ------------------------------------------------------------------
    # navigate
    # ------------------------------------------------------------------

    async def _navigate(self, step: IntentStep, index: int, ctx: AgentContext, actions: list[AgentAction]):
        url = _context_str(step, "url") or _url_from_text(step.description)
        if not url:
            await capture_step_screenshot(ctx, step, index)
            return "failed", None, "No URL found in step context or description"

        started = time.monotonic()
        await ctx.page.goto(url, wait_until="domcontentloaded", timeout=NAVIGATION_TIMEOUT_MS)
        actions.append(
            AgentAction(
                tool="browser_navigate",
                input={"url": url},
                output=f"Navigated to {url}",
                success=True,
                duration_ms=_elapsed_ms(started),
            )
        )

        await ctx.page.wait_for_timeout(SETTLE_MS)
        actions.append(
            AgentAction(
                tool="browser_wait",
                input={"sleep": SETTLE_MS},
                output=f"Waited {SETTLE_MS}ms",
                success=True,
                duration_ms=SETTLE_MS,
            )
        )

        await capture_step_screenshot(ctx, step, index)
        title = await ctx.page.title()
        return "passed", f'Navigated to {url}. Page title: "{title}"', None

    # ------------------------------------------------------------------
    # switch_network
    # ------------------------------------------------------------------

    async def _switch_network(self, step: IntentStep, index: int, ctx: AgentContext, actions: list[AgentAction]):
        network_name = _context_str(step, "networkName") or find_network_in_text(step.description)
        if not network_name:
            await capture_step_screenshot(ctx, step, index)
            return "failed", None, "No network name found in step context or description"

        expected = chain_id_for(network_name)
        last_error: Optional[str] = None
        switched_by: Optional[str] = None

        for strategy in self.switch_strategies:
            if not strategy.applies(expected):
                continue

            started = time.monotonic()
            try:
                await strategy.switch(ctx, network_name, expected)
            except Exception as e:
                last_error = str(e) or type(e).__name__
                logger.info(f"[Deterministic]   {strategy.name} switch failed: {last_error}")
                actions.append(
                    AgentAction(
                        tool="wallet_switch_network",
                        input={"network_name": network_name, "method": strategy.name},
                        output=f"Switch via {strategy.name} failed: {last_error}",
                        success=False,
                        duration_ms=_elapsed_ms(started),
                    )
                )
                continue

            actions.append(
                AgentAction(
                    tool="wallet_switch_network",
                    input={"network_name": network_name, "method": strategy.name},
                    output=f"Switch requested via {strategy.name}",
                    success=True,
                    duration_ms=_elapsed_ms(started),
                )
            )
            switched_by = strategy.name
            break

        if switched_by is None:
            await capture_step_screenshot(ctx, step, index)
            return "failed", None, f"Network switch to {network_name} failed: {last_error}"

        if expected is not None:
            actual = await self._read_chain_id(ctx)
            verified = actual == expected
            actions.append(
                AgentAction(
                    tool="verify_chain",
                    input={"expected": expected, "actual": actual},
                    output=f"Chain {actual} verified" if verified else f"Chain mismatch: {actual}",
                    success=verified,
                )
            )
            if not verified:
                await capture_step_screenshot(ctx, step, index)
                shown = actual if actual is not None else "unknown"
                return "failed", None, f"Expected chain {expected} ({network_name}) but got {shown}"

        await capture_step_screenshot(ctx, step, index)
        return "passed", f"Switched network to {network_name} via {switched_by}", None

    async def _read_chain_id(self, ctx: AgentContext) -> Optional[int]:
        try:
            raw = await ctx.page.evaluate(READ_CHAIN_ID_JS)
        except Exception as e:
            logger.info(f"[Deterministic]   Could not read chain id: {e}")
            return None
        return parse_chain_id(raw)

    # ------------------------------------------------------------------
    # verify_state
    # ------------------------------------------------------------------

    async def _verify_state(self, step: IntentStep, index: int, ctx: AgentContext, actions: list[AgentAction]):
        started = time.monotonic()
        state = await ctx.page.evaluate(READ_ADDRESS_JS) or {}
        connected = bool(state.get("connected"))
        address = state.get("address")
        reason = state.get("error") or "selectedAddress is null"

        actions.append(
            AgentAction(
                tool="assert_wallet_connected",
                output=f"Connected: {address}" if connected else f"NOT connected: {reason}",
                success=connected,
                duration_ms=_elapsed_ms(started),
            )
        )

        await capture_step_screenshot(ctx, step, index)
        if connected:
            return "passed", f"Wallet connected: {address}", None
        return "failed", None, f"Wallet NOT connected: {reason}"


# ============================================================================
# Helpers
# ============================================================================


def step_screenshot_name(step: IntentStep, index: int) -> str:
    return f"step-{index + 1}-{step.type_name}.png"


async def capture_step_screenshot(ctx: AgentContext, step: IntentStep, index: int) -> Optional[str]:
    """Screenshot the page after a step. Returns the file name, None on failure."""
    name = step_screenshot_name(step, index)
    try:
        ctx.artifacts_dir.mkdir(parents=True, exist_ok=True)
        await ctx.page.screenshot(path=str(ctx.artifacts_dir / name), full_page=False)
        return name
    except Exception as e:
        logger.debug(f"Step screenshot failed: {e}")
        return None


def _context_str(step: IntentStep, key: str) -> Optional[str]:
    value: Any = (step.context or {}).get(key)
    return value.strip() if isinstance(value, str) and value.strip() else None


def _url_from_text(text: str) -> Optional[str]:
    match = URL_PATTERN.search(text)
    return match.group(0) if match else None
