"""Tests for control tools, browser/wallet tools and the registry."""

import pytest
from langchain_core.runnables import RunnableConfig
from langchain_core.tools import BaseTool, tool

from dapp_agent.agent.snapshot import refresh_snapshot
from dapp_agent.agent.tools.base import DomainToolFamily
from dapp_agent.agent.tools.browser import NoInput
from dapp_agent.agent.tools.control import ControlTools, StepCompleteInput, execute_control_tool
from dapp_agent.agent.tools.registry import ToolRegistry, create_default_registry
from dapp_agent.agent.types import StepCompleteSignal, StepFailedSignal, TestCompleteSignal


class TestControlTools:
    """Tests for the control-signal tools."""

    def test_step_complete(self):
        result = execute_control_tool("step_complete", {"stepId": "s2", "summary": "Connected"})

        assert result.success is True
        assert isinstance(result.control_signal, StepCompleteSignal)
        assert result.control_signal.step_id == "s2"
        assert result.control_signal.summary == "Connected"

    def test_step_failed_is_unsuccessful(self):
        result = execute_control_tool("step_failed", {"stepId": "s2", "error": "No connect button"})

        assert result.success is False
        assert isinstance(result.control_signal, StepFailedSignal)
        assert result.control_signal.error == "No connect button"

    @pytest.mark.parametrize("passed", [True, False])
    def test_test_complete_success_mirrors_passed(self, passed):
        result = execute_control_tool("test_complete", {"passed": passed, "summary": "done"})

        assert result.success is passed
        assert isinstance(result.control_signal, TestCompleteSignal)
        assert result.control_signal.passed is passed

    def test_malformed_input_is_a_failed_turn_without_signal(self):
        result = execute_control_tool("step_complete", {"stepId": "s2"})

        assert result.success is False
        assert result.control_signal is None
        assert result.output.startswith("Invalid input for step_complete")
        assert "summary" in result.output

    def test_input_models_accept_wire_and_field_names(self):
        from_wire = StepCompleteInput.model_validate({"stepId": "s2", "summary": "ok"})
        by_field = StepCompleteInput(step_id="s2", summary="ok")

        assert from_wire.step_id == by_field.step_id == "s2"

    def test_signal_serializes_with_type_tag(self):
        result = execute_control_tool("step_failed", {"stepId": "s2", "error": "boom"})

        assert result.control_signal.to_json_dict() == {"type": "step_failed", "stepId": "s2", "error": "boom"}


class TestToolRegistry:
    """Tests for ToolRegistry."""

    def test_definitions_are_openai_function_tools(self):
        registry = create_default_registry()
        names = {d["function"]["name"] for d in registry.definitions}

        assert {"browser_click", "wallet_approve", "step_complete", "test_complete"} <= names
        click = next(d for d in registry.definitions if d["function"]["name"] == "browser_click")
        assert click["type"] == "function"
        assert set(click["function"]["parameters"]["required"]) == {"ref", "description"}

    def test_domain_tools_are_langchain_tools(self):
        registry = create_default_registry()
        browser = registry.family_for("browser_click")
        wallet = registry.family_for("wallet_sign")

        assert all(isinstance(t, BaseTool) for t in browser.tools + wallet.tools)
        assert all(t.response_format == "content_and_artifact" for t in browser.tools)

    def test_is_control(self):
        registry = create_default_registry()

        assert registry.is_control("step_failed") is True
        assert registry.is_control("browser_click") is False
        assert registry.is_control("nope") is False

    def test_duplicate_names_rejected(self):
        @tool("step_complete", args_schema=NoInput, response_format="content_and_artifact")
        async def clashing(config: RunnableConfig):
            """Clashes with the control tool of the same name."""
            raise AssertionError

        family = DomainToolFamily([clashing])
        with pytest.raises(ValueError, match="step_complete"):
            ToolRegistry([family, ControlTools()])

    def test_control_definitions_keep_camel_case_wire_names(self):
        definitions = {d["function"]["name"]: d["function"] for d in ControlTools().definitions}

        assert set(definitions) == {"step_complete", "step_failed", "test_complete"}
        assert set(definitions["step_failed"]["parameters"]["required"]) == {"stepId", "error"}
        assert "Signal that the current intent step has failed" in definitions["step_failed"]["description"]

    def test_wallet_definitions_use_snake_case(self):
        registry = create_default_registry()
        switch = next(d for d in registry.definitions if d["function"]["name"] == "wallet_switch_network")

        assert switch["function"]["parameters"]["required"] == ["network_name"]

    @pytest.mark.asyncio
    async def test_unknown_tool(self, ctx):
        result = await create_default_registry().execute("browser_teleport", {}, ctx)

        assert result.success is False
        assert result.output == "Unknown tool: browser_teleport"

    @pytest.mark.asyncio
    async def test_control_tool_through_registry(self, ctx):
        result = await create_default_registry().execute("step_complete", {"stepId": "s1", "summary": "ok"}, ctx)
        assert isinstance(result.control_signal, StepCompleteSignal)


class TestBrowserTools:
    """Tests for browser domain tools."""

    @pytest.mark.asyncio
    async def test_click_resolves_ref_and_captures_before(self, ctx, page):
        await refresh_snapshot(ctx)

        result = await create_default_registry().execute(
            "browser_click", {"ref": "s1e3", "description": "connect"}, ctx
        )

        assert result.success is True
        assert 'button "Connect Wallet"' in result.output
        page.get_by_role.assert_called_with("button", name="Connect Wallet", exact=True)
        page.get_by_role.return_value.click.assert_awaited_once()
        assert result.screenshot_before == "run-action-1-click-Connect_Wallet.png"
        assert (ctx.artifacts_dir / result.screenshot_before).exists()

    @pytest.mark.asyncio
    async def test_click_with_stale_ref_fails(self, ctx, page):
        await refresh_snapshot(ctx)
        await refresh_snapshot(ctx)

        result = await create_default_registry().execute(
            "browser_click", {"ref": "s1e3", "description": "connect"}, ctx
        )

        assert result.success is False
        assert "not found in current snapshot" in result.output
        page.get_by_role.return_value.click.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invalid_input(self, ctx):
        result = await create_default_registry().execute("browser_navigate", {}, ctx)

        assert result.success is False
        assert result.output.startswith("Invalid input for browser_navigate")

    @pytest.mark.asyncio
    async def test_handler_exception_becomes_failed_result(self, ctx, page):
        page.goto.side_effect = RuntimeError("net::ERR_NAME_NOT_RESOLVED")

        result = await create_default_registry().execute("browser_navigate", {"url": "https://nope.invalid"}, ctx)

        assert result.success is False
        assert result.output == "Tool browser_navigate failed: net::ERR_NAME_NOT_RESOLVED"

    @pytest.mark.asyncio
    async def test_assert_wallet_connected(self, ctx, page):
        page.evaluate.return_value = "0xAbC0000000000000000000000000000000000001"
        result = await create_default_registry().execute("assert_wallet_connected", {}, ctx)
        assert result.success is True

        page.evaluate.return_value = None
        result = await create_default_registry().execute("assert_wallet_connected", {}, ctx)
        assert result.success is False
        assert "NOT connected" in result.output

    @pytest.mark.asyncio
    async def test_wait_sleep_is_capped(self, ctx, page):
        result = await create_default_registry().execute("browser_wait", {"sleep": 120_000}, ctx)

        assert result.output == "Waited 30000ms"
        page.wait_for_timeout.assert_awaited_once_with(30_000)


class TestWalletTools:
    """Tests for wallet domain tools."""

    @pytest.mark.asyncio
    async def test_switch_network_then_refocus(self, ctx, page, wallet):
        result = await create_default_registry().execute("wallet_switch_network", {"network_name": "Base"}, ctx)

        assert result.success is True
        wallet.switch_network.assert_awaited_once_with("Base")
        page.bring_to_front.assert_awaited()

    @pytest.mark.asyncio
    async def test_confirm_transaction_passes_gas(self, ctx, wallet):
        await create_default_registry().execute("wallet_confirm_transaction", {"gas": 5, "gas_limit": 21000}, ctx)

        wallet.confirm_transaction.assert_awaited_once_with(gas=5, gas_limit=21000)

    @pytest.mark.asyncio
    async def test_wallet_failure_is_reported(self, ctx, wallet):
        wallet.approve.side_effect = TimeoutError("popup never appeared")

        result = await create_default_registry().execute("wallet_approve", {}, ctx)

        assert result.success is False
        assert "popup never appeared" in result.output
