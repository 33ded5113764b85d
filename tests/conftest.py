"""Shared fixtures: Playwright page doubles and a scripted chat model."""

import os
from pathlib import Path
from typing import Any, Callable, Optional, Union
from unittest.mock import AsyncMock, MagicMock

import pytest
from langchain_core.messages import AIMessage

from dapp_agent.agent.types import AgentConfig, AgentContext, IntentStep

os.environ.setdefault("LOG_LEVEL", "WARNING")

APP_TREE = {
    "role": "WebArea",
    "name": "Example App",
    "children": [
        {"role": "heading", "name": "Welcome"},
        {"role": "button", "name": "Connect Wallet"},
        {
            "role": "generic",
            "children": [
                {"role": "textbox", "name": "Amount", "value": "5"},
                {"role": "button", "name": "Connect Wallet"},
            ],
        },
    ],
}


def _write_png(path: Optional[str] = None, **kwargs) -> bytes:
    if path:
        Path(path).write_bytes(b"\x89PNG")
    return b"\x89PNG"


def make_locator() -> MagicMock:
    locator = MagicMock(name="locator")
    for method in ("click", "fill", "clear", "select_option", "evaluate", "wait_for"):
        setattr(locator, method, AsyncMock())
    locator.nth = MagicMock(return_value=locator)
    locator.first = locator
    return locator


def make_page(url: str = "https://example.com/app", title: str = "Example App", tree: Optional[dict] = None) -> MagicMock:
    """Page double: async Playwright methods are AsyncMocks, locator factories are plain mocks."""
    page = MagicMock(name="page")
    page.url = url
    page.goto = AsyncMock()
    page.go_back = AsyncMock()
    page.wait_for_timeout = AsyncMock()
    page.screenshot = AsyncMock(side_effect=_write_png)
    page.title = AsyncMock(return_value=title)
    page.evaluate = AsyncMock(return_value=None)
    page.bring_to_front = AsyncMock()
    page.is_closed = MagicMock(return_value=False)
    page.mouse.wheel = AsyncMock()
    page.keyboard.press = AsyncMock()
    page.accessibility.snapshot = AsyncMock(return_value=tree)
    # No CDP in tests: the fallback fails and the snapshot is empty
    page.context.new_cdp_session = AsyncMock(side_effect=RuntimeError("no CDP"))

    locator = make_locator()
    page.get_by_role = MagicMock(return_value=locator)
    page.get_by_text = MagicMock(return_value=locator)
    return page


@pytest.fixture
def page():
    return make_page(tree=APP_TREE)


@pytest.fixture
def wallet():
    wallet = MagicMock(name="wallet")
    for method in ("approve", "sign", "confirm_transaction", "switch_network", "reject"):
        setattr(wallet, method, AsyncMock())
    return wallet


@pytest.fixture
def ctx(page, wallet, tmp_path):
    browser_context = MagicMock(name="browser_context")
    browser_context.pages = [page]
    return AgentContext(
        page=page,
        context=browser_context,
        wallet=wallet,
        artifacts_dir=tmp_path / "artifacts",
    )


@pytest.fixture
def agent_config():
    return AgentConfig(
        model="gpt-4o-mini",
        max_api_calls=10,
        max_calls_per_step=5,
        step_timeout_ms=60_000,
        capture_step_screenshots=False,
        api_key="sk-test",
    )


def make_step(step_id: str, step_type: str, description: str = "", context: Optional[dict] = None) -> IntentStep:
    return IntentStep(
        id=step_id,
        type=step_type,
        description=description or f"{step_type} step",
        context=context,
    )


_call_ids = iter(range(1, 1_000_000))


def tool_call(name: str, args: Optional[dict[str, Any]] = None, *extra: tuple[str, dict]) -> AIMessage:
    """AIMessage selecting ``name``; ``extra`` adds further (name, args) calls to the same turn."""
    calls = [(name, args or {}), *extra]
    return AIMessage(
        content="",
        tool_calls=[
            {"name": n, "args": a, "id": f"call_{next(_call_ids)}", "type": "tool_call"} for n, a in calls
        ],
        usage_metadata={"input_tokens": 1000, "output_tokens": 50, "total_tokens": 1050},
    )


def text_reply(content: str = "Let me think about this.") -> AIMessage:
    return AIMessage(
        content=content,
        usage_metadata={"input_tokens": 800, "output_tokens": 20, "total_tokens": 820},
    )


Scripted = Union[AIMessage, Exception, Callable[[], AIMessage]]


class FakeChatModel:
    """
    Chat model double returning scripted responses in order.

    An Exception item is raised instead of returned; a callable item is called
    to produce the response. With ``repeat_last`` the final item is reused
    forever.
    """

    def __init__(self, responses: list[Scripted], repeat_last: bool = False):
        self.responses = list(responses)
        self.repeat_last = repeat_last
        self.calls: list[list] = []
        self.bound_tools: Optional[list] = None
        self.bind_kwargs: dict = {}

    def bind_tools(self, tools, **kwargs):
        self.bound_tools = tools
        self.bind_kwargs = kwargs
        return self

    async def ainvoke(self, messages, *args, **kwargs) -> AIMessage:
        self.calls.append(list(messages))
        if not self.responses:
            raise AssertionError("FakeChatModel ran out of scripted responses")
        item = self.responses[0] if self.repeat_last and len(self.responses) == 1 else self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        if callable(item):
            return item()
        return item
