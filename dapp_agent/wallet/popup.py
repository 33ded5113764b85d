"""Waiting for wallet popups without busy polling."""

import asyncio
from typing import Any, Awaitable, Callable, Optional, TypeVar

from dapp_agent.utils.logger import setup_logger

logger = setup_logger(__name__)

T = TypeVar("T")

POPUP_TIMEOUT_S = 10.0
POPUP_POLL_INTERVAL_S = 0.5


async def poll_until(
    check: Callable[[], Awaitable[Optional[T]]],
    timeout: float,
    interval: float,
    cancel: Optional[asyncio.Event] = None,
) -> Optional[T]:
    """
    Call ``check`` until it returns something truthy.

    Bounded by ``timeout`` seconds; one suspension point per iteration. A set
    ``cancel`` event stops the wait early. Returns None on timeout or cancel.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout

    while True:
        if cancel is not None and cancel.is_set():
            logger.debug("Popup wait cancelled")
            return None

        found = await check()
        if found:
            return found

        remaining = deadline - loop.time()
        if remaining <= 0:
            return None

        if cancel is None:
            await asyncio.sleep(min(interval, remaining))
        else:
            try:
                await asyncio.wait_for(cancel.wait(), timeout=min(interval, remaining))
            except asyncio.TimeoutError:
                pass  # interval elapsed, poll again


def is_wallet_popup(page: Any) -> bool:
    try:
        url = page.url
        return url.startswith("chrome-extension://") and "notification" in url and not page.is_closed()
    except Exception:
        return False


def find_wallet_popup(context: Any) -> Optional[Any]:
    """An already-open wallet notification page, if any."""
    for page in context.pages:
        if is_wallet_popup(page):
            return page
    return None


async def wait_for_wallet_popup(
    context: Any,
    timeout: float = POPUP_TIMEOUT_S,
    interval: float = POPUP_POLL_INTERVAL_S,
    cancel: Optional[asyncio.Event] = None,
) -> Optional[Any]:
    """Wait for a wallet notification page to appear in ``context``."""

    async def check():
        return find_wallet_popup(context)

    popup = await poll_until(check, timeout, interval, cancel)
    if popup is None:
        logger.debug(f"No wallet popup within {timeout}s")
    return popup
