"""MetaMask automation through its notification popups.

Expects a browser context launched with the MetaMask extension and an already
onboarded profile. Selectors target MetaMask 12/13 extension pages.
"""

import asyncio
import re
from typing import Any, Optional

from dapp_agent.agent.networks import chain_id_for
from dapp_agent.utils.logger import setup_logger
from dapp_agent.wallet.base import WalletPopupNotFound
from dapp_agent.wallet.popup import (
    POPUP_POLL_INTERVAL_S,
    POPUP_TIMEOUT_S,
    find_wallet_popup,
    wait_for_wallet_popup,
)

logger = setup_logger(__name__)

CONFIRM_TEST_IDS = ("confirm-footer-button", "confirm-btn", "page-container-footer-next")
CANCEL_TEST_IDS = ("cancel-btn", "page-container-footer-cancel", "confirm-footer-cancel-button")
SCROLL_TEST_IDS = ("confirm-scroll-to-bottom", "signature-request-scroll-button")


class MetaMaskPopupWallet:
    """WalletAutomation implementation for MetaMask running in Chromium."""

    def __init__(
        self,
        context: Any,
        popup_timeout: float = POPUP_TIMEOUT_S,
        poll_interval: float = POPUP_POLL_INTERVAL_S,
        cancel: Optional[asyncio.Event] = None,
    ):
        self.context = context
        self.popup_timeout = popup_timeout
        self.poll_interval = poll_interval
        self.cancel = cancel

    async def _popup(self) -> Any:
        # The popup often opens before the caller gets here
        popup = find_wallet_popup(self.context) or await wait_for_wallet_popup(
            self.context, self.popup_timeout, self.poll_interval, self.cancel
        )
        if popup is None:
            raise WalletPopupNotFound(
                f"MetaMask popup did not appear within {self.popup_timeout:.0f}s"
            )
        await popup.bring_to_front()
        await popup.wait_for_load_state("domcontentloaded")
        return popup

    async def _click_first_visible(self, popup: Any, test_ids: tuple[str, ...], name: re.Pattern) -> bool:
        for test_id in test_ids:
            button = popup.get_by_test_id(test_id)
            if await button.count() and await button.first.is_visible():
                await button.first.click(timeout=5000)
                return True

        button = popup.get_by_role("button", name=name)
        if await button.count() and await button.first.is_visible():
            await button.first.click(timeout=5000)
            return True
        return False

    async def _wait_closed(self, popup: Any, timeout_ms: int = 15_000) -> None:
        if popup.is_closed():
            return
        try:
            await popup.wait_for_event("close", timeout=timeout_ms)
        except Exception as e:
            logger.debug(f"Popup still open after confirm: {e}")

    async def approve(self) -> None:
        popup = await self._popup()
        # Connection flow can be one or two screens (account select → permissions)
        for _ in range(2):
            if popup.is_closed():
                break
            clicked = await self._click_first_visible(
                popup, CONFIRM_TEST_IDS, re.compile(r"^(next|connect|confirm)$", re.IGNORECASE)
            )
            if not clicked:
                break
            await asyncio.sleep(0.5)
        await self._wait_closed(popup)
        logger.info("MetaMask connection approved")

    async def sign(self) -> None:
        popup = await self._popup()
        for test_id in SCROLL_TEST_IDS:
            scroll = popup.get_by_test_id(test_id)
            if await scroll.count() and await scroll.first.is_visible():
                await scroll.first.click()
                break

        if not await self._click_first_visible(popup, CONFIRM_TEST_IDS, re.compile(r"sign|confirm", re.IGNORECASE)):
            raise RuntimeError("MetaMask signature popup has no Sign/Confirm button")
        await self._wait_closed(popup)
        logger.info("MetaMask signature confirmed")

    async def confirm_transaction(self, gas: Optional[int] = None, gas_limit: Optional[int] = None) -> None:
        popup = await self._popup()
        if gas is not None or gas_limit is not None:
            logger.warning("Gas overrides are not applied through the MetaMask popup; using wallet defaults")
        if not await self._click_first_visible(popup, CONFIRM_TEST_IDS, re.compile(r"confirm", re.IGNORECASE)):
            raise RuntimeError("MetaMask transaction popup has no Confirm button")
        await self._wait_closed(popup, timeout_ms=30_000)
        logger.info("MetaMask transaction confirmed")

    async def reject(self) -> None:
        popup = await self._popup()
        if not await self._click_first_visible(popup, CANCEL_TEST_IDS, re.compile(r"reject|cancel", re.IGNORECASE)):
            await popup.close()
        logger.info("MetaMask request rejected")

    async def switch_network(self, network_name: str) -> None:
        """
        Switch through the wallet home page network picker.

        Used when the dApp-side provider request is unavailable or refused.
        """
        extension_id = self._extension_id()
        if extension_id is None:
            raise RuntimeError("MetaMask extension page not found in browser context")

        page = await self.context.new_page()
        try:
            await page.goto(f"chrome-extension://{extension_id}/home.html")
            await page.get_by_test_id("network-display").click(timeout=10_000)
            await page.get_by_text(network_name, exact=True).first.click(timeout=10_000)
            await page.wait_for_timeout(1000)
        finally:
            await page.close()

        if chain_id_for(network_name) is None:
            logger.info(f"Switched MetaMask to unlisted network {network_name}")
        else:
            logger.info(f"Switched MetaMask to {network_name}")

    def _extension_id(self) -> Optional[str]:
        for page in self.context.pages:
            match = re.match(r"chrome-extension://([a-z]+)/", page.url)
            if match:
                return match.group(1)
        for worker in getattr(self.context, "service_workers", []):
            match = re.match(r"chrome-extension://([a-z]+)/", worker.url)
            if match:
                return match.group(1)
        return None
