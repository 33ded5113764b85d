"""Tests for wallet popup polling and MetaMask popup lookup."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from dapp_agent.wallet import MetaMaskPopupWallet, WalletPopupNotFound
from dapp_agent.wallet.popup import poll_until, wait_for_wallet_popup


def fake_page(url: str) -> MagicMock:
    page = MagicMock(name=url)
    page.url = url
    page.is_closed = MagicMock(return_value=False)
    return page


class TestPollUntil:
    """Tests for poll_until."""

    @pytest.mark.asyncio
    async def test_returns_first_truthy_result(self):
        check = AsyncMock(side_effect=[None, None, "popup"])

        assert await poll_until(check, timeout=5, interval=0.001) == "popup"
        assert check.await_count == 3

    @pytest.mark.asyncio
    async def test_times_out(self):
        check = AsyncMock(return_value=None)

        assert await poll_until(check, timeout=0.05, interval=0.01) is None
        assert check.await_count >= 2

    @pytest.mark.asyncio
    async def test_cancelled_before_start(self):
        cancel = asyncio.Event()
        cancel.set()
        check = AsyncMock(return_value="popup")

        assert await poll_until(check, timeout=5, interval=0.01, cancel=cancel) is None
        check.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cancel_wakes_the_wait(self):
        cancel = asyncio.Event()
        check = AsyncMock(return_value=None)

        async def cancel_soon():
            await asyncio.sleep(0.01)
            cancel.set()

        started = asyncio.get_running_loop().time()
        _, result = await asyncio.gather(cancel_soon(), poll_until(check, timeout=10, interval=5, cancel=cancel))

        assert result is None
        assert asyncio.get_running_loop().time() - started < 2


class TestWaitForWalletPopup:
    """Tests for wallet popup discovery."""

    @pytest.mark.asyncio
    async def test_finds_notification_page(self):
        context = MagicMock()
        popup = fake_page("chrome-extension://abc/notification.html#connect")
        context.pages = [fake_page("https://app.example.com"), popup]

        assert await wait_for_wallet_popup(context, timeout=1, interval=0.01) is popup

    @pytest.mark.asyncio
    async def test_ignores_extension_home_page(self):
        context = MagicMock()
        context.pages = [fake_page("chrome-extension://abc/home.html")]

        assert await wait_for_wallet_popup(context, timeout=0.03, interval=0.01) is None


class TestMetaMaskPopupWallet:
    """Tests for MetaMaskPopupWallet."""

    @pytest.mark.asyncio
    async def test_missing_popup_raises(self):
        context = MagicMock()
        context.pages = [fake_page("https://app.example.com")]
        wallet = MetaMaskPopupWallet(context, popup_timeout=0.03, poll_interval=0.01)

        with pytest.raises(WalletPopupNotFound):
            await wallet.approve()

    @pytest.mark.asyncio
    async def test_cancelled_wait_raises_without_polling_long(self):
        context = MagicMock()
        context.pages = []
        cancel = asyncio.Event()
        cancel.set()
        wallet = MetaMaskPopupWallet(context, popup_timeout=30, poll_interval=10, cancel=cancel)

        with pytest.raises(WalletPopupNotFound):
            await wallet.sign()

    def test_extension_id_from_service_worker(self):
        context = MagicMock()
        context.pages = [fake_page("https://app.example.com")]
        worker = MagicMock()
        worker.url = "chrome-extension://nkbihfbeogaeaoehlefnkodbefgpgknn/scripts/background.js"
        context.service_workers = [worker]

        assert MetaMaskPopupWallet(context)._extension_id() == "nkbihfbeogaeaoehlefnkodbefgpgknn"
