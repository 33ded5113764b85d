"""The wallet-automation surface the executor and wallet tools depend on."""

from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class WalletAutomation(Protocol):
    """
    Approve / sign / switch-network primitives of a browser wallet.

    Each call handles its own popup: it waits for the wallet window, clicks
    through it, and raises if the popup never shows up or cannot be completed.
    """

    async def approve(self) -> None:
        ...

    async def sign(self) -> None:
        ...

    async def confirm_transaction(self, gas: Optional[int] = None, gas_limit: Optional[int] = None) -> None:
        ...

    async def switch_network(self, network_name: str) -> None:
        ...

    async def reject(self) -> None:
        ...


class WalletPopupNotFound(RuntimeError):
    """The wallet never opened a popup for the pending request."""
