"""Wallet automation surface."""

from dapp_agent.wallet.base import WalletAutomation, WalletPopupNotFound
from dapp_agent.wallet.metamask import MetaMaskPopupWallet

__all__ = ["WalletAutomation", "WalletPopupNotFound", "MetaMaskPopupWallet"]
