"""Wallet tools: click through wallet popups on the agent's behalf."""

from typing import Optional

from langchain_core.runnables import RunnableConfig
from langchain_core.tools import tool
from pydantic import BaseModel, Field

from dapp_agent.agent.tools.base import DomainToolFamily, context_from, reply
from dapp_agent.agent.types import AgentContext
from dapp_agent.utils.logger import setup_logger

logger = setup_logger(__name__)

SETTLE_MS = 1500


class ConfirmTransactionInput(BaseModel):
    gas: Optional[int] = Field(default=None, description="Optional gas price override")
    gas_limit: Optional[int] = Field(default=None, description="Optional gas limit override")


class SwitchNetworkInput(BaseModel):
    network_name: str = Field(description='Network name as shown in the wallet (e.g., "Base", "Arbitrum One")')


class NoInput(BaseModel):
    pass


async def _back_to_dapp(ctx: AgentContext) -> None:
    """Return focus to the dApp page once the popup is handled."""
    try:
        await ctx.page.bring_to_front()
        await ctx.page.wait_for_timeout(SETTLE_MS)
    except Exception as e:
        logger.debug(f"Could not refocus dApp page: {e}")


@tool("wallet_approve", args_schema=NoInput, response_format="content_and_artifact")
async def wallet_approve(config: RunnableConfig):
    """Approve a pending wallet connection request in the wallet popup. Call after clicking the dApp's Connect button and choosing the wallet."""
    ctx = context_from(config)
    await ctx.wallet.approve()
    await _back_to_dapp(ctx)
    return reply(True, "Wallet connection approved")


@tool("wallet_sign", args_schema=NoInput, response_format="content_and_artifact")
async def wallet_sign(config: RunnableConfig):
    """Sign a pending message (personal_sign / typed data / SIWE) in the wallet popup."""
    ctx = context_from(config)
    await ctx.wallet.sign()
    await _back_to_dapp(ctx)
    return reply(True, "Message signed in wallet")


@tool("wallet_confirm_transaction", args_schema=ConfirmTransactionInput, response_format="content_and_artifact")
async def wallet_confirm_transaction(
    config: RunnableConfig,
    gas: Optional[int] = None,
    gas_limit: Optional[int] = None,
):
    """Confirm a pending transaction in the wallet popup."""
    ctx = context_from(config)
    await ctx.wallet.confirm_transaction(gas=gas, gas_limit=gas_limit)
    await _back_to_dapp(ctx)
    return reply(True, "Transaction confirmed in wallet")


@tool("wallet_switch_network", args_schema=SwitchNetworkInput, response_format="content_and_artifact")
async def wallet_switch_network(network_name: str, config: RunnableConfig):
    """Switch the wallet to another network by name."""
    ctx = context_from(config)
    await ctx.wallet.switch_network(network_name)
    await _back_to_dapp(ctx)
    return reply(True, f"Switched wallet to {network_name}")


@tool("wallet_reject", args_schema=NoInput, response_format="content_and_artifact")
async def wallet_reject(config: RunnableConfig):
    """Reject the pending wallet request."""
    ctx = context_from(config)
    await ctx.wallet.reject()
    await _back_to_dapp(ctx)
    return reply(True, "Wallet request rejected")


WALLET_TOOLS = [
    wallet_approve,
    wallet_sign,
    wallet_confirm_transaction,
    wallet_switch_network,
    wallet_reject,
]


def create_wallet_tools() -> DomainToolFamily:
    return DomainToolFamily(WALLET_TOOLS)
