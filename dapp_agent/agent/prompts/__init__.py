"""Prompt building blocks for the dApp test agent."""

from typing import Optional

from dapp_agent.agent.prompts.base import BASE_PROMPT
from dapp_agent.agent.prompts.browser_rules import BROWSER_RULES
from dapp_agent.agent.prompts.error_recovery import ERROR_RECOVERY_GUIDE
from dapp_agent.agent.prompts.step_message import build_step_message
from dapp_agent.agent.prompts.wallet_rules import WALLET_RULES

__all__ = [
    "BASE_PROMPT",
    "BROWSER_RULES",
    "WALLET_RULES",
    "ERROR_RECOVERY_GUIDE",
    "SYSTEM_PROMPT",
    "NUDGE_MESSAGE",
    "build_system_prompt",
    "build_step_message",
]

# Tools are described through bind_tools(), not repeated here
SYSTEM_PROMPT = "\n\n".join(
    [
        BASE_PROMPT,
        BROWSER_RULES,
        WALLET_RULES,
        ERROR_RECOVERY_GUIDE,
    ]
)

NUDGE_MESSAGE = (
    "Please continue working on the current step. Respond with exactly one tool call: "
    "perform the next action, or call step_complete / step_failed when done."
)


def build_system_prompt(dapp_context: Optional[str] = None) -> str:
    if not dapp_context:
        return SYSTEM_PROMPT
    return f"{SYSTEM_PROMPT}\n\n## dApp-Specific Context (from project)\n{dapp_context}"
