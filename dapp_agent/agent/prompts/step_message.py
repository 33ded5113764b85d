"""Per-step user message: goal, progress, prior results and instructions."""

import json
from typing import Optional, Sequence

from dapp_agent.agent.types import IntentStep

UPCOMING_PREVIEW = 3

STEP_INSTRUCTIONS: dict[str, str] = {
    "connect_wallet": """### Wallet Connection Instructions
1. Find and click the dApp's login/connect button
2. Go through the wallet selection modal ("Continue with a wallet", then "MetaMask")
3. IMMEDIATELY call wallet_approve after clicking MetaMask
4. Call assert_wallet_connected to verify
5. Call step_complete when verified""",
    "sign_message": """### Signature Instructions
1. Trigger the signature request from the dApp if it is not already pending
2. Call wallet_sign
3. Check the next snapshot for the dApp's signed-in state
4. Call step_complete""",
    "switch_network": """### Network Switch Instructions
1. Call wallet_switch_network with the correct network name
2. Do NOT reload the page, the dApp handles chainChanged by itself
3. Check the next snapshot for the updated network indicator
4. Call step_complete""",
    "verify_state": """### Verification Instructions
1. Call assert_wallet_connected to check the wallet connection
2. If connected, call step_complete with the wallet address
3. If not connected, call step_failed""",
    "confirm_transaction": """### Transaction Confirmation Instructions
1. Look for the specific button described in the goal (e.g., "Place Order", "Confirm Market Long")
2. Only click the button that matches the goal. Do NOT click:
   - "Enable" buttons (they toggle one-click trading / smart wallet mode)
   - "Add Funds" buttons (they redirect to funding flows)
   - disabled "Approve" buttons
3. If a confirmation modal appears, confirm it
4. When the MetaMask transaction popup appears, call wallet_confirm_transaction
5. Call step_complete when the transaction is submitted""",
    "fill_form": """### Form Fill Instructions
1. Previous steps are already done. Do NOT undo their work (e.g., do not click an enabled toggle again)
2. Fill ONLY the fields listed in the Context above, using browser_type with the field's ref
3. If browser_type does not stick on a React number input, set it with browser_evaluate:
   const el = document.querySelector('[data-testid="field-name"]');
   const setter = Object.getOwnPropertyDescriptor(window.HTMLInputElement.prototype, 'value').set;
   setter.call(el, '100');
   el.dispatchEvent(new Event('input', { bubbles: true }));
   el.dispatchEvent(new Event('change', { bubbles: true }));
4. Check the next snapshot shows the correct values
5. Call step_complete when all fields are filled""",
}

DEFAULT_INSTRUCTIONS = """### Instructions
1. Perform the actions needed to achieve the goal described above
2. If you encounter obstacles (dialogs, banners), dismiss them first
3. When the goal is achieved, call step_complete with a summary
4. If the step cannot be completed, call step_failed with the error"""


def build_step_message(
    step: IntentStep,
    all_steps: Sequence[IntentStep],
    index: int,
    test_type: str,
    dapp_url: str,
    completed_summaries: Optional[Sequence[str]] = None,
) -> str:
    """Opening message of a step's conversation."""
    lines = [
        f"## Current Intent Step (Step {index + 1}/{len(all_steps)})",
        f"**ID**: {step.id}",
        f"**Type**: {step.type_name}",
        f"**Goal**: {step.description}",
        f"**Test type**: {test_type}",
        f"**dApp URL**: {dapp_url}",
    ]

    if completed_summaries:
        lines.append("\n### Already Completed Steps (DO NOT undo these)")
        lines.extend(f"- {summary}" for summary in completed_summaries)

    if step.context:
        lines.append("\n### Context")
        for key, value in step.context.items():
            if isinstance(value, (dict, list)):
                lines.append(f"- {key}: {json.dumps(value, indent=2)}")
            else:
                lines.append(f"- {key}: {value}")

    upcoming = list(all_steps[index + 1 :])
    if upcoming:
        lines.append("\n### Upcoming Steps")
        lines.extend(f"- {s.description}" for s in upcoming[:UPCOMING_PREVIEW])
        if len(upcoming) > UPCOMING_PREVIEW:
            lines.append(f"- ... and {len(upcoming) - UPCOMING_PREVIEW} more")

    lines.append("")
    lines.append(STEP_INSTRUCTIONS.get(step.type_name, DEFAULT_INSTRUCTIONS))
    return "\n".join(lines)
