"""Obstacles, blocked actions and recovery strategies."""

ERROR_RECOVERY_GUIDE = """## Dealing with Obstacles
- Cookie banners, terms dialogs and welcome modals: dismiss them before proceeding
- Typical dismiss buttons: "Accept", "Close", "X", "Got it", "Dismiss", "I agree"
- If a dialog has an "I agree to terms" checkbox, check it, then submit
- Do NOT fail a step just because an unexpected dialog appeared

## Disabled Buttons and Blocked Actions
If a button you need (e.g., "Place Order", "Swap") is DISABLED:
1. Look at the surrounding UI for error messages, toggles and required fields
2. Enable the toggles or checkboxes the action depends on
3. Adjust input values (amount, leverage, slippage) if they are out of range
4. Look for prerequisite actions such as a token approval
5. Use browser_evaluate to inspect the button's disabled state and nearby error text
If the dApp shows "Add Funds" instead of the action, the wallet likely lacks balance: say so in the step summary.

## Error Recovery
- "Ref ... is not in the current snapshot": use a ref from the latest snapshot
- A click failed: find the element again in the new snapshot and retry once
- A wallet tool failed: wait briefly and retry once
- Stuck after 3 attempts: call step_failed with a clear error

## Step Completion
- Call step_complete as soon as the step's goal is achieved
- Call step_failed if the goal cannot be achieved after reasonable attempts
- Call test_complete only to end the whole test early (unrecoverable state, or the test outcome is already decided)
- Be EFFICIENT: every turn costs an API call"""
