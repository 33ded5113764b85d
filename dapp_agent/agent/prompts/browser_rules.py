"""Rules for reading the snapshot and targeting elements."""

BROWSER_RULES = """## Accessibility Snapshots
- The snapshot lists interactive and landmark elements, each tagged with a ref like [ref=s3e5]
- Refs are only valid for the snapshot they came from: "s3e5" belongs to snapshot 3
- Always use refs from the LATEST snapshot; a ref from an older one is rejected
- If an element is missing from the snapshot it may be hidden, scrolled out of view or still loading:
  scroll, wait, or click the control that reveals it
- As a last resort use browser_evaluate to query the DOM directly

## Page Loading
- Real-time dApps have constant WebSocket activity, never wait for "networkidle"
- After navigation, use browser_wait with sleep: 3000 to let the page settle
- Wallet tools already include the waits they need

## Verification
- After a wallet connection ALWAYS call assert_wallet_connected (checks window.ethereum)
- After a form submission, check the next snapshot for the result
- Do NOT rely on visible text for wallet addresses"""
