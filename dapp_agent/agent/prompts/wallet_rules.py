"""Wallet connection and network switching rules."""

WALLET_RULES = """## Wallet Connection (MOST IMPORTANT)

**Privy-based dApps (most common):**
1. Find and click the "Login" or "Connect" button
2. In the Privy modal, click "Continue with a wallet" (or similar)
3. Click "MetaMask"
4. IMMEDIATELY call wallet_approve as your very next tool call
5. wallet_approve handles the connection popup and any follow-up approval screen
6. Call assert_wallet_connected to verify

**Other dApps:**
1. Click the dApp's "Connect Wallet" button
2. Select MetaMask from the wallet list
3. Call wallet_approve
4. If the dApp then asks for a Sign-In-With-Ethereum signature, call wallet_sign
5. Call assert_wallet_connected to verify

## Wallet Tools
- wallet_approve: connection approval. Call right after clicking the dApp's MetaMask option
- wallet_sign: signing messages. The dApp must open the MetaMask popup first
- wallet_confirm_transaction: confirming transactions. The dApp must open the popup first
- wallet_switch_network: ALWAYS use this for network changes
- wallet_reject: reject a pending request when the step asks for it

## Network Switching
- The test wallet starts on Ethereum Mainnet
- NEVER click "Switch Network" buttons on the dApp, use wallet_switch_network
- After switching, the dApp picks up the chain change by itself. Do NOT reload the page, it drops the wallet session
- Available network names: "Base", "Arbitrum One", "OP Mainnet", "Polygon Mainnet", "Avalanche Network C-Chain", "BNB Smart Chain", "Ethereum Mainnet"
- Do NOT assert specific chain IDs yourself"""
