"""Known EVM networks as the wallet names them."""

import re
from typing import Optional

NETWORK_CHAIN_IDS: dict[str, int] = {
    "Base": 8453,
    "Arbitrum One": 42161,
    "OP Mainnet": 10,
    "Polygon Mainnet": 137,
    "Avalanche Network C-Chain": 43114,
    "BNB Smart Chain": 56,
    "Ethereum Mainnet": 1,
}


def chain_id_for(network_name: str) -> Optional[int]:
    """Chain id for a network name, case-insensitive. None when unknown."""
    lowered = network_name.strip().lower()
    for name, chain_id in NETWORK_CHAIN_IDS.items():
        if name.lower() == lowered:
            return chain_id
    return None


def to_hex_chain_id(chain_id: int) -> str:
    return hex(chain_id)


def parse_chain_id(raw) -> Optional[int]:
    """Parse a provider chain id ("0x2105", "8453" or 8453)."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    text = str(raw).strip().lower()
    try:
        return int(text, 16) if text.startswith("0x") else int(text)
    except ValueError:
        return None


def find_network_in_text(text: str) -> Optional[str]:
    """
    Find a known network name mentioned in free text.

    Longer names are tried first so "OP Mainnet" is not shadowed by a shorter
    match inside another name.
    """
    for name in sorted(NETWORK_CHAIN_IDS, key=len, reverse=True):
        if re.search(rf"\b{re.escape(name)}\b", text, re.IGNORECASE):
            return name
    return None
