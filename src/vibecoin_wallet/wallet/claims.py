"""Fee and vesting claim definitions.

Claiming accumulated trading fees costs gas. A creator whose wallet holds
no native balance cannot pay it, so the claim is signed locally and handed
to the launch service, which submits it and pays the gas. Only the
signature leaves the machine.
"""

from __future__ import annotations

import time
from enum import Enum


class FeeClaimMethod(str, Enum):
    DIRECT = "direct"
    SPONSORED = "sponsored"


def decide_fee_claim(balance_wei: int) -> FeeClaimMethod:
    """Pick how to claim fees given the wallet's native balance in wei."""
    if balance_wei < 0:
        raise ValueError("balance cannot be negative")
    return FeeClaimMethod.DIRECT if balance_wei > 0 else FeeClaimMethod.SPONSORED


def now_ms() -> int:
    return int(time.time() * 1000)


def fee_claim_message(address: str, timestamp_ms: int | None = None) -> str:
    """Message a wallet signs to authorize a sponsored fee claim."""
    ts = now_ms() if timestamp_ms is None else timestamp_ms
    return f"Collect fees for {address}\nTimestamp: {ts}"


def launch_message(name: str, symbol: str, creator: str, timestamp_ms: int) -> str:
    """Message a wallet signs to request a coin launch."""
    return (
        f"Launch coin on Billionaire\n\n"
        f"Name: {name}\n"
        f"Symbol: {symbol}\n"
        f"Creator: {creator}\n"
        f"Timestamp: {timestamp_ms}"
    )


# ---------------------------------------------------------------------------
# Contract ABIs (only the entries this package calls)
# ---------------------------------------------------------------------------

FEE_HOOK_ABI: list[dict] = [
    {
        "type": "function",
        "name": "claimFees",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "recipient", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
]

VESTING_ABI: list[dict] = [
    {
        "type": "function",
        "name": "claim",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "token", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "function",
        "name": "getVestingInfo",
        "stateMutability": "view",
        "inputs": [{"name": "token", "type": "address"}],
        "outputs": [
            {"name": "beneficiary", "type": "address"},
            {"name": "totalAmount", "type": "uint256"},
            {"name": "releasedAmount", "type": "uint256"},
            {"name": "releasableAmount", "type": "uint256"},
            {"name": "startTime", "type": "uint256"},
            {"name": "duration", "type": "uint256"},
        ],
    },
]
