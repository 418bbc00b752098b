"""Networks the wallet can sign for.

Coins launch on Ethereum mainnet; Base and the two Sepolia testnets are
kept for trying flows without real funds.
"""

from __future__ import annotations

from dataclasses import dataclass, replace


@dataclass(frozen=True)
class Chain:
    """An EVM network plus the endpoints the wallet talks to."""

    name: str
    chain_id: int
    rpc_url: str
    explorer_url: str
    native_symbol: str = "ETH"
    testnet: bool = False

    @property
    def needs_poa_middleware(self) -> bool:
        return self.chain_id != 1

    def tx_url(self, tx_hash: str) -> str:
        return f"{self.explorer_url}/tx/{tx_hash}"

    def with_rpc(self, rpc_url: str | None) -> Chain:
        """Same network, different RPC endpoint. ``None`` keeps the default."""
        if not rpc_url:
            return self
        return replace(self, rpc_url=rpc_url)


_KNOWN = (
    Chain("ethereum", 1, "https://eth.llamarpc.com", "https://etherscan.io"),
    Chain("base", 8453, "https://mainnet.base.org", "https://basescan.org"),
    Chain(
        "sepolia",
        11155111,
        "https://ethereum-sepolia-rpc.publicnode.com",
        "https://sepolia.etherscan.io",
        testnet=True,
    ),
    Chain(
        "base-sepolia",
        84532,
        "https://sepolia.base.org",
        "https://sepolia.basescan.org",
        testnet=True,
    ),
)

CHAINS: dict[str, Chain] = {c.name: c for c in _KNOWN}


def get_chain(name: str) -> Chain:
    """Look up a network by name. Raises ``KeyError`` for unknown names."""
    try:
        return CHAINS[name]
    except KeyError:
        raise KeyError(f"Unknown chain '{name}'. Available: {', '.join(list_chain_names())}") from None


def list_chain_names() -> list[str]:
    return sorted(CHAINS)
