"""Web3 chain client for reading balances and broadcasting signed transactions.

The provider never sees key material: transactions are built here, signed
by an :class:`~vibecoin_wallet.wallet.session.AccountSession`, and handed
back as raw bytes for broadcast.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Sequence

from web3 import Web3
from web3.exceptions import TimeExhausted
from web3.middleware import ExtraDataToPOAMiddleware

from vibecoin_wallet.wallet.chains import Chain
from vibecoin_wallet.wallet.errors import ConfirmationTimeout, NetworkError, redact

logger = logging.getLogger("vibecoin_wallet.wallet.provider")

DEFAULT_CONFIRMATION_TIMEOUT = 120.0


@dataclass(frozen=True)
class Receipt:
    """The parts of a mined transaction's receipt callers care about."""

    hash: str
    block_number: int
    status: int = 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "transactionHash": self.hash,
            "blockNumber": self.block_number,
            "status": self.status,
        }


def _hex(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    text = value.hex() if hasattr(value, "hex") else str(value)
    return text if text.startswith("0x") else "0x" + text


def _network_error(action: str, exc: Exception) -> NetworkError:
    return NetworkError(f"{action} failed: {redact(str(exc))}")


class Web3Provider:
    """Manages a Web3 connection to one EVM chain."""

    def __init__(self, chain: Chain, web3: Web3 | None = None) -> None:
        self.chain = chain
        self._w3 = web3

    @property
    def w3(self) -> Web3:
        """Return a (cached) Web3 instance for the configured chain.

        Injects POA middleware for non-mainnet chains.
        """
        if self._w3 is None:
            w3 = Web3(Web3.HTTPProvider(self.chain.rpc_url))
            if self.chain.needs_poa_middleware:
                w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
            self._w3 = w3
        return self._w3

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    def is_address(address: str) -> bool:
        return isinstance(address, str) and Web3.is_address(address)

    @staticmethod
    def to_wei(amount_ether: str | Decimal) -> int:
        return int(Web3.to_wei(Decimal(str(amount_ether)), "ether"))

    @staticmethod
    def from_wei(amount_wei: int) -> Decimal:
        return Decimal(str(Web3.from_wei(amount_wei, "ether")))

    def get_balance_wei(self, address: str) -> int:
        """Native token balance of *address* in wei."""
        try:
            return int(self.w3.eth.get_balance(Web3.to_checksum_address(address)))
        except Exception as exc:
            raise _network_error("Balance query", exc) from None

    def call_view(self, contract_address: str, abi: list[dict], fn_name: str, args: Sequence[Any]) -> Any:
        """Call a read-only contract function."""
        try:
            contract = self.w3.eth.contract(address=Web3.to_checksum_address(contract_address), abi=abi)
            return getattr(contract.functions, fn_name)(*args).call()
        except Exception as exc:
            raise _network_error(f"Contract call {fn_name}", exc) from None

    # ------------------------------------------------------------------
    # Transaction building
    # ------------------------------------------------------------------

    def _apply_fees(self, tx: dict) -> dict:
        """Fill gas fields. Uses EIP-1559 fee parameters with a legacy gas price fallback."""
        w3 = self.w3
        try:
            latest = w3.eth.get_block("latest")
            base_fee = latest.get("baseFeePerGas")
            if base_fee is not None:
                max_priority = Web3.to_wei(1.5, "gwei")
                tx["maxFeePerGas"] = base_fee * 2 + max_priority
                tx["maxPriorityFeePerGas"] = max_priority
                tx["gas"] = w3.eth.estimate_gas(tx)
            else:
                raise ValueError("No baseFeePerGas")
        except Exception:
            tx.pop("maxFeePerGas", None)
            tx.pop("maxPriorityFeePerGas", None)
            tx["gasPrice"] = w3.eth.gas_price
            tx["gas"] = w3.eth.estimate_gas(tx)
        return tx

    def build_transfer(self, sender: str, to_address: str, value_wei: int) -> dict:
        """Build an unsigned native-token transfer from *sender*."""
        try:
            sender = Web3.to_checksum_address(sender)
            tx: dict = {
                "from": sender,
                "to": Web3.to_checksum_address(to_address),
                "value": int(value_wei),
                "nonce": self.w3.eth.get_transaction_count(sender),
                "chainId": self.chain.chain_id,
            }
            return self._apply_fees(tx)
        except Exception as exc:
            raise _network_error("Building transfer", exc) from None

    def build_contract_call(
        self,
        contract_address: str,
        abi: list[dict],
        fn_name: str,
        args: Sequence[Any],
        sender: str,
    ) -> dict:
        """Build an unsigned state-changing contract call from *sender*."""
        try:
            sender = Web3.to_checksum_address(sender)
            contract = self.w3.eth.contract(address=Web3.to_checksum_address(contract_address), abi=abi)
            fn = getattr(contract.functions, fn_name)(*args)
            tx = fn.build_transaction({
                "from": sender,
                "nonce": self.w3.eth.get_transaction_count(sender),
                "chainId": self.chain.chain_id,
            })
            return tx
        except Exception as exc:
            raise _network_error(f"Building {fn_name} call", exc) from None

    # ------------------------------------------------------------------
    # Broadcast
    # ------------------------------------------------------------------

    def send_raw_transaction(self, raw: bytes) -> str:
        """Broadcast a signed transaction. Returns its hash; never retries."""
        try:
            tx_hash = self.w3.eth.send_raw_transaction(raw)
        except Exception as exc:
            raise _network_error("Broadcast", exc) from None
        return _hex(tx_hash)

    def wait_for_receipt(self, tx_hash: str, timeout: float = DEFAULT_CONFIRMATION_TIMEOUT) -> Receipt:
        """Block until *tx_hash* is mined or *timeout* seconds pass."""
        try:
            receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
        except TimeExhausted:
            raise ConfirmationTimeout(tx_hash, timeout) from None
        except Exception as exc:
            raise _network_error("Waiting for confirmation", exc) from None
        return Receipt(
            hash=_hex(receipt["transactionHash"]),
            block_number=int(receipt["blockNumber"]),
            status=int(receipt.get("status", 1)),
        )
