"""High-level wallet operations used by the CLI and other callers.

Every public method returns an :class:`OperationResult` and never raises.
Operations that need the private key unlock it with the password passed to
that call, use it once, and drop it before any confirmation wait or remote
submission.
"""

from __future__ import annotations

import logging
from decimal import Decimal, Inexact, InvalidOperation, localcontext
from typing import Any, Callable

from vibecoin_wallet.config import AppConfig
from vibecoin_wallet.wallet.api import RemoteApi
from vibecoin_wallet.wallet.chains import get_chain
from vibecoin_wallet.wallet.claims import (
    FEE_HOOK_ABI,
    VESTING_ABI,
    FeeClaimMethod,
    decide_fee_claim,
    fee_claim_message,
    launch_message,
    now_ms,
)
from vibecoin_wallet.wallet.errors import (
    InsufficientBalance,
    InvalidAddress,
    InvalidArgument,
    NoWallet,
    RemoteApiError,
    WalletError,
    redact,
)
from vibecoin_wallet.wallet.keystore import DEFAULT_IDENTITY, Keystore, KeystoreRecord
from vibecoin_wallet.wallet.provider import DEFAULT_CONFIRMATION_TIMEOUT, Web3Provider
from vibecoin_wallet.wallet.results import OperationResult
from vibecoin_wallet.wallet.session import unlock

logger = logging.getLogger("vibecoin_wallet.wallet.manager")

WEI_DECIMALS = 18
MAX_WEI = 2**256 - 1

NO_RECOVERY_WARNING = (
    "CRITICAL: Your password is the ONLY way to access this wallet. There is NO "
    "recovery option. If you lose your password, your wallet and all funds are "
    "permanently lost!"
)


class WalletManager:
    """Orchestrates keystore, chain provider, and launch API for wallet operations."""

    def __init__(
        self,
        keystore: Keystore,
        provider: Web3Provider,
        api: RemoteApi,
        confirmation_timeout: float = DEFAULT_CONFIRMATION_TIMEOUT,
        fee_hook_address: str | None = None,
        vesting_address: str | None = None,
    ) -> None:
        self.keystore = keystore
        self.provider = provider
        self.api = api
        self.confirmation_timeout = confirmation_timeout
        self.fee_hook_address = fee_hook_address
        self.vesting_address = vesting_address

    @classmethod
    def from_config(cls, config: AppConfig) -> WalletManager:
        keystore = Keystore(
            config.store_path(),
            layout=config.wallet.layout,
            legacy_path=config.legacy_path(),
        )
        chain = get_chain(config.wallet.chain).with_rpc(config.wallet.rpc_url)
        return cls(
            keystore=keystore,
            provider=Web3Provider(chain),
            api=RemoteApi(config.api.base_url, timeout=config.api.timeout),
            confirmation_timeout=config.wallet.confirmation_timeout,
            fee_hook_address=config.wallet.fee_hook_address,
            vesting_address=config.wallet.vesting_address,
        )

    @property
    def symbol(self) -> str:
        return self.provider.chain.native_symbol

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _guard(self, action: str, fn: Callable[[], dict[str, Any]]) -> OperationResult:
        try:
            return OperationResult.ok(**fn())
        except WalletError as exc:
            logger.info(f"{action} failed: [{exc.code}] {exc.message}")
            return OperationResult.fail(exc)
        except Exception as exc:
            logger.error(f"{action} failed unexpectedly: {type(exc).__name__}: {redact(str(exc))}")
            return OperationResult(
                success=False,
                error=f"{action} failed: {redact(str(exc))}",
                code="internal_error",
            )

    def _require_record(self, identity: str | None) -> KeystoreRecord:
        record = self.keystore.load(identity)
        if record is None:
            key = self.keystore.resolve(identity)
            raise NoWallet(None if key == DEFAULT_IDENTITY else key)
        return record

    def _require_address(self, address: str) -> str:
        if not self.provider.is_address(address):
            raise InvalidAddress(address)
        return address

    @staticmethod
    def _require_password(password: str | None) -> str:
        if not password:
            raise InvalidArgument("Password required")
        return password

    @staticmethod
    def _parse_amount(amount: str | Decimal) -> tuple[Decimal, int]:
        """Parse an ether amount into ``(value, value_wei)``.

        The wei conversion must be exact: amounts finer than one wei or
        beyond the uint256 range are rejected rather than rounded.
        """
        try:
            value = Decimal(str(amount).strip())
        except (InvalidOperation, ValueError):
            raise InvalidArgument(f"Invalid amount '{amount}'. Provide a number like '0.05'.") from None
        if not value.is_finite() or value <= 0:
            raise InvalidArgument("Amount must be positive.")

        with localcontext() as ctx:
            ctx.prec = 100
            ctx.traps[Inexact] = True
            try:
                wei = value.scaleb(WEI_DECIMALS)
            except Inexact:
                raise InvalidArgument("Amount has too many significant digits.") from None
        if wei != wei.to_integral_value():
            raise InvalidArgument(f"Amount has more than {WEI_DECIMALS} decimal places.")
        value_wei = int(wei)
        if value_wei > MAX_WEI:
            raise InvalidArgument("Amount is too large.")
        return value, value_wei

    def _contract(self, key: str, override: str | None, label: str) -> str:
        """Resolve a contract address from config, or from the launch API."""
        address = override or self.api.get_contracts().get(key)
        if not address:
            raise RemoteApiError(f"{label} contract address not configured")
        return self._require_address(address)

    # ------------------------------------------------------------------
    # Wallet lifecycle
    # ------------------------------------------------------------------

    def create(self, password: str, identity: str | None = None) -> OperationResult:
        """Create a new wallet and return its address."""

        def _create() -> dict[str, Any]:
            address = self.keystore.create(identity, self._require_password(password))
            return {
                "address": address,
                "message": "Wallet created! This is where your fees from coin launches will be sent.",
                "warning": NO_RECOVERY_WARNING,
            }

        return self._guard("Wallet creation", _create)

    def has_wallet(self, identity: str | None = None) -> bool:
        """Check whether a keystore record exists."""
        return self.keystore.exists(identity)

    def get_address(self, identity: str | None = None) -> OperationResult:
        """The wallet address. No password needed."""

        def _address() -> dict[str, Any]:
            record = self._require_record(identity)
            return {
                "address": record.address,
                "createdAt": record.created_at,
                "note": "This is where your fees from coin launches are sent.",
            }

        return self._guard("Address lookup", _address)

    def migrate_legacy(self) -> OperationResult:
        """Move a wallet file from its deprecated location, if there is one."""
        return self._guard(
            "Legacy migration",
            lambda: {"migrated": self.keystore.migrate_legacy_if_present()},
        )

    # ------------------------------------------------------------------
    # Balances
    # ------------------------------------------------------------------

    def get_balance(self, identity: str | None = None) -> OperationResult:
        """Native token balance of the wallet. No password needed."""

        def _balance() -> dict[str, Any]:
            record = self._require_record(identity)
            balance_wei = self.provider.get_balance_wei(record.address)
            return {
                "address": record.address,
                "balance": str(self.provider.from_wei(balance_wei)),
                "balanceWei": str(balance_wei),
                "unit": self.symbol,
                "chain": self.provider.chain.name,
            }

        return self._guard("Balance query", _balance)

    # ------------------------------------------------------------------
    # Signing
    # ------------------------------------------------------------------

    def sign(self, password: str, message: str, identity: str | None = None) -> OperationResult:
        """Sign *message* with the wallet key (EIP-191 personal sign)."""

        def _sign() -> dict[str, Any]:
            with unlock(self.keystore, identity, self._require_password(password)) as session:
                signature = session.sign_message(message)
                address = session.address
            return {"address": address, "message": message, "signature": signature}

        return self._guard("Signing", _sign)

    # ------------------------------------------------------------------
    # Transfers
    # ------------------------------------------------------------------

    def transfer(
        self,
        password: str,
        to_address: str,
        amount: str | Decimal,
        identity: str | None = None,
    ) -> OperationResult:
        """Send native tokens to *to_address*. Irreversible once broadcast."""

        def _transfer() -> dict[str, Any]:
            self._require_password(password)
            to = self._require_address(to_address)
            value, value_wei = self._parse_amount(amount)
            record = self._require_record(identity)

            balance_wei = self.provider.get_balance_wei(record.address)
            if balance_wei < value_wei:
                raise InsufficientBalance(self.provider.from_wei(balance_wei), value, self.symbol)

            tx = self.provider.build_transfer(record.address, to, value_wei)
            with unlock(self.keystore, identity, password) as session:
                raw = session.sign_transaction(tx)

            tx_hash = self.provider.send_raw_transaction(raw)
            logger.info(f"Transfer of {value} {self.symbol} to {to} broadcast: tx={tx_hash}")
            receipt = self.provider.wait_for_receipt(tx_hash, timeout=self.confirmation_timeout)
            return {
                **receipt.to_dict(),
                "from": record.address,
                "to": to,
                "amount": f"{value:f}",
                "unit": self.symbol,
            }

        return self._guard("Transfer", _transfer)

    # ------------------------------------------------------------------
    # Claims
    # ------------------------------------------------------------------

    def collect_fees(self, password: str, identity: str | None = None) -> OperationResult:
        """Claim accumulated trading fees.

        With a zero native balance the claim is signed here and submitted by
        the launch service, which pays the gas. Otherwise the wallet calls
        the fee contract directly and pays the gas itself. The method is
        decided from the stored address before unlocking; the key is held
        only to sign.
        """

        def _collect() -> dict[str, Any]:
            self._require_password(password)
            record = self._require_record(identity)
            address = record.address
            method = decide_fee_claim(self.provider.get_balance_wei(address))

            if method is FeeClaimMethod.SPONSORED:
                message = fee_claim_message(address)
                with unlock(self.keystore, identity, password) as session:
                    signature = session.sign_message(message)

                result = self.api.collect_fees(address, message, signature)
                logger.info(f"Sponsored fee claim submitted for {address}")
                result.pop("success", None)
                return {
                    **result,
                    "method": method.value,
                    "message": "Fees collected via API (gas paid by the launch service)",
                }

            fee_hook = self._contract("feeHookAddress", self.fee_hook_address, "Fee hook")
            tx = self.provider.build_contract_call(
                fee_hook, FEE_HOOK_ABI, "claimFees", [address], sender=address
            )
            with unlock(self.keystore, identity, password) as session:
                raw = session.sign_transaction(tx)

            tx_hash = self.provider.send_raw_transaction(raw)
            logger.info(f"Direct fee claim for {address} broadcast: tx={tx_hash}")
            receipt = self.provider.wait_for_receipt(tx_hash, timeout=self.confirmation_timeout)
            return {
                **receipt.to_dict(),
                "method": method.value,
                "message": "Fees collected directly from contract (you paid gas)",
            }

        return self._guard("Fee collection", _collect)

    def claim_vested(self, password: str, token_address: str, identity: str | None = None) -> OperationResult:
        """Claim whatever has vested so far for *token_address*."""

        def _claim() -> dict[str, Any]:
            self._require_password(password)
            token = self._require_address(token_address)
            record = self._require_record(identity)
            vesting = self._contract("vestingAddress", self.vesting_address, "Vesting")

            tx = self.provider.build_contract_call(
                vesting, VESTING_ABI, "claim", [token], sender=record.address
            )
            with unlock(self.keystore, identity, password) as session:
                raw = session.sign_transaction(tx)

            tx_hash = self.provider.send_raw_transaction(raw)
            logger.info(f"Vesting claim for {token} broadcast: tx={tx_hash}")
            receipt = self.provider.wait_for_receipt(tx_hash, timeout=self.confirmation_timeout)
            return {
                "tokenAddress": token,
                **receipt.to_dict(),
            }

        return self._guard("Vesting claim", _claim)

    def vesting_info(self, token_address: str, identity: str | None = None) -> OperationResult:
        """Vesting schedule for *token_address*. No password needed."""

        def _info() -> dict[str, Any]:
            token = self._require_address(token_address)
            vesting = self._contract("vestingAddress", self.vesting_address, "Vesting")
            beneficiary, total, released, releasable, start, duration = self.provider.call_view(
                vesting, VESTING_ABI, "getVestingInfo", [token]
            )
            locked = max(int(total) - int(released) - int(releasable), 0)
            data: dict[str, Any] = {
                "tokenAddress": token,
                "beneficiary": beneficiary,
                "totalAmount": str(self.provider.from_wei(total)),
                "releasedAmount": str(self.provider.from_wei(released)),
                "releasableAmount": str(self.provider.from_wei(releasable)),
                "lockedAmount": str(self.provider.from_wei(locked)),
                "startTime": int(start),
                "endTime": int(start) + int(duration),
                "raw": {
                    "totalAmount": str(total),
                    "releasedAmount": str(released),
                    "releasableAmount": str(releasable),
                    "lockedAmount": str(locked),
                },
            }
            record = self.keystore.load(identity)
            if record is not None:
                data["isBeneficiary"] = beneficiary.lower() == record.address.lower()
            return data

        return self._guard("Vesting lookup", _info)

    # ------------------------------------------------------------------
    # Launch
    # ------------------------------------------------------------------

    def launch_coin(
        self,
        password: str,
        name: str,
        symbol: str,
        url: str | None = None,
        github: str | None = None,
        description: str | None = None,
        identity: str | None = None,
    ) -> OperationResult:
        """Sign a coin launch request and submit it to the launch service."""

        def _launch() -> dict[str, Any]:
            self._require_password(password)
            if not name or len(name) > 32:
                raise InvalidArgument("Name must be 1-32 characters")
            if not symbol or not 2 <= len(symbol) <= 8:
                raise InvalidArgument("Symbol must be 2-8 characters")
            if description and len(description) > 500:
                raise InvalidArgument("Description must be 500 characters or less")

            timestamp = now_ms()
            with unlock(self.keystore, identity, password) as session:
                creator = session.address
                message = launch_message(name, symbol, creator, timestamp)
                signature = session.sign_message(message)

            result = self.api.launch({
                "walletAddress": creator,
                "signature": signature,
                "message": message,
                "name": name,
                "symbol": symbol,
                "timestamp": timestamp,
                "url": url or None,
                "github": github or None,
                "description": description or None,
            })
            logger.info(f"Launch of {symbol} submitted by {creator}")
            return {
                "message": "Coin launched successfully!",
                "coin": {
                    "name": name,
                    "symbol": symbol,
                    "creator": creator,
                    "contractAddress": result.get("contractAddress"),
                    "transactionHash": result.get("transactionHash"),
                    "totalSupply": result.get("totalSupply"),
                    "status": "launched",
                },
            }

        return self._guard("Launch", _launch)

    def api_status(self) -> OperationResult:
        return self._guard("API status", self.api.status)
