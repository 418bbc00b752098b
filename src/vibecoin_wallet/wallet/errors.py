"""Error taxonomy for wallet operations.

Every failure an operation can report maps onto one of these classes. Each
carries a stable ``code`` that the result layer exposes to callers, so the
outer surface can branch on it without parsing messages.

Messages built from third-party exception text must go through
:func:`redact` before they are wrapped.
"""

from __future__ import annotations

import re
from decimal import Decimal

# 64 hex digits with no neighbours: the shape of a raw secp256k1 key.
_SECRET_RE = re.compile(r"(?<![0-9a-fA-F])(?:0x)?[0-9a-fA-F]{64}(?![0-9a-fA-F])")


def redact(text: str) -> str:
    """Strip anything shaped like raw key material from *text*."""
    return _SECRET_RE.sub("[redacted]", text)


class AuthFailure(Exception):
    """Envelope authentication failed.

    Raised by the cipher for a wrong password and for a damaged envelope
    alike. Callers outside the session layer never see this type.
    """

    def __init__(self) -> None:
        super().__init__("Envelope authentication failed")


class WalletError(Exception):
    """Base class for every user-facing wallet failure."""

    code = "wallet_error"

    @property
    def message(self) -> str:
        return str(self)


class NoWallet(WalletError):
    code = "no_wallet"

    def __init__(self, identity: str | None = None) -> None:
        msg = "No wallet found. Create one first with a password you will never forget."
        if identity:
            msg = f"No wallet found for '{identity}'. Create one first with a password you will never forget."
        super().__init__(msg)
        self.identity = identity


class AlreadyExists(WalletError):
    code = "already_exists"

    def __init__(self, identity: str | None = None) -> None:
        super().__init__(
            "Wallet already exists"
            + (f" for '{identity}'" if identity else "")
            + ". Use 'address' to retrieve it."
        )
        self.identity = identity


class InvalidPassword(WalletError):
    code = "invalid_password"

    def __init__(self) -> None:
        super().__init__("Invalid password")


class InvalidAddress(WalletError):
    code = "invalid_address"

    def __init__(self, address: str) -> None:
        super().__init__(f"Invalid address: {address!r}")
        self.address = address


class InvalidArgument(WalletError):
    code = "invalid_argument"


class InsufficientBalance(WalletError):
    code = "insufficient_balance"

    def __init__(self, balance: Decimal, requested: Decimal, symbol: str = "ETH") -> None:
        super().__init__(
            f"Insufficient balance. You have {balance} {symbol} "
            f"but tried to send {requested} {symbol}"
        )
        self.balance = balance
        self.requested = requested


class NetworkError(WalletError):
    code = "network_error"


class RemoteApiError(NetworkError):
    code = "remote_api_error"

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ConfirmationTimeout(WalletError):
    code = "confirmation_timeout"

    def __init__(self, tx_hash: str, timeout: float) -> None:
        super().__init__(
            f"Transaction {tx_hash} was broadcast but not confirmed within "
            f"{timeout:g}s. It may still be mined; do not resend."
        )
        self.tx_hash = tx_hash
        self.timeout = timeout


class StorageError(WalletError):
    code = "storage_error"


class CorruptStore(StorageError):
    code = "corrupt_store"
