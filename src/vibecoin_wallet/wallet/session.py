"""Short-lived unlocked signing context for one operation."""

from __future__ import annotations

import contextlib
import logging
from typing import Any, Iterator

from eth_account import Account
from eth_account.messages import encode_defunct

from vibecoin_wallet.wallet.envelope import open_envelope
from vibecoin_wallet.wallet.errors import AuthFailure, InvalidPassword, NoWallet
from vibecoin_wallet.wallet.keystore import DEFAULT_IDENTITY, Keystore

logger = logging.getLogger("vibecoin_wallet.wallet.session")


def _normalize_secret(plaintext: bytes) -> bytearray:
    """Return the raw 32-byte key from an envelope's plaintext.

    Records written by the older JavaScript tool sealed the key as a
    ``0x``-prefixed hex string rather than as raw bytes.
    """
    if len(plaintext) == 32:
        return bytearray(plaintext)
    text = plaintext.decode("ascii", errors="strict").strip()
    if text.startswith("0x"):
        text = text[2:]
    secret = bytearray.fromhex(text)
    if len(secret) != 32:
        raise ValueError("sealed secret has unexpected length")
    return secret


class AccountSession:
    """An unlocked account. Signs on request; never hands out its key.

    Instances only exist inside :func:`unlock`. Once the ``with`` block ends
    the key buffer is zeroed and every signing method raises.
    """

    def __init__(self, address: str, secret: bytearray) -> None:
        self.address = address
        self._secret = secret
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _key(self) -> bytes:
        if self._closed:
            raise RuntimeError("Account session is closed")
        return bytes(self._secret)

    def sign_message(self, message: str) -> str:
        """Sign *message* with the EIP-191 personal-sign prefix."""
        signed = Account.sign_message(encode_defunct(text=message), private_key=self._key())
        return "0x" + signed.signature.hex().removeprefix("0x")

    def sign_transaction(self, tx: dict[str, Any]) -> bytes:
        """Sign a transaction dict and return the raw signed bytes."""
        signed = Account.sign_transaction(tx, self._key())
        return bytes(signed.raw_transaction)

    def close(self) -> None:
        if not self._closed:
            self._secret[:] = b"\x00" * len(self._secret)
            self._closed = True

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"AccountSession(address={self.address!r}, {state})"


@contextlib.contextmanager
def unlock(keystore: Keystore, identity: str | None, password: str) -> Iterator[AccountSession]:
    """Decrypt *identity*'s key for the duration of a ``with`` block.

    Raises
    ------
    NoWallet
        If the keystore has no record for *identity*.
    InvalidPassword
        If the envelope does not open with *password*.
    """
    record = keystore.load(identity)
    if record is None:
        key = keystore.resolve(identity)
        raise NoWallet(None if key == DEFAULT_IDENTITY else key)

    try:
        plaintext = open_envelope(record.envelope, password)
    except AuthFailure:
        logger.warning(f"Unlock failed for {record.address}")
        raise InvalidPassword() from None

    try:
        secret = _normalize_secret(plaintext)
    except ValueError:
        raise InvalidPassword() from None
    finally:
        del plaintext

    session = AccountSession(record.address, secret)
    try:
        yield session
    finally:
        session.close()
