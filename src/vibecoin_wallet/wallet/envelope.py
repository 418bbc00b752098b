"""Password-based envelope encryption for a single secret.

PBKDF2-HMAC-SHA256 turns the password and a per-envelope random salt into
a 256-bit key; AES-256-GCM seals the secret under a per-envelope random IV.
Everything is stored hex-encoded.
"""

from __future__ import annotations

import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from vibecoin_wallet.wallet.errors import AuthFailure

KEY_LENGTH = 32
SALT_LENGTH = 32
IV_LENGTH = 16
TAG_LENGTH = 16
ITERATIONS = 100_000


class Envelope(BaseModel):
    """The salt / IV / auth tag / ciphertext bundle for one sealed secret.

    Accepts the ``tag`` and ``encrypted`` field names written by the older
    JavaScript tool, and always writes ``authTag`` and ``ciphertext``.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    salt: str
    iv: str
    auth_tag: str = Field(
        validation_alias=AliasChoices("authTag", "tag", "auth_tag"),
        serialization_alias="authTag",
    )
    ciphertext: str = Field(
        validation_alias=AliasChoices("ciphertext", "encrypted"),
        serialization_alias="ciphertext",
    )

    def to_dict(self) -> dict[str, str]:
        return self.model_dump(by_alias=True)


def derive_key(password: str, salt: bytes) -> bytes:
    """Stretch *password* into a 256-bit AES key."""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=salt,
        iterations=ITERATIONS,
    )
    return kdf.derive(password.encode("utf-8"))


def seal(secret: bytes, password: str) -> Envelope:
    """Encrypt *secret* under *password* with a fresh salt and IV."""
    salt = os.urandom(SALT_LENGTH)
    iv = os.urandom(IV_LENGTH)
    key = derive_key(password, salt)

    sealed = AESGCM(key).encrypt(iv, bytes(secret), None)
    ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]

    return Envelope(
        salt=salt.hex(),
        iv=iv.hex(),
        auth_tag=tag.hex(),
        ciphertext=ciphertext.hex(),
    )


def open_envelope(envelope: Envelope, password: str) -> bytes:
    """Decrypt *envelope* with *password*.

    Raises
    ------
    AuthFailure
        For a wrong password and for any damaged or malformed field. The two
        cases are deliberately indistinguishable.
    """
    try:
        salt = bytes.fromhex(envelope.salt)
        iv = bytes.fromhex(envelope.iv)
        tag = bytes.fromhex(envelope.auth_tag)
        ciphertext = bytes.fromhex(envelope.ciphertext)
    except ValueError:
        raise AuthFailure() from None

    if len(salt) != SALT_LENGTH or len(iv) != IV_LENGTH or len(tag) != TAG_LENGTH:
        raise AuthFailure()

    key = derive_key(password, salt)
    try:
        return AESGCM(key).decrypt(iv, ciphertext + tag, None)
    except (InvalidTag, ValueError):
        raise AuthFailure() from None
