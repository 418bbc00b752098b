import os

import pytest

from vibecoin_wallet.wallet.envelope import (
    IV_LENGTH,
    SALT_LENGTH,
    Envelope,
    open_envelope,
    seal,
)
from vibecoin_wallet.wallet.errors import AuthFailure


def test_seal_open_roundtrip():
    secret = os.urandom(32)
    env = seal(secret, "pw")
    assert open_envelope(env, "pw") == secret


def test_field_lengths_and_hex():
    env = seal(b"k" * 32, "pw")
    assert len(bytes.fromhex(env.salt)) == SALT_LENGTH
    assert len(bytes.fromhex(env.iv)) == IV_LENGTH
    assert len(bytes.fromhex(env.auth_tag)) == 16
    assert len(bytes.fromhex(env.ciphertext)) == 32


def test_wrong_password_fails():
    env = seal(b"s" * 32, "right")
    with pytest.raises(AuthFailure):
        open_envelope(env, "wrong")


def test_fresh_salt_and_iv_each_time():
    a = seal(b"s" * 32, "pw")
    b = seal(b"s" * 32, "pw")
    assert a.salt != b.salt
    assert a.iv != b.iv
    assert a.ciphertext != b.ciphertext


@pytest.mark.parametrize("field", ["ciphertext", "auth_tag", "iv", "salt"])
def test_tampering_is_indistinguishable_from_wrong_password(field):
    env = seal(b"s" * 32, "pw")
    original = getattr(env, field)
    flipped = ("0" if original[0] != "0" else "1") + original[1:]
    tampered = env.model_copy(update={field: flipped})

    with pytest.raises(AuthFailure) as tampered_exc:
        open_envelope(tampered, "pw")
    with pytest.raises(AuthFailure) as wrong_pw_exc:
        open_envelope(env, "nope")
    assert str(tampered_exc.value) == str(wrong_pw_exc.value)


def test_malformed_hex_is_auth_failure():
    env = seal(b"s" * 32, "pw").model_copy(update={"iv": "zz"})
    with pytest.raises(AuthFailure):
        open_envelope(env, "pw")


def test_serializes_with_camel_case_tag():
    data = seal(b"s" * 32, "pw").to_dict()
    assert set(data) == {"salt", "iv", "authTag", "ciphertext"}


def test_reads_legacy_field_names():
    env = seal(b"s" * 32, "pw")
    legacy = {"salt": env.salt, "iv": env.iv, "tag": env.auth_tag, "encrypted": env.ciphertext}
    assert open_envelope(Envelope.model_validate(legacy), "pw") == b"s" * 32
