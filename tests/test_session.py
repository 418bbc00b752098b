import json

import pytest
from eth_account import Account
from eth_account.messages import encode_defunct

from vibecoin_wallet.wallet.envelope import seal
from vibecoin_wallet.wallet.errors import InvalidPassword, NoWallet
from vibecoin_wallet.wallet.session import unlock

from tests.conftest import PASSWORD


def test_unlock_signs_with_stored_key(keystore):
    address = keystore.create(None, PASSWORD)
    with unlock(keystore, None, PASSWORD) as session:
        assert session.address == address
        sig = session.sign_message("hello")

    recovered = Account.recover_message(encode_defunct(text="hello"), signature=sig)
    assert recovered == address


def test_session_is_zeroed_and_closed_after_block(keystore):
    keystore.create(None, PASSWORD)
    with unlock(keystore, None, PASSWORD) as session:
        buffer = session._secret
        assert any(buffer)

    assert session.closed
    assert not any(buffer)
    with pytest.raises(RuntimeError):
        session.sign_message("late")


def test_session_closed_when_block_raises(keystore):
    keystore.create(None, PASSWORD)
    with pytest.raises(ZeroDivisionError):
        with unlock(keystore, None, PASSWORD) as session:
            1 / 0
    assert session.closed


def test_wrong_password(keystore):
    keystore.create(None, PASSWORD)
    with pytest.raises(InvalidPassword) as exc:
        with unlock(keystore, None, "wrong"):
            pass
    assert str(exc.value) == "Invalid password"


def test_no_wallet(multi_keystore):
    with pytest.raises(NoWallet):
        with unlock(multi_keystore, "ghost", PASSWORD):
            pass


def test_repr_hides_key(keystore):
    keystore.create(None, PASSWORD)
    with unlock(keystore, None, PASSWORD) as session:
        key_hex = bytes(session._secret).hex()
        assert key_hex not in repr(session)


def test_unlocks_key_sealed_as_hex_string(keystore, store_path):
    acct = Account.create()
    private_key_hex = "0x" + acct.key.hex().removeprefix("0x")
    envelope = seal(private_key_hex.encode(), PASSWORD)
    store_path.parent.mkdir(parents=True)
    store_path.write_text(json.dumps({
        "address": acct.address,
        "encryptedKey": {
            "salt": envelope.salt,
            "iv": envelope.iv,
            "tag": envelope.auth_tag,
            "encrypted": envelope.ciphertext,
        },
        "createdAt": "2025-01-01T00:00:00.000Z",
    }))

    with unlock(keystore, None, PASSWORD) as session:
        sig = session.sign_message("legacy")
    assert Account.recover_message(encode_defunct(text="legacy"), signature=sig) == acct.address
