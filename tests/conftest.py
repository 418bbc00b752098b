"""Shared fixtures: a temp keystore, an offline chain provider, and a mocked launch API."""

from __future__ import annotations

import hashlib
import json

import httpx
import pytest

from vibecoin_wallet.wallet.api import RemoteApi
from vibecoin_wallet.wallet.chains import get_chain
from vibecoin_wallet.wallet.errors import ConfirmationTimeout
from vibecoin_wallet.wallet.keystore import Keystore
from vibecoin_wallet.wallet.manager import WalletManager
from vibecoin_wallet.wallet.provider import Receipt, Web3Provider

PASSWORD = "correct-horse"
FEE_HOOK = "0x1111111111111111111111111111111111111111"
VESTING = "0x2222222222222222222222222222222222222222"
RECIPIENT = "0x3333333333333333333333333333333333333333"
TOKEN = "0x4444444444444444444444444444444444444444"


class FakeProvider(Web3Provider):
    """Web3Provider with every network call replaced by in-memory state."""

    def __init__(self) -> None:
        super().__init__(get_chain("sepolia"))
        self.balances: dict[str, int] = {}
        self.contract_calls: list[tuple[str, str, list]] = []
        self.transfers: list[dict] = []
        self.sent: list[bytes] = []
        self.view_result: tuple = ()
        self.timeout_on_wait = False

    def _fee_fields(self) -> dict:
        return {
            "gas": 100_000,
            "maxFeePerGas": 2_000_000_000,
            "maxPriorityFeePerGas": 1_000_000_000,
            "nonce": len(self.sent),
            "chainId": self.chain.chain_id,
        }

    def get_balance_wei(self, address: str) -> int:
        return self.balances.get(address.lower(), 0)

    def call_view(self, contract_address, abi, fn_name, args):
        self.contract_calls.append((contract_address, fn_name, list(args)))
        return self.view_result

    def build_transfer(self, sender, to_address, value_wei):
        tx = {"from": sender, "to": to_address, "value": value_wei, **self._fee_fields()}
        self.transfers.append(tx)
        return tx

    def build_contract_call(self, contract_address, abi, fn_name, args, sender):
        self.contract_calls.append((contract_address, fn_name, list(args)))
        return {
            "from": sender,
            "to": contract_address,
            "value": 0,
            "data": "0x" + hashlib.sha256(fn_name.encode()).hexdigest()[:8],
            **self._fee_fields(),
        }

    def send_raw_transaction(self, raw: bytes) -> str:
        self.sent.append(raw)
        return "0x" + hashlib.sha256(raw).hexdigest()

    def wait_for_receipt(self, tx_hash, timeout=120.0):
        if self.timeout_on_wait:
            raise ConfirmationTimeout(tx_hash, timeout)
        return Receipt(hash=tx_hash, block_number=4242)


class FakeApi:
    """Route table for ``httpx.MockTransport`` that records every request."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.routes: dict[tuple[str, str], httpx.Response] = {
            ("GET", "/api/config"): httpx.Response(
                200, json={"feeHookAddress": FEE_HOOK, "vestingAddress": VESTING}
            ),
            ("POST", "/api/collect-fees"): httpx.Response(
                200, json={"success": True, "transactionHash": "0x" + "ab" * 32}
            ),
            ("POST", "/api/launch"): httpx.Response(
                200,
                json={
                    "success": True,
                    "contractAddress": TOKEN,
                    "transactionHash": "0x" + "cd" * 32,
                    "totalSupply": "1000000000",
                },
            ),
            ("GET", "/api/status"): httpx.Response(200, json={"status": "ok"}),
        }

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        resp = self.routes.get((request.method, request.url.path))
        if resp is None:
            return httpx.Response(404, json={"error": "not found"})
        return httpx.Response(resp.status_code, content=resp.content, headers=resp.headers)

    def calls(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    def body(self, path: str) -> dict:
        return json.loads(self.calls(path)[-1].content)


@pytest.fixture
def store_path(tmp_path):
    return tmp_path / "vibecoin" / "wallet.json"


@pytest.fixture
def keystore(store_path):
    return Keystore(store_path)


@pytest.fixture
def multi_keystore(tmp_path):
    return Keystore(tmp_path / "vibecoin" / "wallets.json", layout="multi")


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def fake_api():
    return FakeApi()


@pytest.fixture
def api(fake_api):
    return RemoteApi("https://launch.test", transport=httpx.MockTransport(fake_api.handler))


@pytest.fixture
def manager(multi_keystore, provider, api):
    return WalletManager(multi_keystore, provider, api, confirmation_timeout=5.0)
