import json

import pytest
from typer.testing import CliRunner

from vibecoin_wallet.cli.app import app
from vibecoin_wallet.config import load_config
from vibecoin_wallet.wallet.keystore import Keystore
from vibecoin_wallet.wallet.provider import Web3Provider

from tests.conftest import PASSWORD

runner = CliRunner()


@pytest.fixture
def home(tmp_path, monkeypatch):
    home = tmp_path / "home"
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("VIBECOIN_HOME", str(home))
    monkeypatch.delenv("VIBECOIN_CONFIG", raising=False)
    monkeypatch.delenv("VIBECOIN_IDENTITY", raising=False)
    return home


def test_address_without_wallet_fails(home):
    result = runner.invoke(app, ["address"])
    assert result.exit_code == 1
    assert "No wallet found" in result.output


def test_address_shows_stored_wallet(home):
    address = Keystore(home / "wallet.json").create(None, PASSWORD)
    result = runner.invoke(app, ["address"])
    assert result.exit_code == 0, result.output
    assert address in result.output


def test_migrate_moves_legacy_wallet(home, tmp_path):
    legacy = tmp_path / "old" / "wallet.json"
    address = Keystore(legacy).create(None, PASSWORD)
    config = tmp_path / "config.yaml"
    config.write_text(f"wallet:\n  legacy_store_path: {legacy}\n")

    result = runner.invoke(app, ["--config", str(config), "migrate"])

    assert result.exit_code == 0, result.output
    assert not legacy.exists()
    assert json.loads((home / "wallet.json").read_text())["address"] == address


def test_startup_migrates_from_default_legacy_location(home, tmp_path):
    legacy = tmp_path / ".vibecoin-mcp" / "wallet.json"
    address = Keystore(legacy).create(None, PASSWORD)

    result = runner.invoke(app, ["address"])

    assert result.exit_code == 0, result.output
    assert address in result.output
    assert not legacy.exists()
    assert json.loads((home / "wallet.json").read_text())["address"] == address


def test_init_writes_config(home):
    result = runner.invoke(app, ["init", "--chain", "sepolia", "--layout", "multi"])
    assert result.exit_code == 0, result.output

    cfg = load_config(home / "config.yaml")
    assert cfg.wallet.chain == "sepolia"
    assert cfg.wallet.layout == "multi"

    again = runner.invoke(app, ["init"])
    assert again.exit_code == 1
    assert load_config(home / "config.yaml").wallet.chain == "sepolia"


def test_init_rejects_unknown_chain(home):
    result = runner.invoke(app, ["init", "--chain", "dogechain"])
    assert result.exit_code == 1
    assert not (home / "config.yaml").exists()


def test_balance_marks_testnet(home, monkeypatch):
    monkeypatch.setattr(Web3Provider, "get_balance_wei", lambda self, address: 10**18)
    address = Keystore(home / "wallet.json").create(None, PASSWORD)
    assert runner.invoke(app, ["init", "--chain", "sepolia"]).exit_code == 0

    result = runner.invoke(app, ["balance"])

    assert result.exit_code == 0, result.output
    assert "(testnet)" in result.output
    assert "1" in result.output
    assert address[:10] in result.output
