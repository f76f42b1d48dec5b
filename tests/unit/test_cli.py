"""Tests for the pouch command line."""

import json

import pytest
from typer.testing import CliRunner

from nutpouch.cli import app
from nutpouch.history import TransactionStore
from nutpouch.token import CashuTokenCodec

runner = CliRunner()

ENV_VARS = [
    "NUTPOUCH_MINT_URL",
    "NUTPOUCH_UNIT",
    "NUTPOUCH_SELECTOR",
    "NUTPOUCH_WALLET_FILE",
    "NUTPOUCH_HISTORY_FILE",
    "NUTPOUCH_HEALTH_TIMEOUT_MS",
    "NUTPOUCH_DEBUG",
    "CASHU_MINTS",
]


@pytest.fixture(autouse=True)
def clean_env(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def wallet_file(tmp_path, make_proofs):
    path = tmp_path / "proofs.json"
    path.write_text(json.dumps(make_proofs([1, 2, 4])))
    return path


def invoke(*args: str):
    return runner.invoke(app, list(args))


class TestBalance:
    def test_balance(self, wallet_file):
        result = invoke("-w", str(wallet_file), "balance")

        assert result.exit_code == 0
        assert "Balance: 7 usd" in result.output
        assert "3 proofs" in result.output

    def test_empty_wallet_file(self, tmp_path):
        result = invoke("-w", str(tmp_path / "missing.json"), "balance")

        assert result.exit_code == 0
        assert "Balance: 0 usd" in result.output


class TestPreview:
    def test_preview(self, wallet_file):
        result = invoke("-w", str(wallet_file), "preview", "3")

        assert result.exit_code == 0
        assert "Can send 3" in result.output
        assert "Change: 0" in result.output

    def test_preview_insufficient(self, wallet_file):
        result = invoke("-w", str(wallet_file), "preview", "100")

        assert result.exit_code == 1
        assert "Insufficient balance" in result.output
        assert "Add 93 more credits" in result.output


def test_suggest():
    result = invoke("suggest", "25")

    assert result.exit_code == 0
    assert "25 = 16 + 8 + 1" in result.output


class TestDecode:
    def test_decode(self, make_proofs):
        token = CashuTokenCodec().encode("https://mint.test", make_proofs([8, 4]), "usd")

        result = invoke("decode", token)

        assert result.exit_code == 0
        assert "Version: V4" in result.output
        assert "Amount: 12 usd" in result.output

    def test_decode_invalid(self):
        result = invoke("decode", "not-a-token")

        assert result.exit_code == 1
        assert "Invalid token" in result.output


class TestHistory:
    def test_history_requires_file_setting(self):
        result = invoke("history")

        assert result.exit_code == 1
        assert "NUTPOUCH_HISTORY_FILE is not set" in result.output

    def test_history_lists_records(self, tmp_path, monkeypatch):
        store = TransactionStore()
        store.add(type="receive", amount=10)
        store.add(type="send", amount=-4, memo="tea")
        history_file = tmp_path / "history.json"
        history_file.write_text(json.dumps(store.serialize()))
        monkeypatch.setenv("NUTPOUCH_HISTORY_FILE", str(history_file))

        result = invoke("history", "--type", "send")

        assert result.exit_code == 0
        assert "-4 credits (sent)" in result.output
        assert "received" not in result.output

    def test_history_unreadable(self, tmp_path, monkeypatch):
        history_file = tmp_path / "history.json"
        history_file.write_text("[{]")
        monkeypatch.setenv("NUTPOUCH_HISTORY_FILE", str(history_file))

        result = invoke("history")

        assert result.exit_code == 1
        assert "Could not read history" in result.output


def test_invalid_configuration(monkeypatch):
    monkeypatch.setenv("NUTPOUCH_SELECTOR", "cheapest")

    result = invoke("suggest", "4")

    assert result.exit_code == 1
    assert "Invalid configuration" in result.output


def test_health_requires_mint():
    result = invoke("health")

    assert result.exit_code == 1
    assert "No mint configured" in result.output
