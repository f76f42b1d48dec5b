"""Tests for settings loaded from the environment."""

import logging
from pathlib import Path

import pytest

from nutpouch.config import (
    DEFAULT_HEALTH_TIMEOUT_MS,
    configure_logging,
    get_mints_from_env,
    load_settings,
    read_env,
)


class TestGetMintsFromEnv:
    def test_not_set(self):
        assert get_mints_from_env({}) == []

    def test_strips_and_dedupes(self):
        env = {"CASHU_MINTS": " https://a.mint/, https://b.mint,,https://a.mint "}

        assert get_mints_from_env(env) == ["https://a.mint", "https://b.mint"]


class TestLoadSettings:
    def test_defaults(self):
        settings = load_settings(env={})

        assert settings.mint_url is None
        assert settings.unit == "usd"
        assert settings.selector == "smallest"
        assert settings.health_timeout_ms == DEFAULT_HEALTH_TIMEOUT_MS
        assert settings.history_file is None
        assert settings.debug is False
        assert settings.wallet_file.name == "proofs.json"

    def test_explicit_values(self, tmp_path):
        settings = load_settings(
            env={
                "NUTPOUCH_MINT_URL": "https://mint.test/",
                "NUTPOUCH_UNIT": "SAT",
                "NUTPOUCH_SELECTOR": "exact",
                "NUTPOUCH_WALLET_FILE": str(tmp_path / "w.json"),
                "NUTPOUCH_HISTORY_FILE": str(tmp_path / "h.json"),
                "NUTPOUCH_HEALTH_TIMEOUT_MS": "1500",
                "NUTPOUCH_DEBUG": "yes",
            }
        )

        assert settings.mint_url == "https://mint.test"
        assert settings.unit == "sat"
        assert settings.selector == "exact"
        assert settings.wallet_file == tmp_path / "w.json"
        assert settings.history_file == tmp_path / "h.json"
        assert settings.health_timeout_ms == 1500
        assert settings.debug is True

    def test_falls_back_to_cashu_mints(self):
        settings = load_settings(env={"CASHU_MINTS": "https://first.mint,https://second.mint"})

        assert settings.mint_url == "https://first.mint"

    @pytest.mark.parametrize(
        "env,variable",
        [
            ({"NUTPOUCH_MINT_URL": "ftp://mint"}, "NUTPOUCH_MINT_URL"),
            ({"NUTPOUCH_SELECTOR": "cheapest"}, "NUTPOUCH_SELECTOR"),
            ({"NUTPOUCH_HEALTH_TIMEOUT_MS": "soon"}, "NUTPOUCH_HEALTH_TIMEOUT_MS"),
            ({"NUTPOUCH_HEALTH_TIMEOUT_MS": "0"}, "NUTPOUCH_HEALTH_TIMEOUT_MS"),
        ],
    )
    def test_invalid_values(self, env, variable):
        with pytest.raises(ValueError, match=variable):
            load_settings(env=env)

    def test_reads_dotenv_file(self, tmp_path, monkeypatch):
        monkeypatch.delenv("NUTPOUCH_MINT_URL", raising=False)
        monkeypatch.delenv("NUTPOUCH_UNIT", raising=False)
        env_file = tmp_path / ".env"
        env_file.write_text("NUTPOUCH_MINT_URL=https://dotenv.mint\nNUTPOUCH_UNIT=eur\n")

        settings = load_settings(env_file)

        assert settings.mint_url == "https://dotenv.mint"
        assert settings.unit == "eur"

    def test_environment_wins_over_dotenv(self, tmp_path, monkeypatch):
        env_file = tmp_path / ".env"
        env_file.write_text("NUTPOUCH_UNIT=eur\n")
        monkeypatch.setenv("NUTPOUCH_UNIT", "sat")

        assert read_env(env_file)["NUTPOUCH_UNIT"] == "sat"

    def test_missing_dotenv_file(self, tmp_path, monkeypatch):
        monkeypatch.setenv("NUTPOUCH_UNIT", "sat")

        env = read_env(Path(tmp_path / "missing.env"))

        assert env["NUTPOUCH_UNIT"] == "sat"


def test_configure_logging(monkeypatch):
    calls = []
    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.append(kwargs))

    configure_logging(debug=True)

    assert calls[0]["level"] == logging.DEBUG
    assert "%(levelname)s" in calls[0]["format"]
