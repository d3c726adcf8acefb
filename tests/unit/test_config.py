"""Tests for YAML config loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from packages.common.config import AppConfig, _resolve_env_vars, load_config
from packages.common.errors import ConfigError

DEFAULT_CONFIG = Path(__file__).parents[2] / "config" / "default.yaml"


class TestLoadConfig:
    def test_missing_file_gives_defaults(self, tmp_path: Path) -> None:
        cfg = load_config(tmp_path / "nope.yaml")
        assert cfg == AppConfig()

    def test_default_yaml_matches_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """The shipped YAML agrees with the model defaults."""
        monkeypatch.delenv("SIM_SEED", raising=False)
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        cfg = load_config(DEFAULT_CONFIG)

        assert cfg.market.seed == 42
        assert cfg.market.symbol == "NATLEE"
        assert cfg == AppConfig()

    def test_env_var_overrides_seed(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SIM_SEED", "7")
        assert load_config(DEFAULT_CONFIG).market.seed == 7

    def test_invalid_values_raise_config_error(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("market:\n  regime_duration_min: 50\n  regime_duration_max: 10\n")

        with pytest.raises(ConfigError):
            load_config(path)

    def test_partial_file_fills_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "partial.yaml"
        path.write_text("trading:\n  commission_rate: 0.001\n")
        cfg = load_config(path)

        assert cfg.trading.commission_rate == 0.001
        assert cfg.trading.initial_balance == 1_000_000.0
        assert cfg.analysis.weights.order_book == 25.0

    def test_empty_file_gives_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_config(path) == AppConfig()


class TestEnvResolution:
    def test_default_used_when_unset(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("NATLEE_TEST_VAR", raising=False)
        assert _resolve_env_vars("${NATLEE_TEST_VAR:fallback}") == "fallback"

    def test_env_value_wins(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("NATLEE_TEST_VAR", "set")
        assert _resolve_env_vars("x-${NATLEE_TEST_VAR:fallback}") == "x-set"

    def test_no_default_resolves_empty(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("NATLEE_TEST_VAR", raising=False)
        assert _resolve_env_vars("${NATLEE_TEST_VAR}") == ""
