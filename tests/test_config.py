"""Tests for settings and runtime trading config."""

import pytest
from pydantic import ValidationError

from streamhedge.core.config import (
    Settings,
    TradeConfig,
    TradeConfigService,
    load_yaml_config,
)
from streamhedge.core.errors import ConfigurationError


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self):
        settings = Settings(_env_file=None)
        assert settings.tracked_asset == "THOR.RUJI"
        assert settings.poll_limit == 50
        assert settings.poll_interval_seconds == 6.0
        assert settings.duration_basis == "count"

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("KRAKEN_PAIR", "XBTUSD")
        monkeypatch.setenv("POLL_LIMIT", "200")
        settings = Settings(_env_file=None)
        assert settings.kraken_pair == "XBTUSD"
        assert settings.poll_limit == 200

    def test_invalid_log_level(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, log_level="LOUD")

    def test_invalid_duration_basis(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, duration_basis="blocks")

    def test_credentials_flag(self):
        assert not Settings(_env_file=None).has_kraken_credentials
        assert Settings(_env_file=None, kraken_api_key="k", kraken_private_key="s").has_kraken_credentials


class TestLoadYamlConfig:
    def test_explicit_missing_path_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_yaml_config(str(tmp_path / "missing.yaml"))

    def test_reads_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("trading:\n  min_opportunity_size_usd: 250\n")
        assert load_yaml_config(str(path)) == {"trading": {"min_opportunity_size_usd": 250}}


class TestTradeConfigService:
    """Tests for TradeConfigService."""

    def test_defaults(self):
        config = TradeConfigService().current
        assert config.min_opportunity_size_usd == 4000
        assert config.min_opportunity_duration_s == 30
        assert config.trade_size_usd == 5
        assert config.exit_buffer_seconds == 10
        assert config.dry_run is True

    def test_from_yaml_section(self):
        service = TradeConfigService.from_yaml({"trading": {"trade_size_usd": 20, "dry_run": False}})
        assert service.current.trade_size_usd == 20
        assert service.current.dry_run is False

    def test_from_yaml_invalid(self):
        with pytest.raises(ConfigurationError):
            TradeConfigService.from_yaml({"trading": {"max_slippage_pct": -1}})

    def test_update_replaces_snapshot(self):
        service = TradeConfigService()
        before = service.current

        service.set_min_opportunity_size(100)

        assert service.current.min_opportunity_size_usd == 100
        assert before.min_opportunity_size_usd == 4000

    def test_update_rejects_invalid_value(self):
        service = TradeConfigService()
        with pytest.raises(ConfigurationError):
            service.update(trade_size_usd=0)
        assert service.current.trade_size_usd == 5

    def test_update_rejects_unknown_key(self):
        with pytest.raises(ConfigurationError):
            TradeConfigService().update(leverage=10)

    def test_snapshot_is_frozen(self):
        config = TradeConfig()
        with pytest.raises(ValidationError):
            config.dry_run = False
