"""
Configuration Tests.

Tests for YAML loading, environment overlays, variable substitution and
settings validation.
"""

from decimal import Decimal
from pathlib import Path

import pytest

from fund_ledger.config import (
    AppConfig,
    ConfigFileNotFoundError,
    ConfigLoader,
    ConfigParseError,
    ConfigValidationError,
    FundSettings,
    load_config,
)

REPO_CONFIG = Path(__file__).resolve().parents[2] / "config" / "fund.yaml"

BASE_YAML = """
environment: development
fund:
  owner: ${TEST_FUND_OWNER:governor}
  epoch_duration: ${TEST_EPOCH_DURATION:3600}
  proposer_reward_rate: "0.02"
storage:
  db_path: ${TEST_FUND_DB:data/test.db}
logging:
  level: debug
  file: ${TEST_FUND_LOG_FILE:}
"""


@pytest.fixture
def config_dir(tmp_path) -> Path:
    (tmp_path / "fund.yaml").write_text(BASE_YAML, encoding="utf-8")
    (tmp_path / "fund.production.yaml").write_text(
        "fund:\n  acceptance_timelock: 60\nlogging:\n  level: WARNING\n",
        encoding="utf-8",
    )
    return tmp_path


class TestConfigLoader:
    """Test ConfigLoader."""

    def test_load_base(self, config_dir):
        config = ConfigLoader().load(config_dir / "fund.yaml")

        assert config.environment == "development"
        assert config.fund.owner == "governor"
        assert config.fund.epoch_duration == 3600
        assert config.fund.proposer_reward_rate == Decimal("0.02")
        assert config.fund.approver_reward_rate == Decimal("0.01")
        assert config.storage.db_path == "data/test.db"
        assert config.logging.level == "DEBUG"
        assert config.logging.file is None

    def test_environment_overlay(self, config_dir):
        config = load_config(config_dir / "fund.yaml", env="production")

        assert config.environment == "production"
        assert config.is_production
        assert config.fund.acceptance_timelock == 60
        assert config.fund.epoch_duration == 3600
        assert config.logging.level == "WARNING"

    def test_missing_overlay_is_ignored(self, config_dir):
        config = load_config(config_dir / "fund.yaml", env="staging")

        assert config.environment == "staging"
        assert config.fund.acceptance_timelock == 0

    def test_env_var_substitution(self, config_dir, monkeypatch):
        monkeypatch.setenv("TEST_FUND_OWNER", "council")
        monkeypatch.setenv("TEST_EPOCH_DURATION", "7200")
        monkeypatch.setenv("TEST_FUND_LOG_FILE", "logs/fund.log")

        config = ConfigLoader().load(config_dir / "fund.yaml")

        assert config.fund.owner == "council"
        assert config.fund.epoch_duration == 7200
        assert config.logging.file == "logs/fund.log"

    def test_validation_error(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("fund:\n  epoch_duration: 0\n", encoding="utf-8")

        with pytest.raises(ConfigValidationError) as exc_info:
            ConfigLoader().load(path)
        assert any(e.startswith("fund.epoch_duration") for e in exc_info.value.errors)

    def test_parse_errors(self, tmp_path):
        broken = tmp_path / "broken.yaml"
        broken.write_text("fund: [unclosed\n", encoding="utf-8")
        listing = tmp_path / "list.yaml"
        listing.write_text("- a\n- b\n", encoding="utf-8")

        with pytest.raises(ConfigParseError):
            ConfigLoader().load_yaml(broken)
        with pytest.raises(ConfigParseError):
            ConfigLoader().load_yaml(listing)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigFileNotFoundError):
            ConfigLoader().load(tmp_path / "absent.yaml")

    def test_empty_file_uses_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")

        assert ConfigLoader().load(path) == AppConfig()

    def test_merge_configs(self):
        loader = ConfigLoader()
        base = {"fund": {"epoch_duration": 86400, "proposal_ttl": 0}, "storage": {"autosave": True}}
        override = {"fund": {"proposal_ttl": 604800}}

        merged = loader.merge_configs(base, override)

        assert merged == {
            "fund": {"epoch_duration": 86400, "proposal_ttl": 604800},
            "storage": {"autosave": True},
        }
        assert base["fund"]["proposal_ttl"] == 0

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("true", True),
            ("off", False),
            ("3600", 3600),
            ("0.01", "0.01"),
            ("1e3", 1000.0),
            ("fund", "fund"),
        ],
    )
    def test_convert_value(self, raw, expected):
        assert ConfigLoader()._convert_value(raw) == expected

    def test_shipped_config_loads(self):
        config = load_config(REPO_CONFIG, env="production")

        assert config.fund.acceptance_timelock == 3600
        assert config.fund.proposal_ttl == 604800
        assert config.fund.share_symbol == "FUND"


class TestAppConfig:
    """Test settings models."""

    def test_to_parameters(self):
        settings = FundSettings(
            proposer_reward_rate="0.02",
            approver_reward_rate="0.005",
            acceptance_timelock=3600,
            share_symbol="pool",
        )
        params = settings.to_parameters()

        assert params.proposer_reward_rate == 2 * 10**16
        assert params.approver_reward_rate == 5 * 10**15
        assert params.acceptance_timelock == 3600
        assert params.share_symbol == "POOL"

    def test_rate_bounds(self):
        with pytest.raises(ValueError):
            FundSettings(proposer_reward_rate="1.5")

    def test_unknown_values_normalized(self):
        config = AppConfig(environment="Qa", logging={"level": "verbose"})

        assert config.environment == "development"
        assert config.logging.level == "INFO"

    def test_production_warnings(self):
        config = AppConfig(
            environment="production",
            fund={"proposer_reward_rate": "0.08", "approver_reward_rate": "0.05"},
            storage={"autosave": False},
        )

        warnings = config.validate_for_production()

        assert len(warnings) == 3
        assert AppConfig().validate_for_production() == []

    def test_yaml_round_trip(self, tmp_path):
        config = AppConfig(fund={"epoch_duration": 600, "proposer_reward_rate": "0.03"})
        path = tmp_path / "out.yaml"

        config.to_yaml(path)

        assert AppConfig.from_yaml(path) == config
