"""
Application Configuration Model.

Provides the main configuration integrating fund, storage and logging
settings.
"""

from decimal import Decimal
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import Field, field_validator

from fund_ledger.fund.models.config import (
    ONE_DAY,
    REWARD_RATE_SCALE,
    FundParameters,
    rate_from_fraction,
)

from .base import BaseConfig


class FundSettings(BaseConfig):
    """
    Fund parameters as configured.

    Reward rates are human fractions ("0.01" == 1% of supply per epoch).

    Example:
        >>> settings = FundSettings(proposer_reward_rate="0.02", acceptance_timelock=3600)
        >>> params = settings.to_parameters()
    """

    owner: str = Field(
        default="governor",
        description="Identity holding the owner/approver role",
    )
    account: str = Field(
        default="fund",
        description="Account under which the fund holds its assets",
    )
    epoch_duration: int = Field(
        default=ONE_DAY,
        gt=0,
        description="Reward epoch length in seconds",
    )
    proposer_reward_rate: Decimal = Field(
        default=Decimal("0.01"),
        ge=0,
        le=1,
        description="Fraction of supply minted to proposers per epoch",
    )
    approver_reward_rate: Decimal = Field(
        default=Decimal("0.01"),
        ge=0,
        le=1,
        description="Fraction of supply minted to approvers per epoch",
    )
    acceptance_timelock: int = Field(
        default=0,
        ge=0,
        description="Seconds between intent-to-accept and accept (0 disables)",
    )
    proposal_ttl: int = Field(
        default=0,
        ge=0,
        description="Seconds a proposal stays acceptable (0 = never expires)",
    )
    share_decimals: int = Field(
        default=18,
        ge=0,
        le=36,
        description="Share token decimals",
    )
    share_symbol: str = Field(
        default="FUND",
        min_length=1,
        description="Share token symbol",
    )
    minting_unit_conversion: int = Field(
        default=100,
        gt=0,
        description="Bootstrap peg: deposit units at price 1 per whole share",
    )

    @field_validator("share_symbol")
    @classmethod
    def validate_symbol(cls, v: str) -> str:
        """Normalize symbol to upper case."""
        return v.upper()

    @property
    def proposer_rate_fixed(self) -> int:
        return rate_from_fraction(self.proposer_reward_rate)

    @property
    def approver_rate_fixed(self) -> int:
        return rate_from_fraction(self.approver_reward_rate)

    def to_parameters(self) -> FundParameters:
        """Build the mutable parameter set held in the fund state."""
        return FundParameters(
            epoch_duration=self.epoch_duration,
            proposer_reward_rate=self.proposer_rate_fixed,
            approver_reward_rate=self.approver_rate_fixed,
            acceptance_timelock=self.acceptance_timelock,
            proposal_ttl=self.proposal_ttl,
            share_decimals=self.share_decimals,
            share_symbol=self.share_symbol,
            minting_unit_conversion=self.minting_unit_conversion,
        )


class StorageSettings(BaseConfig):
    """SQLite persistence settings."""

    db_path: str = Field(
        default="data/fund_ledger.db",
        description="SQLite database file",
    )
    autosave: bool = Field(
        default=True,
        description="Save state after every successful call",
    )


class LoggingSettings(BaseConfig):
    """Logging settings."""

    level: str = Field(
        default="INFO",
        description="Logging level",
    )
    file: Optional[str] = Field(
        default=None,
        description="Rotating log file (console only when unset)",
    )
    audit_dir: Optional[str] = Field(
        default=None,
        description="Directory for the JSON-lines audit channel",
    )

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate and normalize log level."""
        v = v.upper().strip()
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v not in valid_levels:
            v = "INFO"
        return v

    @field_validator("file", "audit_dir")
    @classmethod
    def empty_as_none(cls, v: Optional[str]) -> Optional[str]:
        """Treat empty strings (unset env vars) as unset."""
        return v or None


class AppConfig(BaseConfig):
    """
    Main application configuration.

    Example:
        >>> config = AppConfig.from_yaml("config/fund.yaml")
        >>> params = config.fund.to_parameters()
    """

    environment: str = Field(
        default="development",
        description="Environment (development, staging, production)",
    )
    fund: FundSettings = Field(
        default_factory=FundSettings,
        description="Fund parameters",
    )
    storage: StorageSettings = Field(
        default_factory=StorageSettings,
        description="Persistence settings",
    )
    logging: LoggingSettings = Field(
        default_factory=LoggingSettings,
        description="Logging settings",
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate and normalize environment."""
        v = v.lower().strip()
        valid_envs = {"development", "staging", "production", "dev", "prod", "test"}
        if v not in valid_envs:
            v = "development"
        return v

    @property
    def is_production(self) -> bool:
        return self.environment in ("production", "prod")

    @classmethod
    def from_yaml(cls, path: str | Path) -> "AppConfig":
        """Load configuration from a YAML file without overlays."""
        path = Path(path)

        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AppConfig":
        return cls(**data)

    def to_yaml(self, path: str | Path) -> None:
        """Save configuration to a YAML file."""
        path = Path(path)
        data = self.model_dump(mode="json")

        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(data, f, default_flow_style=False, allow_unicode=True)

    def validate_for_production(self) -> list[str]:
        """
        Check settings that are unusual for a production fund.

        Returns:
            List of warnings (empty if none)
        """
        warnings = []
        total_rate = self.fund.proposer_rate_fixed + self.fund.approver_rate_fixed
        if total_rate > REWARD_RATE_SCALE // 10:
            warnings.append("Combined reward rate above 10% of supply per epoch")
        if self.fund.acceptance_timelock == 0 and self.is_production:
            warnings.append("No acceptance timelock in production")
        if not self.storage.autosave:
            warnings.append("Autosave disabled: state is lost on exit")
        return warnings
