# Config module - fund ledger configuration
from .exceptions import (
    ConfigError,
    ConfigFileNotFoundError,
    ConfigParseError,
    ConfigValidationError,
)
from .loader import ConfigLoader, load_config
from .models import (
    AppConfig,
    BaseConfig,
    FundSettings,
    LoggingSettings,
    StorageSettings,
)

__all__ = [
    # Exceptions
    "ConfigError",
    "ConfigFileNotFoundError",
    "ConfigParseError",
    "ConfigValidationError",
    # Loader
    "ConfigLoader",
    "load_config",
    # Models
    "BaseConfig",
    "FundSettings",
    "StorageSettings",
    "LoggingSettings",
    "AppConfig",
]
