# Configuration models
from .app import AppConfig, FundSettings, LoggingSettings, StorageSettings
from .base import BaseConfig

__all__ = [
    "BaseConfig",
    "FundSettings",
    "StorageSettings",
    "LoggingSettings",
    "AppConfig",
]
