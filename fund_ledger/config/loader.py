"""
Configuration Loader.

Reads ``fund.yaml``, merges an optional ``fund.<env>.yaml`` overlay,
resolves ``${VAR}`` / ``${VAR:default}`` references and validates the
result into an AppConfig.
"""

import os
import re
from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from .exceptions import (
    ConfigFileNotFoundError,
    ConfigParseError,
    ConfigValidationError,
)
from .models import AppConfig
from .models.base import ENV_REFERENCE

_TRUE_WORDS = frozenset({"true", "yes", "on"})
_FALSE_WORDS = frozenset({"false", "no", "off"})


class ConfigLoader:
    """
    Loads fund configuration files.

    Steps, in order: the first ``.env`` found is loaded into the process
    environment; the base file is read; the environment overlay (if any)
    is merged over it; references are resolved; pydantic validates.

    Example:
        >>> config = ConfigLoader().load("config/fund.yaml", env="production")
        >>> config.fund.acceptance_timelock
        3600
    """

    def __init__(self, env_file: Optional[str | Path] = None):
        self._env_file = Path(env_file) if env_file else None
        self._dotenv_done = False

    def load(self, path: str | Path, env: Optional[str] = None) -> AppConfig:
        """
        Load and validate a configuration file.

        Args:
            path: Base YAML file
            env: Environment name; selects ``<stem>.<env><suffix>`` beside it

        Raises:
            ConfigFileNotFoundError: Base file missing
            ConfigParseError: Invalid YAML, or top level not a mapping
            ConfigValidationError: Values rejected by the settings models
        """
        path = Path(path)
        self._load_dotenv(path.parent)

        raw = self.load_yaml(path)
        if env:
            overlay = path.with_name(f"{path.stem}.{env}{path.suffix}")
            if overlay.exists():
                raw = self.merge_configs(raw, self.load_yaml(overlay))
            raw["environment"] = env

        try:
            return AppConfig(**self.substitute_env_vars(raw))
        except ValidationError as e:
            raise ConfigValidationError(_describe(e)) from e

    def load_yaml(self, path: str | Path) -> Dict[str, Any]:
        """Read one YAML mapping; an empty file yields ``{}``."""
        path = Path(path)
        if not path.exists():
            raise ConfigFileNotFoundError(str(path))

        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
        except yaml.YAMLError as e:
            raise ConfigParseError(str(path), str(e)) from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigParseError(str(path), f"expected a mapping, got {type(data).__name__}")
        return data

    def merge_configs(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """
        Recursively merge ``override`` over ``base`` without mutating either.

        Example:
            >>> loader.merge_configs({"fund": {"epoch_duration": 86400, "proposal_ttl": 0}},
            ...                      {"fund": {"proposal_ttl": 604800}})
            {'fund': {'epoch_duration': 86400, 'proposal_ttl': 604800}}
        """
        merged = deepcopy(base)
        for key, value in override.items():
            current = merged.get(key)
            if isinstance(current, dict) and isinstance(value, dict):
                merged[key] = self.merge_configs(current, value)
            else:
                merged[key] = deepcopy(value)
        return merged

    def substitute_env_vars(self, data: Any) -> Any:
        """Resolve environment references in every string of a nested structure."""
        if isinstance(data, dict):
            return {key: self.substitute_env_vars(value) for key, value in data.items()}
        if isinstance(data, list):
            return [self.substitute_env_vars(item) for item in data]
        if isinstance(data, str):
            return self._resolve(data)
        return data

    def _resolve(self, text: str) -> Any:
        # A value that is a single reference takes the referenced value's type
        whole = ENV_REFERENCE.fullmatch(text)
        if whole:
            name, default = whole.groups()
            value = os.environ.get(name, default)
            return text if value is None else self._convert_value(value)

        def lookup(match: re.Match) -> str:
            name, default = match.groups()
            fallback = default if default is not None else match.group(0)
            return os.environ.get(name, fallback)

        return ENV_REFERENCE.sub(lookup, text)

    def _convert_value(self, value: str) -> Any:
        """
        Type an environment value: booleans, ints and exponent floats.

        Dotted decimals such as ``"0.01"`` stay strings so reward rates reach
        Decimal fields without a float round trip.
        """
        lowered = value.strip().lower()
        if lowered in _TRUE_WORDS:
            return True
        if lowered in _FALSE_WORDS:
            return False
        if "." in value:
            return value

        try:
            return int(value)
        except ValueError:
            pass
        try:
            return float(value)
        except ValueError:
            return value

    def _load_dotenv(self, config_dir: Path) -> None:
        """Load the first ``.env`` found: explicit file, config dir, its parent, cwd."""
        if self._dotenv_done:
            return

        candidates = [self._env_file] if self._env_file else []
        candidates += [config_dir / ".env", config_dir.parent / ".env", Path.cwd() / ".env"]

        for candidate in candidates:
            if candidate.exists():
                load_dotenv(candidate)
                self._dotenv_done = True
                return


def _describe(error: ValidationError) -> List[str]:
    return [
        f"{'.'.join(str(part) for part in item['loc'])}: {item['msg']}"
        for item in error.errors()
    ]


def load_config(
    path: str | Path,
    env: Optional[str] = None,
    env_file: Optional[str | Path] = None,
) -> AppConfig:
    """Load a configuration file with an optional environment overlay."""
    return ConfigLoader(env_file=env_file).load(path, env=env)
