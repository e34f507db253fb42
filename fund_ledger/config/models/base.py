"""
Base Configuration Model.

Settings models are frozen pydantic models that resolve ``${VAR}`` and
``${VAR:default}`` references in string values before validation, so
models built directly in code behave like those loaded from YAML.
"""

import os
import re
from typing import Any

from pydantic import BaseModel, ConfigDict, model_validator

ENV_REFERENCE = re.compile(r"\$\{([^}:]+)(?::([^}]*))?\}")


def expand_references(value: Any) -> Any:
    """
    Replace environment references inside strings, recursing into containers.

    An unset variable without a default expands to the empty string.

    Example:
        >>> expand_references({"db_path": "${FUND_DB:data/fund.db}"})
        {'db_path': 'data/fund.db'}
    """
    if isinstance(value, str):
        return ENV_REFERENCE.sub(
            lambda m: os.environ.get(m.group(1), m.group(2) or ""),
            value,
        )
    if isinstance(value, dict):
        return {key: expand_references(item) for key, item in value.items()}
    if isinstance(value, list):
        return [expand_references(item) for item in value]
    return value


class BaseConfig(BaseModel):
    """
    Common base of all settings models.

    Instances are immutable, unknown keys are dropped and string fields are
    stripped.

    Example:
        >>> class StorageSettings(BaseConfig):
        ...     db_path: str = "data/fund_ledger.db"
        >>> StorageSettings(db_path="${FUND_LEDGER_DB:data/fund.db}").db_path
        'data/fund.db'
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        validate_default=True,
        str_strip_whitespace=True,
    )

    @model_validator(mode="before")
    @classmethod
    def _expand_environment(cls, data: Any) -> Any:
        return expand_references(data) if isinstance(data, dict) else data

    def __str__(self) -> str:
        rendered = ", ".join(f"{name}={value!r}" for name, value in self.model_dump().items())
        return f"{type(self).__name__}({rendered})"
