"""
Configuration Exceptions.

Raised while reading and validating fund configuration files. They sit
outside the FundLedgerError hierarchy: a bad file stops start-up rather
than a single ledger call.
"""

from typing import List


class ConfigError(Exception):
    """Base class for configuration problems."""


class ConfigFileNotFoundError(ConfigError):
    """The requested configuration file does not exist."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Configuration file not found: {path}")


class ConfigParseError(ConfigError):
    """A configuration file is not valid YAML or not a mapping."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot parse {path}: {reason}")


class ConfigValidationError(ConfigError):
    """
    Settings were rejected by the models.

    ``errors`` holds one ``"<dotted.field>: <message>"`` entry per problem.
    """

    def __init__(self, errors: List[str]):
        self.errors = errors
        lines = "\n".join(f"  {entry}" for entry in errors)
        super().__init__(f"Invalid fund configuration ({len(errors)} problem(s)):\n{lines}")
