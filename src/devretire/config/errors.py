"""Errors raised while loading devretire settings from the environment."""

from __future__ import annotations


class ConfigurationError(RuntimeError):
    """An environment setting is present but unusable."""

    def __init__(self, message: str, *, variables: tuple[str, ...] = ()) -> None:
        super().__init__(message)
        self.variables = variables


class MissingConfigurationError(ConfigurationError):
    """One or more required settings are unset or blank."""
