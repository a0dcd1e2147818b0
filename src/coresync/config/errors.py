"""Errors raised while reading coresync's configuration."""

from __future__ import annotations


class ConfigurationError(RuntimeError):
    """A configuration value is present but unusable."""


class MissingConfigurationError(ConfigurationError):
    """One or more required variables are unset or blank."""
