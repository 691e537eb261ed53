"""Errors raised while reading sellerscope settings from the environment."""

from __future__ import annotations


class ConfigurationError(RuntimeError):
    """A ``SELLERSCOPE_*`` or store variable holds a value we cannot use."""


class MissingConfigurationError(ConfigurationError):
    """A required variable, such as the origin store URL, is unset or blank."""
