"""Exceptions raised by pii-cloak."""

from __future__ import annotations


class CloakError(Exception):
    """Base class for pii-cloak errors."""


class InvalidEntityMapError(CloakError, ValueError):
    """The entity map handed to deanonymize is not a str → str mapping."""


class ConfigError(CloakError, ValueError):
    """A configuration source could not be interpreted."""
