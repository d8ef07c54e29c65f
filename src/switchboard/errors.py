"""Exception hierarchy shared across Switchboard components."""

from __future__ import annotations


class SwitchboardError(RuntimeError):
    """Base class for Switchboard errors."""


class ConfigurationError(SwitchboardError):
    """Raised before any process is spawned; retrying cannot fix these."""


class LaunchError(SwitchboardError):
    """Raised when the external CLI cannot be started."""


__all__ = ["ConfigurationError", "LaunchError", "SwitchboardError"]
