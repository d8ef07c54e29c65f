"""Switchboard: headless delegation to profile-selected Claude CLI backends."""

__version__ = "0.1.0"
