"""Configuration module."""

from .settings import DEFAULT_HIGHLIGHT_RULES, Settings, settings

__all__ = ["DEFAULT_HIGHLIGHT_RULES", "Settings", "settings"]
