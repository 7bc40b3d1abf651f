"""Configuration primitives for the Smaart remote-control client."""

from .settings import ClientSettings, get_settings

__all__ = ["ClientSettings", "get_settings"]
