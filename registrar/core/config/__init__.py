"""Configuration management module."""

from .settings import RegistrarSettings, get_settings, reset_settings

__all__ = ["RegistrarSettings", "get_settings", "reset_settings"]
