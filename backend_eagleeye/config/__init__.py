"""
Configuration management for Backend Eagle Eye.

Loads and validates settings from environment variables and an optional
.env file. Exposes a single source of truth for client, batch, API and
storage configuration.
"""

from backend_eagleeye.config.settings import Settings, get_settings  # noqa: F401

__all__ = ["Settings", "get_settings"]
