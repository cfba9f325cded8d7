"""
Configuration module for repo-sync.

This module exports all configuration-related objects.
"""

from repo_sync.config.settings import Settings, settings

__all__ = [
    "Settings",
    "settings",
]
