"""Configuration module for TuneVault."""

from .settings import (
    DatabaseSettings,
    MatchingSettings,
    MusicBrainzSettings,
    ObservabilitySettings,
    Settings,
    StorageSettings,
    get_settings,
)

__all__ = [
    "DatabaseSettings",
    "MatchingSettings",
    "MusicBrainzSettings",
    "ObservabilitySettings",
    "Settings",
    "StorageSettings",
    "get_settings",
]
