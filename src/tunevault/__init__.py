"""TuneVault - library synchronization and metadata reconciliation engine."""

__version__ = "0.3.0"
