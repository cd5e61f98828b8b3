"""Application settings loaded from environment variables and .env files."""

from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Hey future me, DatabaseSettings feeds straight into Database.__init__. The pool_* values are
# ONLY applied for PostgreSQL - SQLite ignores pooling and gets connect_args instead. Default URL
# points at a local SQLite file so a fresh checkout works without any env vars at all.
class DatabaseSettings(BaseModel):
    """Database connection settings."""

    url: str = "sqlite+aiosqlite:///./tunevault.db"
    echo: bool = False
    pool_pre_ping: bool = True
    pool_size: int = 5
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 3600


class StorageSettings(BaseModel):
    """Filesystem locations used by the engine.

    data_dir holds everything we write ourselves (processed covers, extracted
    embedded artwork). Music roots come from Library rows, not from here.
    """

    data_dir: Path = Path("./data")

    @field_validator("data_dir", mode="before")
    @classmethod
    def _expand_data_dir(cls, value: str | Path) -> Path:
        return Path(value).expanduser()

    @property
    def covers_path(self) -> Path:
        """Directory for album covers (embedded extracts + processed downloads)."""
        return self.data_dir / "covers"


# Listen up, MusicBrainz REJECTS requests without a proper User-Agent! app_name/app_version/contact
# are glued together as "AppName/Version ( contact )" by the client. Put a real contact here in
# production or they may block us. cache_ttl_seconds defaults to 24h - release data barely changes.
class MusicBrainzSettings(BaseModel):
    """MusicBrainz / Cover Art Archive client settings."""

    app_name: str = "TuneVault"
    app_version: str = "0.3.0"
    contact: str = "https://github.com/tunevault/tunevault"
    request_timeout: float = 15.0
    cache_ttl_seconds: int = 86400


# Hey future me - TWO thresholds on purpose! auto_link_threshold gates the unattended write during
# scans (98 = basically "only when it's obviously right"). manual_match_threshold is the lower bar
# for suggesting a candidate to a human. Don't merge them.
class MatchingSettings(BaseModel):
    """Album matching and auto-link settings."""

    auto_link_threshold: int = Field(default=98, ge=0, le=100)
    manual_match_threshold: int = Field(default=80, ge=0, le=100)
    max_candidates: int = Field(default=5, ge=1)
    search_limit: int = Field(default=10, ge=1, le=100)


class ObservabilitySettings(BaseModel):
    """Logging settings."""

    log_json_format: bool = False


class Settings(BaseSettings):
    """Root settings object.

    Nested groups are set from the environment with a double underscore,
    e.g. ``TUNEVAULT_DATABASE__URL`` or ``TUNEVAULT_MATCHING__AUTO_LINK_THRESHOLD``.
    """

    model_config = SettingsConfigDict(
        env_prefix="TUNEVAULT_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "tunevault"
    log_level: str = "INFO"

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    musicbrainz: MusicBrainzSettings = Field(default_factory=MusicBrainzSettings)
    matching: MatchingSettings = Field(default_factory=MatchingSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {value}")
        return level


# Yo, lru_cache makes this a process-wide singleton. Tests that need different values should
# build Settings(...) directly instead of calling this (or call get_settings.cache_clear()).
@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
