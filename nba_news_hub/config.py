"""Configuration management for NBA News Hub."""

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_FEED_CONFIG = Path(__file__).parent / "feeds.yaml"


class SourceConfig(BaseModel):
    """News source configuration."""
    name: str
    id: str
    url: HttpUrl
    quality_bonus: float = 0.0
    exclude_paths: list[str] = Field(default_factory=list)
    enrich_images: bool = False


class Settings(BaseSettings):
    """Main application settings."""

    # ── Operational Mode ───────────────────────────────────────────────────
    mock: bool = Field(False, description="Use mock articles instead of live feeds")

    # ── Ingestion Settings ─────────────────────────────────────────────────
    global_parallel: int = Field(10, description="Global semaphore limit for feed fetches")
    feed_timeout_seconds: float = Field(30.0, description="Total timeout for a feed request")
    feed_retry_attempts: int = Field(2, description="Retries for a failed feed request")
    summary_max_length: int = Field(300, description="Maximum stored summary length")
    image_timeout_seconds: float = Field(5.0, description="Timeout for og:image page fetches")
    image_max_bytes: int = Field(15_000, description="Bytes of page HTML scanned for og:image")
    user_agent: str = Field(
        "NBANewsHub/0.1 (NBA news aggregation; sentiment analyzer)",
        description="User agent for web requests"
    )

    # ── Deduplication ──────────────────────────────────────────────────────
    dedupe_strategy: Literal["fuzzy", "fingerprint"] = Field(
        "fuzzy", description="Duplicate detection strategy"
    )
    dedupe_similarity_threshold: float = Field(0.45, description="Jaccard threshold for duplicates")
    dedupe_min_shared_entities: int = Field(2, description="Shared headline entities that mark a duplicate")
    dedupe_window_hours: float = Field(12.0, description="Max publish-time gap for duplicate candidates")

    # ── Storage & Caching ──────────────────────────────────────────────────
    database_path: Path | None = Field(None, description="SQLite cache path; unset uses in-process cache")
    news_cache_ttl_seconds: int = Field(15 * 60, description="News cache time-to-live")
    news_read_limit: int = Field(50, description="Rows read back from the news cache")

    # ── Sentiment ──────────────────────────────────────────────────────────
    youtube_api_key: str | None = Field(None, description="YouTube Data API v3 key")
    reddit_enabled: bool = Field(True, description="Use Reddit comments when YouTube is not configured")
    min_comments_for_sentiment: int = Field(3, description="Comments needed before using comment sentiment")
    max_comments_per_article: int = Field(25, description="Comments analyzed per article")
    comment_request_delay: float = Field(0.2, description="Pause after each comment lookup (seconds)")
    comment_timeout_seconds: float = Field(10.0, description="Timeout for comment API requests")

    # ── API Settings ───────────────────────────────────────────────────────
    api_port: int = Field(8000, description="HTTP API port")
    api_host: str = Field("127.0.0.1", description="API host binding")

    # ── Logging ────────────────────────────────────────────────────────────
    log_level: str = Field("INFO", description="Log level")
    json_logging: bool = Field(True, description="Enable JSON logging")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("dedupe_similarity_threshold")
    @classmethod
    def validate_threshold(cls, v: float) -> float:
        """Validate deduplication threshold."""
        if not 0 <= v <= 1:
            raise ValueError("Deduplication threshold must be between 0 and 1")
        return v

    @field_validator("dedupe_window_hours", "news_cache_ttl_seconds", "image_timeout_seconds")
    @classmethod
    def validate_positive(cls, v: float) -> float:
        """Validate durations are positive."""
        if v <= 0:
            raise ValueError("Duration must be positive")
        return v

    @field_validator("comment_request_delay")
    @classmethod
    def validate_delay(cls, v: float) -> float:
        if v < 0:
            raise ValueError("Delay cannot be negative")
        return v


class FeedConfig:
    """Feed source configuration loader."""

    def __init__(self, config_path: str | Path = DEFAULT_FEED_CONFIG):
        self.config_path = Path(config_path)
        self._config: dict[str, Any] = {}
        self.load_config()

    def load_config(self) -> None:
        """Load feed configuration from YAML file."""
        if not self.config_path.exists():
            raise FileNotFoundError(f"Feed config file not found: {self.config_path}")

        with open(self.config_path, encoding="utf-8") as f:
            self._config = yaml.safe_load(f) or {}

    def get_sources(self) -> list[SourceConfig]:
        """Get configured news sources."""
        sources_data = self._config.get("sources", [])
        return [SourceConfig(**source) for source in sources_data]

    def get_source_bonuses(self) -> dict[str, float]:
        """Get quality bonus per source id."""
        return {source.id: source.quality_bonus for source in self.get_sources()}

    def get_exclude_paths(self) -> dict[str, list[str]]:
        """Get non-NBA URL path segments per source id."""
        return {source.id: source.exclude_paths for source in self.get_sources()}


# Global instances
settings = Settings()
feed_config = FeedConfig()


def get_settings() -> Settings:
    """Get application settings."""
    return settings


def get_feed_config() -> FeedConfig:
    """Get feed configuration."""
    return feed_config


def validate_config(settings: Settings) -> bool:
    """Validate configuration completeness."""
    try:
        sources = get_feed_config().get_sources()
        if not sources and not settings.mock:
            raise ValueError("No news sources configured in feeds.yaml")

        ids = [source.id for source in sources]
        if len(ids) != len(set(ids)):
            raise ValueError("Source ids in feeds.yaml must be unique")

        if settings.database_path is not None and settings.database_path.is_dir():
            raise ValueError(f"DATABASE_PATH points to a directory: {settings.database_path}")

        return True

    except Exception as e:
        print(f"Configuration validation failed: {e}")
        return False


if __name__ == "__main__":
    # Configuration validation
    if validate_config(get_settings()):
        print("✅ Configuration is valid")
    else:
        print("❌ Configuration validation failed")
        exit(1)
