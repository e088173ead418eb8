"""Environment-based configuration with validation."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from cashtag_radar.core.errors import ConfigurationError

# Load .env from project root or cwd
_env_path = Path(__file__).resolve().parent / ".env"
if _env_path.exists():
    load_dotenv(_env_path)
else:
    load_dotenv()


def _env(key: str, default: str = "") -> str:
    return os.getenv(key, default)


def _env_int(key: str, default: int = 0) -> int:
    return int(os.getenv(key, str(default)))


def _env_float(key: str, default: float = 0.0) -> float:
    return float(os.getenv(key, str(default)))


def _env_bool(key: str, default: bool = False) -> bool:
    return os.getenv(key, str(default)).lower() in ("1", "true", "yes")


def _env_list(key: str, default: str) -> tuple[str, ...]:
    raw = os.getenv(key, default)
    return tuple(part.strip() for part in raw.split(",") if part.strip())


def _env_range(key: str, default: str) -> tuple[int, int]:
    """Parse ``"min-max"`` milliseconds, e.g. ``"3000-7000"``."""
    raw = os.getenv(key, default)
    low, _, high = raw.partition("-")
    lo = int(low)
    hi = int(high) if high else lo
    return (min(lo, hi), max(lo, hi))


_DEFAULT_TERMS = "memecoin,pumpfun,solana,crypto,meme,bags,bonk"


# ---------------------------------------------------------------------------
# Sub-configs
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    """Postgres (Supabase) connection settings."""

    url: str = field(default_factory=lambda: _env("DATABASE_URL"))
    host: str = field(default_factory=lambda: _env("DB_HOST", "localhost"))
    port: int = field(default_factory=lambda: _env_int("DB_PORT", 5432))
    user: str = field(default_factory=lambda: _env("DB_USER", "postgres"))
    password: str = field(default_factory=lambda: _env("DB_PASSWORD"))
    database: str = field(default_factory=lambda: _env("DB_NAME", "postgres"))
    pool_min: int = field(default_factory=lambda: _env_int("DB_POOL_MIN", 2))
    pool_max: int = field(default_factory=lambda: _env_int("DB_POOL_MAX", 10))

    @property
    def dsn(self) -> str:
        if self.url:
            return self.url
        return (
            f"postgresql://{self.user}:{self.password}"
            f"@{self.host}:{self.port}/{self.database}"
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.url or self.password)


@dataclass(frozen=True, slots=True)
class ScraperConfig:
    """TikTok listing and comment scraping settings."""

    search_terms: tuple[str, ...] = field(
        default_factory=lambda: _env_list("SCRAPER_SEARCH_TERMS", _DEFAULT_TERMS)
    )
    hashtags: tuple[str, ...] = field(
        default_factory=lambda: _env_list("SCRAPER_HASHTAGS", _DEFAULT_TERMS)
    )
    max_results_search: int = field(
        default_factory=lambda: _env_int("SCRAPER_MAX_RESULTS_SEARCH", 100)
    )
    max_results_hashtag: int = field(
        default_factory=lambda: _env_int("SCRAPER_MAX_RESULTS_HASHTAG", 200)
    )
    base_url: str = field(
        default_factory=lambda: _env("SCRAPER_BASE_URL", "https://www.tiktok.com")
    )
    headless: bool = field(
        default_factory=lambda: _env_bool("SCRAPER_HEADLESS", True)
    )
    navigation_timeout_ms: int = field(
        default_factory=lambda: _env_int("SCRAPER_NAV_TIMEOUT_MS", 60000)
    )
    container_timeout_ms: int = field(
        default_factory=lambda: _env_int("SCRAPER_CONTAINER_TIMEOUT_MS", 10000)
    )
    comment_page_size: int = field(
        default_factory=lambda: _env_int("SCRAPER_COMMENT_PAGE_SIZE", 50)
    )
    comment_max_pages: int = field(
        default_factory=lambda: _env_int("SCRAPER_COMMENT_MAX_PAGES", 5)
    )
    cycle_interval_minutes: int = field(
        default_factory=lambda: _env_int("SCRAPER_CYCLE_INTERVAL_MINUTES", 60)
    )


@dataclass(frozen=True, slots=True)
class MentionConfig:
    """Ticker recognition rules."""

    mode: str = field(default_factory=lambda: _env("MENTION_MODE", "cashtag"))
    vocabulary: tuple[str, ...] = field(
        default_factory=lambda: _env_list("MENTION_VOCABULARY", "")
    )
    vocabulary_from_tokens: bool = field(
        default_factory=lambda: _env_bool("MENTION_VOCABULARY_FROM_TOKENS", False)
    )


@dataclass(frozen=True, slots=True)
class PacingConfig:
    """Human-pacing delay ranges in milliseconds, per action class."""

    page_load: tuple[int, int] = field(
        default_factory=lambda: _env_range("PACE_PAGE_LOAD_MS", "3000-7000")
    )
    scroll: tuple[int, int] = field(
        default_factory=lambda: _env_range("PACE_SCROLL_MS", "2000-5000")
    )
    empty_feed: tuple[int, int] = field(
        default_factory=lambda: _env_range("PACE_EMPTY_FEED_MS", "4000-8000")
    )
    inter_item: tuple[int, int] = field(
        default_factory=lambda: _env_range("PACE_INTER_ITEM_MS", "500-1500")
    )
    inter_term: tuple[int, int] = field(
        default_factory=lambda: _env_range("PACE_INTER_TERM_MS", "5000-10000")
    )
    monitor_item: tuple[int, int] = field(
        default_factory=lambda: _env_range("PACE_MONITOR_ITEM_MS", "2000-2000")
    )
    inter_channel: tuple[int, int] = field(
        default_factory=lambda: _env_range("PACE_INTER_CHANNEL_MS", "2000-2000")
    )


@dataclass(frozen=True, slots=True)
class StealthConfig:
    """Browser fingerprint profile."""

    user_agent: str = field(
        default_factory=lambda: _env(
            "STEALTH_USER_AGENT",
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/129.0.0.0 Safari/537.36",
        )
    )
    locale: str = field(default_factory=lambda: _env("STEALTH_LOCALE", "en-US"))
    timezone_id: str = field(
        default_factory=lambda: _env("STEALTH_TIMEZONE", "America/New_York")
    )
    accept_language: str = field(
        default_factory=lambda: _env("STEALTH_ACCEPT_LANGUAGE", "en-US,en;q=0.9")
    )
    referer: str = field(
        default_factory=lambda: _env("STEALTH_REFERER", "https://www.tiktok.com/")
    )


@dataclass(frozen=True, slots=True)
class MonitorConfig:
    """Mention re-check loop settings."""

    interval_seconds: int = field(
        default_factory=lambda: _env_int("MONITOR_INTERVAL_SECONDS", 600)
    )
    staleness_minutes: int = field(
        default_factory=lambda: _env_int("MONITOR_STALENESS_MINUTES", 10)
    )
    batch_size: int = field(
        default_factory=lambda: _env_int("MONITOR_BATCH_SIZE", 5)
    )
    max_consecutive_failures: int = field(
        default_factory=lambda: _env_int("MONITOR_MAX_CONSECUTIVE_FAILURES", 3)
    )
    retry_delay_seconds: int = field(
        default_factory=lambda: _env_int("MONITOR_RETRY_DELAY_SECONDS", 30)
    )


@dataclass(frozen=True, slots=True)
class TelegramConfig:
    """Telegram MTProto credentials (Telethon user session) and scrape rules."""

    api_id: int = field(default_factory=lambda: _env_int("TELEGRAM_API_ID"))
    api_hash: str = field(default_factory=lambda: _env("TELEGRAM_API_HASH"))
    phone: str = field(default_factory=lambda: _env("TELEGRAM_PHONE"))
    session_name: str = field(
        default_factory=lambda: _env("TELEGRAM_SESSION_NAME", "cashtag_radar")
    )
    channels: tuple[str, ...] = field(
        default_factory=lambda: _env_list("TELEGRAM_CHANNELS", "")
    )
    discovery_keywords: tuple[str, ...] = field(
        default_factory=lambda: _env_list(
            "TELEGRAM_DISCOVERY_KEYWORDS", _DEFAULT_TERMS
        )
    )
    discovery_limit: int = field(
        default_factory=lambda: _env_int("TELEGRAM_DISCOVERY_LIMIT", 20)
    )
    recency_days: int = field(
        default_factory=lambda: _env_int("TELEGRAM_RECENCY_DAYS", 30)
    )
    messages_per_channel: int = field(
        default_factory=lambda: _env_int("TELEGRAM_MESSAGES_PER_CHANNEL", 1000)
    )
    media_dir: str = field(
        default_factory=lambda: _env("TELEGRAM_MEDIA_DIR", "telegram_media")
    )
    cycle_interval_minutes: int = field(
        default_factory=lambda: _env_int("TELEGRAM_CYCLE_INTERVAL_MINUTES", 15)
    )
    discovery_interval_hours: int = field(
        default_factory=lambda: _env_int("TELEGRAM_DISCOVERY_INTERVAL_HOURS", 6)
    )


@dataclass(frozen=True, slots=True)
class MarketConfig:
    """Dexscreener market data lookups."""

    api_url: str = field(
        default_factory=lambda: _env(
            "DEXSCREENER_API_URL",
            "https://api.dexscreener.com/latest/dex/tokens",
        )
    )
    timeout_seconds: float = field(
        default_factory=lambda: _env_float("DEXSCREENER_TIMEOUT", 10.0)
    )


@dataclass(frozen=True, slots=True)
class TrendingConfig:
    """Aggregation job settings."""

    interval_seconds: int = field(
        default_factory=lambda: _env_int("TRENDING_INTERVAL_SECONDS", 900)
    )
    lookback_hours: int = field(
        default_factory=lambda: _env_int("TRENDING_LOOKBACK_HOURS", 24)
    )
    high_correlation: float = field(
        default_factory=lambda: _env_float("TRENDING_HIGH_CORRELATION", 0.7)
    )
    max_consecutive_failures: int = field(
        default_factory=lambda: _env_int("TRENDING_MAX_CONSECUTIVE_FAILURES", 3)
    )


@dataclass(frozen=True, slots=True)
class DashboardConfig:
    """Aggregate HTTP endpoints."""

    host: str = field(default_factory=lambda: _env("DASHBOARD_HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: _env_int("DASHBOARD_PORT", 8080))
    poll_seconds: float = field(
        default_factory=lambda: _env_float("DASHBOARD_POLL_SECONDS", 5.0)
    )


@dataclass(frozen=True, slots=True)
class MetricsConfig:
    """Prometheus metrics settings."""

    enabled: bool = field(
        default_factory=lambda: _env_bool("METRICS_ENABLED", False)
    )
    port: int = field(
        default_factory=lambda: _env_int("METRICS_PORT", 9090)
    )


# ---------------------------------------------------------------------------
# Root config
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Root application configuration aggregating all sub-configs."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    scraper: ScraperConfig = field(default_factory=ScraperConfig)
    mentions: MentionConfig = field(default_factory=MentionConfig)
    pacing: PacingConfig = field(default_factory=PacingConfig)
    stealth: StealthConfig = field(default_factory=StealthConfig)
    monitor: MonitorConfig = field(default_factory=MonitorConfig)
    telegram: TelegramConfig = field(default_factory=TelegramConfig)
    market: MarketConfig = field(default_factory=MarketConfig)
    trending: TrendingConfig = field(default_factory=TrendingConfig)
    dashboard: DashboardConfig = field(default_factory=DashboardConfig)
    metrics: MetricsConfig = field(default_factory=MetricsConfig)
    log_level: str = field(
        default_factory=lambda: _env("LOG_LEVEL", "INFO")
    )
    log_json: bool = field(
        default_factory=lambda: _env_bool("LOG_JSON", False)
    )

    def validate(self, command: str, *, dry_run: bool = False) -> None:
        """Raise ``ConfigurationError`` listing every missing setting."""
        errors: list[str] = []
        if not dry_run and not self.database.is_configured:
            errors.append("DATABASE_URL (or DB_PASSWORD) is required")
        if command == "telegram":
            if not self.telegram.api_id:
                errors.append("TELEGRAM_API_ID is required")
            if not self.telegram.api_hash:
                errors.append("TELEGRAM_API_HASH is required")
            if not self.telegram.phone:
                errors.append("TELEGRAM_PHONE is required")
        if self.mentions.mode not in ("cashtag", "keyword"):
            errors.append("MENTION_MODE must be 'cashtag' or 'keyword'")
        if (
            self.mentions.mode == "keyword"
            and not self.mentions.vocabulary
            and not self.mentions.vocabulary_from_tokens
        ):
            errors.append(
                "MENTION_VOCABULARY is required in keyword mode "
                "unless MENTION_VOCABULARY_FROM_TOKENS is set"
            )
        if command == "monitor" and self.monitor.batch_size < 1:
            errors.append("MONITOR_BATCH_SIZE must be at least 1")
        if errors:
            raise ConfigurationError(errors)
