"""Configuration management using pydantic-settings."""
import logging
from typing import Dict, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Cache settings loaded from INVCACHE_* environment variables."""

    # Master switch: when off, every read goes upstream (still coalesced)
    cache_enabled: bool = True

    # Lifetime for namespaces without an entry in NAMESPACE_TTL
    default_ttl_seconds: float = Field(300.0, gt=0)

    # Live data: interactive freshness window and outage fallback window
    realtime_max_age_seconds: float = Field(30.0, gt=0)
    fallback_max_age_seconds: float = Field(300.0, gt=0)

    # Per-namespace TTL overrides, e.g. INVCACHE_NAMESPACE_TTLS='{"stock": 15}'
    namespace_ttls: Dict[str, float] = {}

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="INVCACHE_",
        env_file=".env",
        env_file_encoding="utf-8",
    )


settings = Settings()


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging at the configured level."""
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
