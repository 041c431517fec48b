"""Configuration management using pydantic-settings."""
from typing import Dict, List, Optional

from pydantic_settings import BaseSettings

from config.precache import API_PREFIXES, PRECACHE_ASSETS


class Settings(BaseSettings):
    """Engine settings loaded from environment variables."""

    engine_name: str = "Offline Engine"
    engine_version: str = "3.0.0"

    # Site whose traffic is intercepted; relative URLs resolve against it
    origin: str = "http://localhost:8000"

    # Cache generation: bump a name to abandon the old namespace
    main_cache_name: str = "app-shell-v3.0"
    api_cache_name: str = "app-api-cache-v1"
    sync_cache_name: str = "app-sync-cache"

    # Request classification and fallbacks
    api_prefixes: List[str] = list(API_PREFIXES)
    precache_assets: List[str] = list(PRECACHE_ASSETS)
    offline_url: str = "/offline.html"
    root_url: str = "/"
    offline_marker_header: str = "X-Engine-Cache"
    offline_message: str = "You are offline. Data shown may be outdated."
    unavailable_status: int = 408

    # Notification defaults (used when a push payload omits a field)
    notification_title: str = "Offline Engine"
    notification_body: str = "You have a new notification"
    notification_icon: str = "/icons/icon-192x192.png"
    notification_badge: str = "/icons/icon-72x72.png"
    notification_tag: str = "engine-notification"
    vibrate_pattern: List[int] = [100, 50, 100]

    # Storage backend: "memory" or "sql"
    store_backend: str = "memory"
    store_url: str = "sqlite:///./engine_cache.db"

    # Background revalidation
    revalidation_workers: int = 4

    # Transport
    transport_retry_attempts: int = 2
    transport_timeout: Optional[float] = None

    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    def generation(self) -> Dict[str, str]:
        """Role -> versioned namespace name for the current build."""
        return {
            "main": self.main_cache_name,
            "api": self.api_cache_name,
            "sync": self.sync_cache_name,
        }


settings = Settings()
