"""Application settings loaded from environment variables via pydantic-settings.

Settings are read from two sources, in priority order:

1. **Environment variables**, e.g. ``CATALOG_BASE_URL=http://localhost:9000``
2. **.env file** in the working directory (local development)

Field ``result_cache_ttl`` maps to env var ``RESULT_CACHE_TTL``; defaults
apply when neither source defines a value.  Per-window strictness profiles
are not settings; they live in ``config/config.yaml`` (see loader.py).
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """chromaFM application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # === Catalog service ===
    catalog_base_url: str = "https://api.spotify.com/v1"
    http_timeout: float = 30.0
    image_timeout: float = 15.0
    # Delay bounds (seconds) applied to Retry-After before the single 429 retry.
    retry_wait_min: float = 0.2
    retry_wait_max: float = 5.0

    # === Enrichment ===
    enrichment_concurrency: int = 6

    # === Caches (TTL in seconds, capacity in entries) ===
    lookup_cache_ttl: float = 20.0
    lookup_cache_size: int = 2500
    color_cache_ttl: float = 6 * 60 * 60.0
    color_cache_size: int = 1200
    result_cache_ttl: float = 12.0
    result_cache_size: int = 120
    bundle_debounce: float = 15.0
    bundle_cache_size: int = 120

    # === HTTP surface ===
    # Comma-separated list of allowed browser origins.
    cors_origins: str = "http://localhost:5173,http://127.0.0.1:5173"

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"
    # "stdout" or "stderr"; the CLI switches to stderr to keep results clean.
    log_stream: str = "stdout"

    def get_cors_origins(self) -> list[str]:
        """Return the configured CORS origins as a list."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]
