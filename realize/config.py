"""Realize Reporter — Central Configuration via Pydantic Settings."""

from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables / .env file."""

    # ── Realize (Backstage) API ──
    realize_client_id: str = ""
    realize_client_secret: str = ""
    realize_base_url: str = "https://backstage.taboola.com/backstage"
    realize_token_url: str = "https://backstage.taboola.com/backstage/oauth/token"
    realize_gui_url: str = "https://ads.realizeperformance.com"
    realize_debug_token: str = ""  # Skips the OAuth exchange when set

    # ── HTTP ──
    request_timeout: Optional[float] = 30.0
    max_retries: int = 3
    retry_base_delay: float = 2.0  # seconds

    # ── Report limits ──
    max_response_bytes: int = 20 * 1024 * 1024
    max_report_rows: int = 10_000
    site_breakdown_row_cap: int = 50
    site_breakdown_page_size: int = 10

    # ── Caching ──
    account_cache_ttl_seconds: int = 8 * 60 * 60
    token_safety_seconds: int = 60

    # ── Local storage ──
    database_url: str = ""
    download_directory: str = ""

    # ── App ──
    log_level: str = "INFO"
    default_currency: str = "USD"

    @property
    def effective_database_url(self) -> str:
        """Return the configured URL, otherwise a SQLite file in the user's home."""
        if self.database_url:
            return self.database_url
        return f"sqlite:///{Path.home() / '.realize-reporter.db'}"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
