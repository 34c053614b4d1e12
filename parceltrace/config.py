"""Configuration management using Pydantic Settings."""

import os
from enum import Enum

from pydantic_settings import BaseSettings


class SinkBackend(str, Enum):
    """Where call outcomes are recorded."""
    SQLITE = "sqlite"
    REDIS = "redis"
    NONE = "none"


class LogFormat(str, Enum):
    """Log output format."""
    JSON = "json"
    CONSOLE = "console"


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

# First template is the primary page, the rest are retried when navigation
# lands somewhere unexpected.
DEFAULT_TRACKING_URLS = [
    "https://www.dhl.com/nl-nl/home/traceren.html?tracking-id={code}&submit=1",
    "https://www.dhl.com/nl-en/home/tracking/tracking-parcel.html?submit=1&tracking-id={code}",
    "https://my.dhlecommerce.nl/home/tracktrace/{code}",
]


class TrackerConfig(BaseSettings):
    """Configuration for the parceltrace tracking pipeline."""

    # Browser settings
    headless: bool = True
    user_agent: str = DEFAULT_USER_AGENT
    viewport_width: int = 1366
    viewport_height: int = 768
    accept_language: str = "nl-NL,nl;q=0.9,en;q=0.8"
    locale: str = "nl-NL"
    browser_executable_path: str | None = None
    serverless: bool | None = None

    # Wait budgets
    navigation_timeout_ms: int = 30000
    selector_timeout_ms: int = 15000
    fallback_wait_ms: int = 8000
    animation_wait_ms: int = 2000

    # Browser pool
    pool_idle_timeout_s: float = 60.0

    # Carrier API
    api_enabled: bool = True
    api_base_url: str = "https://api-eu.dhl.com"
    api_key: str | None = None
    api_key_secondary: str | None = None
    api_call_limit: int = 250
    api_timeout_s: float = 15.0

    # Automation
    broad_scrape_enabled: bool = True
    broad_scrape_min_events: int = 50
    tracking_urls: list[str] = DEFAULT_TRACKING_URLS

    # Batch defaults
    batch_size: int = 3
    delay_between_batches_ms: int = 1000
    max_retries: int = 2
    retry_backoff_ms: int = 500

    # Call log sink
    sink_backend: SinkBackend = SinkBackend.SQLITE
    sqlite_path: str = ".parceltrace.db"
    redis_url: str = "redis://localhost:6379/0"

    # Logging
    log_level: str = "INFO"
    log_format: LogFormat = LogFormat.CONSOLE

    model_config = {
        "env_prefix": "PARCELTRACE_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def is_serverless(self) -> bool:
        """Explicit setting wins, otherwise detect a Lambda-style runtime."""
        if self.serverless is not None:
            return self.serverless
        return bool(os.environ.get("AWS_LAMBDA_FUNCTION_VERSION"))
