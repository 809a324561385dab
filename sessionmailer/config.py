from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # App
    APP_NAME: str = "SessionMailer"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False

    # CORS
    BACKEND_CORS_ORIGINS: List[str] = ["http://localhost:3000"]

    # Request validation: every URL's host must contain this domain
    ALLOWED_SOURCE_DOMAIN: str = "usesession.com"

    # Fetching
    FETCH_MODE: str = "dynamic"  # "static", "dynamic" or "auto"
    MAX_CONCURRENT_FETCHES: int = 3
    FETCH_TIMEOUT_SECONDS: float = 45.0  # Hard cap per URL (fetch + render)
    STATIC_TIMEOUT_SECONDS: float = 30.0
    NAVIGATION_TIMEOUT_MS: int = 30000
    SETTLE_DELAY_MS: int = 2000  # Wait after networkidle for hydration
    MIN_STATIC_TEXT_CHARS: int = 200  # "auto" mode: below this, re-render in browser

    # Browser
    BROWSER_HEADLESS: bool = True
    BROWSER_POOL_SIZE: int = 3
    CHROMIUM_EXECUTABLE_PATH: str = ""  # Empty = Playwright's bundled Chromium

    # Extraction: used when a page yields no usable image
    STOCK_IMAGE_URLS: List[str] = [
        "https://images.unsplash.com/photo-1606216794074-735e91aa2c92?ixlib=rb-4.0.3&auto=format&fit=crop&w=1200&q=80",
        "https://images.unsplash.com/photo-1606216794074-735e91aa2c92?ixlib=rb-4.0.3&auto=format&fit=crop&w=600&q=80",
    ]

    # Sentry
    SENTRY_DSN: str = ""
    SENTRY_TRACES_SAMPLE_RATE: float = 0.2
    SENTRY_ENVIRONMENT: str = "development"

    # Logging
    LOG_FORMAT: str = "json"  # "json" for production, "text" for development
    LOG_LEVEL: str = "INFO"

    # Metrics
    METRICS_ENABLED: bool = True

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()
