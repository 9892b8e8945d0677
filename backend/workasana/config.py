"""Workasana configuration — remote service, timeouts, report defaults."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Remote service
    api_base_url: str = "https://backend3-project.vercel.app"
    request_timeout: float = 15.0  # seconds per remote call

    # Reports
    report_window_days: int = 7  # default completed-tasks range
    report_top_n: int = 10  # owner chart window
    # Estimated-completion share of pending days. Unconfirmed product figure.
    pending_estimate_factor: float = 0.6

    # Task form
    fallback_tags: str = "Urgent,Bug,Feature,UI,Backend,Frontend"  # Used when GET /tags fails

    # Auth forms
    min_password_length: int = 6

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "env_prefix": "WORKASANA_"}


settings = Settings()


def get_fallback_tags() -> list[str]:
    """Resolve the fallback tag list from settings (env-overridable)."""
    return [t.strip() for t in settings.fallback_tags.split(",") if t.strip()]
