from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_SNAPSHOT = Path(__file__).parent / "sample_data" / "snapshot.json"


class Settings(BaseSettings):
    """
    Centralized configuration.

    Loaded from:
    - environment variables (prefixed with WEATHERDESK_)
    - .env file (if present)

    The API key here is only a default: a non-blank key saved in the
    preference store takes precedence.
    """
    model_config = SettingsConfigDict(env_file=".env", env_prefix="WEATHERDESK_", extra="ignore")

    # Remote backend key (blank means the offline snapshot is used)
    weather_api_key: str = ""
    demo_mode: bool = True
    theme: str = "light"

    app_name: str = "Weather Desk"

    # Offline snapshot document and preference database
    snapshot_path: str = str(DEFAULT_SNAPSHOT)
    sqlite_path: str = "weatherdesk.sqlite3"

    http_timeout_s: float = 10.0
    geocode_timeout_s: float = 6.0

    debounce_ms: int = 300
    suggestion_limit: int = 10

    refresh_default_s: int = 600
    refresh_min_s: int = 30
    refresh_max_s: int = 3600

    log_level: str = "INFO"


settings = Settings()
