from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    host: str = "0.0.0.0"
    port: int = 5000
    debug: bool = False

    cookie_dir: str = "./cookies"
    # One or more Instagram cookie strings separated by ";;;" (one per account).
    instagram_cookies: str = ""
    request_timeout: int = 15
    download_timeout: int = 120
    max_retries: int = 3
    retry_base_delay_ms: int = 1000

    # Comma-separated Cobalt-compatible instances, tried in the listed order.
    cobalt_instances: str = "https://api.cobalt.tools/"
    cobalt_api_key: str = ""
    # Request options sent with every Cobalt call.
    cobalt_download_mode: str = "auto"
    cobalt_video_quality: str = "1080"

    # Telegram bots cannot upload more than 50 MB.
    max_upload_bytes: int = 50 * 1024 * 1024

    # Remote JSON document used for usage statistics (GET to load, PUT to save).
    stats_store_url: str = ""
    # Optional webhook notified when the failure monitor fires.
    alert_webhook_url: str = ""

    rate_limit_requests: int = 3
    rate_limit_window: int = 60

    # Comma-separated origins for CORS. Empty = allow "*" with no credentials.
    cors_origins: str = ""

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def get_cookie_dir(settings: Settings | None = None) -> Path:
    settings = settings or get_settings()
    cookie_path = Path(settings.cookie_dir)
    cookie_path.mkdir(parents=True, exist_ok=True)
    return cookie_path


def get_cobalt_instances() -> list[str]:
    settings = get_settings()
    return [i.strip() for i in settings.cobalt_instances.split(",") if i.strip()]
