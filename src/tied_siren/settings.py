import json
from pathlib import Path

from loguru import logger
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from tied_siren.utils.paths import get_default_data_dir, get_default_log_dir


class Settings(BaseSettings):
    """Application-wide settings read from the environment, .env and config.json."""

    app_name: str = "tied_siren"
    debug: bool = Field(default=False, description="Master toggle for verbose logging")

    data_dir: Path = Field(default_factory=get_default_data_dir)
    log_dir: Path = Field(default_factory=get_default_log_dir)

    def model_post_init(self, __context):
        self.data_dir = self.data_dir.resolve()
        self.log_dir = self.log_dir.resolve()

    @property
    def sessions_file(self) -> Path:
        return self.data_dir / "sessions.json"

    @property
    def blocklists_file(self) -> Path:
        return self.data_dir / "blocklists.json"

    @property
    def notifications_file(self) -> Path:
        return self.data_dir / "notifications.json"

    # Notifications
    notification_title: str = "Tied Siren"
    start_notification_body: str = 'Block session "{name}" has started'
    end_notification_body: str = 'Block session "{name}" has ended'
    status_notification_delay_seconds: int = 1
    status_rate_limit_seconds: float = 5.0
    status_window_seconds: float = 5.0

    # Daemon
    poll_interval_seconds: float = 1.0

    model_config = SettingsConfigDict(
        env_prefix="TIED_SIREN_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


_last_settings_mtime: float | None = None
_cached_settings: Settings | None = None


def load_settings() -> Settings:
    """Loads settings, merging with config.json if it exists."""
    global _last_settings_mtime, _cached_settings

    initial = Settings()
    config_path = initial.data_dir / "config.json"

    if not config_path.exists():
        _last_settings_mtime = None
        _cached_settings = initial
        return initial

    current_mtime = config_path.stat().st_mtime
    if _last_settings_mtime == current_mtime and _cached_settings is not None:
        return _cached_settings

    try:
        with open(config_path) as f:
            config_data = json.load(f)
        _cached_settings = Settings(**{**initial.model_dump(), **config_data})
        _last_settings_mtime = current_mtime
        return _cached_settings
    except (OSError, ValueError) as e:
        logger.warning(f"Ignoring unreadable {config_path}: {e}")
        _cached_settings = initial
        return initial


settings = load_settings()
