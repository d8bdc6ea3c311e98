"""Configuration settings for Newscast."""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # App
    app_name: str = "Newscast"
    debug: bool = False
    log_level: str = "INFO"

    # Storage (object store holding the daily audio files)
    storage_base_url: Optional[str] = None
    companion_storage_base_url: Optional[str] = None
    storage_audio_path: str = "audio-files"

    # Client side: where the audio API lives
    api_base_url: str = "http://localhost:8000"

    # Platform probe for full-buffer prefetch
    mobile_viewport_max_px: int = 768
    mobile_user_agent_pattern: str = (
        r"Android|webOS|iPhone|iPad|iPod|BlackBerry|IEMobile|Opera Mini"
    )

    # Playback
    auto_advance_delay_sec: float = 0.5
    lead_in_source: str = "/click.mp3"
    lead_in_volume: float = 0.3
    lead_in_timeout_sec: float = 3.0
    duration_tolerance_sec: float = 5.0
    default_duration_sec: float = 300.0
    seek_step_sec: float = 10.0

    # Daily catalog
    catalog_days: int = 7
    catalog_rollover_hour: int = 5  # before this hour the previous day is "today"
    catalog_timezone: str = "Asia/Tokyo"

    # Notices
    notice_duration_sec: float = 4.0

    class Config:
        env_file = ".env"


settings = Settings()
