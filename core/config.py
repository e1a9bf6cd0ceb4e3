# core/config.py
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Project root: .../mapedit
BASE_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    """
    mapedit settings.

    Reads from:
    - environment variables
    - .env in project root

    Values that would break the engine (empty history, negative drag
    threshold, zero-length obstacles) are clamped back to sane defaults.
    """

    model_config = SettingsConfigDict(
        env_file=str(BASE_DIR / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # ---- Environment / server ----
    app_env: str = Field(default="development", validation_alias="APP_ENV")
    host: str = Field(default="0.0.0.0", validation_alias="HOST")
    port: int = Field(default=8000, validation_alias="PORT")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    # comma-separated; only used outside development
    cors_allow_origins: Optional[str] = Field(default=None, validation_alias="CORS_ALLOW_ORIGINS")

    # ---- Undo history ----
    history_limit: int = Field(default=100, validation_alias="HISTORY_LIMIT")

    # ---- Gestures ----
    # pointer travel (px) before a drag resolves to a direction
    drag_threshold_px: float = Field(default=10.0, validation_alias="DRAG_THRESHOLD_PX")
    obstacle_beat_duration: float = Field(default=4.0, validation_alias="OBSTACLE_BEAT_DURATION")

    # ---- Views ----
    default_beats_to_show: float = Field(default=16.0, validation_alias="DEFAULT_BEATS_TO_SHOW")

    # ---- Sessions ----
    session_max_age_seconds: int = Field(default=86400, validation_alias="SESSION_MAX_AGE_SECONDS")

    def model_post_init(self, __context) -> None:
        self.log_level = (self.log_level or "INFO").strip().upper()

        if self.history_limit < 1:
            self.history_limit = 100

        if self.drag_threshold_px < 0:
            self.drag_threshold_px = 10.0

        if self.obstacle_beat_duration <= 0:
            self.obstacle_beat_duration = 4.0

        if self.default_beats_to_show <= 0:
            self.default_beats_to_show = 16.0

        if self.session_max_age_seconds <= 0:
            self.session_max_age_seconds = 86400


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
