import os

import pytest

from core.config import BASE_DIR, Settings, get_settings


@pytest.fixture
def clean_env():
    """保证环境变量干净"""
    old_env = os.environ.copy()
    yield
    os.environ.clear()
    os.environ.update(old_env)


def test_defaults():
    s = Settings(_env_file=None)
    assert s.history_limit == 100
    assert s.drag_threshold_px == 10.0
    assert s.obstacle_beat_duration == 4.0
    assert s.default_beats_to_show == 16.0
    assert s.cors_allow_origins is None


def test_reads_env_aliases(clean_env):
    # _env_file=None: ignore a .env in the project root
    os.environ["HISTORY_LIMIT"] = "7"
    os.environ["DRAG_THRESHOLD_PX"] = "4.5"
    os.environ["APP_ENV"] = "production"

    s = Settings(_env_file=None)

    assert s.history_limit == 7
    assert s.drag_threshold_px == 4.5
    assert s.app_env == "production"


def test_sanity_clamps():
    s = Settings(
        HISTORY_LIMIT=0,
        DRAG_THRESHOLD_PX=-1,
        OBSTACLE_BEAT_DURATION=0,
        DEFAULT_BEATS_TO_SHOW=-8,
        SESSION_MAX_AGE_SECONDS=0,
        _env_file=None,
    )
    assert s.history_limit == 100
    assert s.drag_threshold_px == 10.0
    assert s.obstacle_beat_duration == 4.0
    assert s.default_beats_to_show == 16.0
    assert s.session_max_age_seconds == 86400


def test_zero_drag_threshold_is_allowed():
    s = Settings(DRAG_THRESHOLD_PX=0, _env_file=None)
    assert s.drag_threshold_px == 0


def test_log_level_normalized():
    s = Settings(LOG_LEVEL=" debug ", _env_file=None)
    assert s.log_level == "DEBUG"


def test_get_settings_is_cached():
    get_settings.cache_clear()
    assert get_settings() is get_settings()
    get_settings.cache_clear()


def test_base_dir_is_project_root():
    assert (BASE_DIR / "core" / "config.py").exists()
