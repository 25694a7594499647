# tests/config/test_loader.py
"""
Тесты для модуля загрузки конфигурации.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from src.config.loader import (
    get_project_root,
    get_config_path,
    get_settings,
    load_config_json,
    DeploymentSettings,
    GoogleMapsSettings,
    LoggingSettings,
    RedisSettings,
    Settings,
    SystemSettings,
    TrackingSettings,
)


class TestGetProjectRoot:
    """Тесты для функции get_project_root."""

    def test_returns_path_object(self) -> None:
        assert isinstance(get_project_root(), Path)

    def test_root_contains_src_and_config(self) -> None:
        root = get_project_root()
        assert (root / "src").exists()
        assert (root / "config").exists()


class TestGetConfigPath:
    """Тесты для функции get_config_path."""

    def test_path_in_config_directory(self) -> None:
        path = get_config_path()
        assert path.name == "config.json"
        assert path.parent.name == "config"


class TestLoadConfigJson:
    """Тесты для функции load_config_json."""

    def test_contains_required_keys(self) -> None:
        """Проверяет наличие обязательных ключей."""
        config = load_config_json()

        for key in ("PROJECT_NAME", "VERSION", "LOG_LEVEL", "BUFFER_CAPACITY", "SMOOTHING_WINDOW"):
            assert key in config, f"Отсутствует ключ: {key}"

    def test_comments_are_skipped(self) -> None:
        config = load_config_json()
        assert not any(key.startswith("_comment_") for key in config)

    def test_explicit_path(self, temp_config_file: Path) -> None:
        config = load_config_json(temp_config_file)
        assert config["PROJECT_NAME"] == "ride_tracking_test"

    def test_raises_file_not_found(self, tmp_path: Path) -> None:
        """Проверяет исключение при отсутствии файла."""
        with patch("src.config.loader.get_config_path") as mock_path:
            mock_path.return_value = tmp_path / "nonexistent.json"

            with pytest.raises(FileNotFoundError):
                load_config_json()


class TestSectionModels:
    """Тесты моделей секций."""

    def test_system_defaults(self) -> None:
        system = SystemSettings()
        assert system.PROJECT_NAME == "ride_tracking"
        assert system.DEBUG is False

    def test_deployment_defaults(self) -> None:
        assert DeploymentSettings().REALTIME_TRACKING_PORT == 8092

    def test_logging_rejects_unknown_format(self) -> None:
        with pytest.raises(ValidationError):
            LoggingSettings(LOG_FORMAT="xml")

    def test_google_maps_key_from_env(self, monkeypatch) -> None:
        monkeypatch.setenv("GOOGLE_MAPS_API_KEY", "env_key")
        assert GoogleMapsSettings(GOOGLE_MAPS_API_KEY="").GOOGLE_MAPS_API_KEY == "env_key"

    def test_redis_url_without_password(self) -> None:
        redis = RedisSettings(REDIS_HOST="redis", REDIS_PORT=6380, REDIS_DB=2, REDIS_PASSWORD="")
        assert redis.url == "redis://redis:6380/2"

    def test_redis_url_with_password(self) -> None:
        redis = RedisSettings(REDIS_HOST="redis", REDIS_PASSWORD="secret")
        assert redis.url == "redis://:secret@redis:6379/0"


class TestTrackingSettings:
    """Тесты настроек трекинга."""

    def test_defaults(self) -> None:
        tracking = TrackingSettings()

        assert tracking.BUFFER_CAPACITY == 100
        assert tracking.SMOOTHING_WINDOW == 5
        assert tracking.MAX_ACCURACY_METERS == 50.0
        assert tracking.MAX_SAMPLE_AGE_SECONDS == 10.0
        assert tracking.MAX_CLOCK_SKEW_SECONDS == 5.0
        assert tracking.MAX_SPEED_KMH == 200.0
        assert tracking.MOVING_SPEED_THRESHOLD_KMH == 5.0
        assert tracking.NOMINAL_SAMPLE_INTERVAL_MS == 3000
        assert tracking.DEFAULT_SPEED_KMH == 30.0
        assert tracking.METRICS_INTERVAL_SECONDS == 5.0
        assert tracking.ROUTE_REFRESH_INTERVAL_SECONDS == 15.0
        assert tracking.TRAIL_MAX_POINTS == 1000

    def test_window_larger_than_buffer(self) -> None:
        with pytest.raises(ValidationError):
            TrackingSettings(BUFFER_CAPACITY=3, SMOOTHING_WINDOW=5)

    def test_non_positive_interval(self) -> None:
        with pytest.raises(ValidationError):
            TrackingSettings(METRICS_INTERVAL_SECONDS=0)


class TestSettings:
    """Тесты главного класса настроек."""

    def test_from_config_json(self, temp_config_file: Path) -> None:
        settings = Settings.from_config_json(temp_config_file)

        assert settings.system.PROJECT_NAME == "ride_tracking_test"
        assert settings.deployment.REALTIME_TRACKING_PORT == 9092
        assert settings.redis.REDIS_NAMESPACE == "tracking_test"
        assert settings.tracking.BUFFER_CAPACITY == 50
        assert settings.tracking.SMOOTHING_WINDOW == 3
        assert settings.tracking.SUBSCRIBER_QUEUE_SIZE == 16

    def test_env_overrides_secrets(self, temp_config_file: Path, monkeypatch) -> None:
        monkeypatch.setenv("GOOGLE_MAPS_API_KEY", "from_env")
        monkeypatch.setenv("REDIS_HOST", "redis.internal")

        settings = Settings.from_config_json(temp_config_file)

        assert settings.google_maps.GOOGLE_MAPS_API_KEY == "from_env"
        assert settings.redis.REDIS_HOST == "redis.internal"

    def test_missing_keys_use_defaults(self, tmp_path: Path) -> None:
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({"PROJECT_NAME": "partial"}))

        settings = Settings.from_config_json(config_file)

        assert settings.system.PROJECT_NAME == "partial"
        assert settings.tracking.BUFFER_CAPACITY == 100

    def test_invalid_tracking_section(self, tmp_path: Path, mock_config: dict[str, Any]) -> None:
        mock_config["SMOOTHING_WINDOW"] = 500
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps(mock_config))

        with pytest.raises(ValidationError):
            Settings.from_config_json(config_file)

    def test_get_settings_cached(self) -> None:
        assert get_settings() is get_settings()
