# tests/conftest.py
"""
Общие фикстуры и настройки для тестов.
"""

from __future__ import annotations

import json
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable
from unittest.mock import AsyncMock

import pytest

# Устанавливаем переменные окружения перед импортом модулей
os.environ.setdefault("REDIS_PASSWORD", "")
os.environ.setdefault("GOOGLE_MAPS_API_KEY", "test_api_key")

from src.config.loader import TrackingSettings
from src.core.tracking.geo import destination_point
from src.core.tracking.models import GeoPoint, PositionSample, RouteResult


# Точка старта тестовых поездок (Киев, Крещатик)
START_LAT = 50.4501
START_LNG = 30.5234


# =============================================================================
# ФИКСТУРЫ КОНФИГУРАЦИИ
# =============================================================================

@pytest.fixture(scope="session")
def project_root() -> Path:
    """Корневая директория проекта."""
    return Path(__file__).parent.parent


@pytest.fixture(scope="session")
def config_path(project_root: Path) -> Path:
    """Путь к файлу конфигурации."""
    return project_root / "config" / "config.json"


@pytest.fixture
def mock_config() -> dict[str, Any]:
    """Мок конфигурации для тестов."""
    return {
        "PROJECT_NAME": "ride_tracking_test",
        "VERSION": "1.0.0-test",
        "DEBUG": True,
        "LOG_LEVEL": "DEBUG",
        "ENVIRONMENT": "test",
        "REALTIME_TRACKING_HOST": "127.0.0.1",
        "REALTIME_TRACKING_PORT": 9092,
        "LOG_TO_FILE": False,
        "LOG_FILE_PATH": "logs/test.log",
        "LOG_FORMAT": "colored",
        "LOG_MAX_BYTES": 1048576,
        "GOOGLE_MAPS_API_KEY": "",
        "DIRECTIONS_LANGUAGE": "uk",
        "DIRECTIONS_TIMEOUT": 5.0,
        "REDIS_HOST": "localhost",
        "REDIS_PORT": 6379,
        "REDIS_DB": 1,
        "REDIS_PASSWORD": "",
        "REDIS_NAMESPACE": "tracking_test",
        "REDIS_MAX_CONNECTIONS": 10,
        "BUFFER_CAPACITY": 50,
        "SMOOTHING_WINDOW": 3,
        "MAX_ACCURACY_METERS": 40.0,
        "MAX_SAMPLE_AGE_SECONDS": 20.0,
        "MAX_CLOCK_SKEW_SECONDS": 5.0,
        "MAX_SPEED_KMH": 180.0,
        "MOVING_SPEED_THRESHOLD_KMH": 5.0,
        "NOMINAL_SAMPLE_INTERVAL_MS": 2000,
        "DEFAULT_SPEED_KMH": 30.0,
        "METRICS_INTERVAL_SECONDS": 2.0,
        "ROUTE_REFRESH_INTERVAL_SECONDS": 10.0,
        "ROUTE_REQUEST_TIMEOUT_SECONDS": 5.0,
        "SUBSCRIBER_QUEUE_SIZE": 16,
        "TRAIL_MAX_POINTS": 500,
        "TRACKING_TTL": 3600,
    }


@pytest.fixture
def temp_config_file(tmp_path: Path, mock_config: dict[str, Any]) -> Path:
    """Создаёт временный файл конфигурации."""
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps(mock_config, ensure_ascii=False, indent=2))
    return config_file


@pytest.fixture
def tracking_config() -> TrackingSettings:
    """
    Настройки трекинга для тестов.
    Фоновые циклы растянуты, чтобы не срабатывать сами по себе:
    тесты вызывают refresh_metrics/refresh_route явно.
    """
    return TrackingSettings(
        METRICS_INTERVAL_SECONDS=3600,
        ROUTE_REFRESH_INTERVAL_SECONDS=3600,
        ROUTE_REQUEST_TIMEOUT_SECONDS=0.2,
    )


# =============================================================================
# ВРЕМЯ
# =============================================================================

class FakeClock:
    """Управляемые часы для тестов."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 5, 4, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# =============================================================================
# ФИКСТУРЫ ОТМЕТОК
# =============================================================================

@pytest.fixture
def make_sample(clock: FakeClock) -> Callable[..., PositionSample]:
    """Фабрика отметок: по умолчанию свежая, точная, в точке старта."""

    def _make(
        latitude: float = START_LAT,
        longitude: float = START_LNG,
        accuracy_meters: float = 10.0,
        speed_mps: float = 10.0,
        bearing_deg: float = 0.0,
        timestamp: datetime | None = None,
        source_tag: str = "test",
    ) -> PositionSample:
        return PositionSample(
            latitude=latitude,
            longitude=longitude,
            accuracy_meters=accuracy_meters,
            speed_mps=speed_mps,
            bearing_deg=bearing_deg,
            timestamp=timestamp or clock(),
            source_tag=source_tag,
        )

    return _make


@pytest.fixture
def northbound_track(clock: FakeClock) -> Callable[[int, float, float], list[PositionSample]]:
    """
    Фабрика трека на север: n отметок с шагом step_m метров
    и интервалом interval_s секунд, начиная с текущего времени часов.
    """

    def _track(n: int, step_m: float = 25.0, interval_s: float = 3.0) -> list[PositionSample]:
        start = clock()
        samples = []
        for i in range(n):
            lat, lng = destination_point(START_LAT, START_LNG, 0.0, step_m * i)
            samples.append(PositionSample(
                latitude=lat,
                longitude=lng,
                accuracy_meters=10.0,
                speed_mps=step_m / interval_s,
                bearing_deg=0.0,
                timestamp=start + timedelta(seconds=interval_s * i),
                source_tag="test",
            ))
        return samples

    return _track


@pytest.fixture
def destination() -> GeoPoint:
    """Точка назначения (аэропорт Борисполь)."""
    return GeoPoint(50.3450, 30.8940)


# =============================================================================
# ФИКСТУРЫ ВНЕШНИХ СЕРВИСОВ (МОКИ)
# =============================================================================

@pytest.fixture
def route_result() -> RouteResult:
    return RouteResult(
        encoded_polyline="_p~iF~ps|U_ulLnnqC",
        distance_meters=35500.0,
        duration_seconds=2700.0,
    )


@pytest.fixture
def mock_route_service(route_result: RouteResult) -> AsyncMock:
    """Мок сервиса расчёта маршрута."""
    service = AsyncMock()
    service.get_route = AsyncMock(return_value=route_result)
    return service


@pytest.fixture
def mock_sink() -> AsyncMock:
    """Мок хранилища метрик и маршрутов."""
    sink = AsyncMock()
    sink.write_metrics = AsyncMock(return_value=None)
    sink.write_polyline = AsyncMock(return_value=None)
    return sink


@pytest.fixture
def mock_redis() -> AsyncMock:
    """Мок клиента Redis."""
    redis = AsyncMock()
    redis.get = AsyncMock(return_value=None)
    redis.set = AsyncMock(return_value=True)
    redis.hgetall = AsyncMock(return_value={})
    redis.hset_with_ttl = AsyncMock(return_value=None)
    return redis
