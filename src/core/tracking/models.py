# src/core/tracking/models.py
"""
Модели данных трекинга поездки.
Все значения иммутабельны: каждое событие и снимок - новый объект.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from src.common.constants import MPS_TO_KMH, SessionState, StreamMessageType


def _iso(value: datetime | None) -> str | None:
    """ISO-8601 с суффиксом Z для UTC."""
    if value is None:
        return None
    return value.isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class GeoPoint:
    """Точка на карте."""
    latitude: float
    longitude: float

    def to_dict(self) -> dict[str, float]:
        return {"lat": self.latitude, "lng": self.longitude}


@dataclass(frozen=True)
class PositionSample:
    """Сырая отметка геолокации от автомобиля."""
    latitude: float
    longitude: float
    accuracy_meters: float
    speed_mps: float
    bearing_deg: float
    timestamp: datetime
    source_tag: str = "unknown"

    def __post_init__(self) -> None:
        # Время без часового пояса считается UTC
        if self.timestamp.tzinfo is None:
            object.__setattr__(self, "timestamp", self.timestamp.replace(tzinfo=timezone.utc))

    @property
    def point(self) -> GeoPoint:
        return GeoPoint(self.latitude, self.longitude)

    @property
    def speed_kmh(self) -> float:
        return self.speed_mps * MPS_TO_KMH


@dataclass(frozen=True)
class SmoothedPosition:
    """Сглаженная оценка текущего положения."""
    latitude: float
    longitude: float
    speed_mps: float
    bearing_deg: float
    accuracy_meters: float
    timestamp: datetime

    @property
    def point(self) -> GeoPoint:
        return GeoPoint(self.latitude, self.longitude)

    @property
    def speed_kmh(self) -> float:
        return self.speed_mps * MPS_TO_KMH

    def to_dict(self) -> dict[str, Any]:
        return {
            "lat": self.latitude,
            "lng": self.longitude,
            "speed": self.speed_mps,
            "bearing": self.bearing_deg,
            "accuracy": self.accuracy_meters,
            "timestamp": _iso(self.timestamp),
        }


@dataclass(frozen=True)
class TrackingMetrics:
    """
    Снимок метрик поездки.
    Пересчитывается из буфера на каждом цикле, а не накапливается.
    """
    total_distance_meters: float = 0.0
    average_speed_kmh: float = 0.0
    max_speed_kmh: float = 0.0
    total_duration_ms: int = 0
    idle_duration_ms: int = 0
    moving_duration_ms: int = 0

    @classmethod
    def empty(cls) -> "TrackingMetrics":
        return cls()

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_distance_meters": self.total_distance_meters,
            "average_speed_kmh": self.average_speed_kmh,
            "max_speed_kmh": self.max_speed_kmh,
            "total_duration_ms": self.total_duration_ms,
            "idle_duration_ms": self.idle_duration_ms,
            "moving_duration_ms": self.moving_duration_ms,
        }


@dataclass(frozen=True)
class RouteResult:
    """Ответ сервиса расчёта маршрута."""
    encoded_polyline: str
    distance_meters: float
    duration_seconds: float


@dataclass(frozen=True)
class TrackingUpdate:
    """Публичное событие трекинга: одно на обработанную отметку или цикл обновления маршрута."""
    ride_id: str
    smoothed_position: SmoothedPosition
    distance_traveled: float
    eta_minutes: int
    polyline_points: tuple[GeoPoint, ...]
    accuracy: float
    timestamp: datetime
    encoded_polyline: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": StreamMessageType.TRACKING_UPDATE.value,
            "ride_id": self.ride_id,
            "position": self.smoothed_position.to_dict(),
            "distance_traveled": round(self.distance_traveled, 2),
            "eta_minutes": self.eta_minutes,
            "polyline_points": [p.to_dict() for p in self.polyline_points],
            "encoded_polyline": self.encoded_polyline,
            "accuracy": self.accuracy,
            "timestamp": _iso(self.timestamp),
        }


@dataclass(frozen=True)
class StreamGap:
    """Маркер пропуска: медленный подписчик потерял dropped старых событий."""
    ride_id: str
    dropped: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": StreamMessageType.GAP.value,
            "ride_id": self.ride_id,
            "dropped": self.dropped,
        }


@dataclass(frozen=True)
class RideTrackingSession:
    """Снимок состояния сессии для API и админских панелей."""
    ride_id: str
    driver_id: str
    rider_id: str
    started_at: datetime
    destination: GeoPoint
    state: SessionState
    smoothed_position: SmoothedPosition | None = None
    cumulative_distance_meters: float = 0.0
    current_route_polyline: str = ""
    buffer_size: int = 0
    subscribers: int = 0
    metrics: TrackingMetrics = field(default_factory=TrackingMetrics)

    @property
    def active(self) -> bool:
        return self.state != SessionState.STOPPED

    def to_dict(self) -> dict[str, Any]:
        return {
            "ride_id": self.ride_id,
            "driver_id": self.driver_id,
            "rider_id": self.rider_id,
            "started_at": _iso(self.started_at),
            "destination": self.destination.to_dict(),
            "state": self.state.value,
            "active": self.active,
            "smoothed_position": self.smoothed_position.to_dict() if self.smoothed_position else None,
            "cumulative_distance_meters": round(self.cumulative_distance_meters, 2),
            "current_route_polyline": self.current_route_polyline,
            "buffer_size": self.buffer_size,
            "subscribers": self.subscribers,
            "metrics": self.metrics.to_dict(),
        }
