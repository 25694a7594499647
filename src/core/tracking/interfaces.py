# src/core/tracking/interfaces.py
"""
Границы ядра трекинга: внешние сервисы, которые ядро потребляет.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from src.core.tracking.models import GeoPoint, RouteResult, TrackingMetrics


@runtime_checkable
class RouteService(Protocol):
    """
    Сервис расчёта маршрута.
    Может быть медленным или падать; при ошибке бросает исключение.
    """

    async def get_route(self, origin: GeoPoint, destination: GeoPoint) -> RouteResult:
        ...


@runtime_checkable
class PersistenceSink(Protocol):
    """Хранилище метрик и маршрутов (запись best-effort)."""

    async def write_metrics(self, ride_id: str, metrics: TrackingMetrics) -> None:
        ...

    async def write_polyline(self, ride_id: str, encoded_polyline: str) -> None:
        ...


class NullPersistenceSink:
    """Хранилище-заглушка для окружений без Redis."""

    async def write_metrics(self, ride_id: str, metrics: TrackingMetrics) -> None:
        return None

    async def write_polyline(self, ride_id: str, encoded_polyline: str) -> None:
        return None
