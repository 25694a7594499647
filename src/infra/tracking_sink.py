# src/infra/tracking_sink.py
"""
Хранилище метрик и маршрутов поездок в Redis.

Ключи (с namespace клиента):
- ride:{ride_id}:metrics  - hash со снимком метрик
- ride:{ride_id}:polyline - строка с encoded polyline текущего маршрута
"""

from __future__ import annotations

from src.core.tracking.errors import PersistenceError
from src.core.tracking.models import TrackingMetrics
from src.infra.redis_client import RedisClient


def metrics_key(ride_id: str) -> str:
    return f"ride:{ride_id}:metrics"


def polyline_key(ride_id: str) -> str:
    return f"ride:{ride_id}:polyline"


class RedisTrackingSink:
    """Реализация PersistenceSink поверх RedisClient."""

    def __init__(self, redis_client: RedisClient, ttl_seconds: int = 86400) -> None:
        self._redis = redis_client
        self._ttl = ttl_seconds

    async def write_metrics(self, ride_id: str, metrics: TrackingMetrics) -> None:
        """
        Raises:
            PersistenceError: запись в Redis не удалась
        """
        try:
            await self._redis.hset_with_ttl(
                metrics_key(ride_id),
                {name: str(value) for name, value in metrics.to_dict().items()},
                ttl=self._ttl,
            )
        except Exception as e:
            raise PersistenceError(f"Не удалось записать метрики поездки {ride_id}: {e}") from e

    async def write_polyline(self, ride_id: str, encoded_polyline: str) -> None:
        """
        Raises:
            PersistenceError: запись в Redis не удалась
        """
        try:
            await self._redis.set(polyline_key(ride_id), encoded_polyline, ttl=self._ttl)
        except Exception as e:
            raise PersistenceError(f"Не удалось записать маршрут поездки {ride_id}: {e}") from e

    async def read_metrics(self, ride_id: str) -> TrackingMetrics | None:
        """Последний сохранённый снимок метрик (для панелей после окончания поездки)."""
        data = await self._redis.hgetall(metrics_key(ride_id))
        if not data:
            return None
        return TrackingMetrics(
            total_distance_meters=float(data.get("total_distance_meters", 0)),
            average_speed_kmh=float(data.get("average_speed_kmh", 0)),
            max_speed_kmh=float(data.get("max_speed_kmh", 0)),
            total_duration_ms=int(data.get("total_duration_ms", 0)),
            idle_duration_ms=int(data.get("idle_duration_ms", 0)),
            moving_duration_ms=int(data.get("moving_duration_ms", 0)),
        )

    async def read_polyline(self, ride_id: str) -> str | None:
        return await self._redis.get(polyline_key(ride_id))
