# src/core/tracking/metrics.py
"""
Агрегатор метрик поездки.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Sequence

from src.core.tracking.models import PositionSample, TrackingMetrics
from src.core.tracking.validator import utc_now


class MetricsAggregator:
    """
    Считает снимок метрик по содержимому буфера.

    Скорости берутся из speed_mps самих отметок (скорость от поставщика GPS),
    а не пересчитываются по координатам. Время в движении - число отметок
    со скоростью выше порога, умноженное на номинальный интервал между отметками.
    """

    def __init__(
        self,
        moving_speed_threshold_kmh: float = 5.0,
        nominal_sample_interval_ms: int = 3000,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._moving_threshold_kmh = moving_speed_threshold_kmh
        self._sample_interval_ms = nominal_sample_interval_ms
        self._clock = clock

    def compute(
        self,
        samples: Sequence[PositionSample],
        cumulative_distance_meters: float,
        started_at: datetime,
    ) -> TrackingMetrics:
        """
        Рассчитать метрики.

        Args:
            samples: Отметки буфера сессии
            cumulative_distance_meters: Пройденное расстояние сессии
            started_at: Время старта сессии

        Returns:
            Снимок метрик; для пустого буфера - нулевой снимок
        """
        if not samples:
            return TrackingMetrics.empty()

        speeds_kmh = [s.speed_kmh for s in samples]
        total_duration_ms = max(0, int((self._clock() - started_at).total_seconds() * 1000))

        moving_count = sum(1 for v in speeds_kmh if v > self._moving_threshold_kmh)
        moving_duration_ms = moving_count * self._sample_interval_ms

        return TrackingMetrics(
            total_distance_meters=cumulative_distance_meters,
            average_speed_kmh=sum(speeds_kmh) / len(speeds_kmh),
            max_speed_kmh=max(speeds_kmh),
            total_duration_ms=total_duration_ms,
            # Номинальный интервал может дать время в движении больше прошедшего
            idle_duration_ms=max(0, total_duration_ms - moving_duration_ms),
            moving_duration_ms=moving_duration_ms,
        )
