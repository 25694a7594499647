# src/core/tracking/validator.py
"""
Валидация сырых отметок геолокации.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

from src.common.constants import RejectReason
from src.core.tracking.errors import InvalidSample
from src.core.tracking.geo import implied_speed_kmh, is_valid_coordinate
from src.core.tracking.models import PositionSample


def utc_now() -> datetime:
    """Текущее время в UTC."""
    return datetime.now(timezone.utc)


class SampleValidator:
    """
    Отсекает физически неправдоподобные отметки.

    Отметка отклоняется, если:
    - координаты вне допустимого диапазона
    - точность хуже max_accuracy_meters
    - отметка старше max_age_seconds
    - отметка из будущего дальше, чем на max_clock_skew_seconds
    - отметка раньше последней принятой (нарушен порядок)
    - скорость перемещения от последней принятой отметки выше max_speed_kmh

    Решение чистое: валидатор не хранит состояние и не имеет побочных эффектов.
    """

    def __init__(
        self,
        max_accuracy_meters: float = 50.0,
        max_age_seconds: float = 10.0,
        max_clock_skew_seconds: float = 5.0,
        max_speed_kmh: float = 200.0,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._max_accuracy_meters = max_accuracy_meters
        self._max_age_seconds = max_age_seconds
        self._max_clock_skew_seconds = max_clock_skew_seconds
        self._max_speed_kmh = max_speed_kmh
        self._clock = clock

    def check(
        self,
        sample: PositionSample,
        last_accepted: PositionSample | None,
    ) -> RejectReason | None:
        """
        Проверяет отметку.

        Returns:
            Причину отклонения или None, если отметка принята
        """
        if not is_valid_coordinate(sample.latitude, sample.longitude):
            return RejectReason.INVALID_COORDINATES

        if sample.accuracy_meters > self._max_accuracy_meters:
            return RejectReason.LOW_ACCURACY

        age_seconds = (self._clock() - sample.timestamp).total_seconds()
        if age_seconds > self._max_age_seconds:
            return RejectReason.STALE

        if -age_seconds > self._max_clock_skew_seconds:
            return RejectReason.FUTURE_TIMESTAMP

        if last_accepted is None:
            return None

        if sample.timestamp < last_accepted.timestamp:
            return RejectReason.OUT_OF_ORDER

        speed = implied_speed_kmh(
            last_accepted.latitude, last_accepted.longitude, last_accepted.timestamp,
            sample.latitude, sample.longitude, sample.timestamp,
        )
        if speed is not None and speed > self._max_speed_kmh:
            return RejectReason.IMPOSSIBLE_SPEED

        return None

    def validate(self, sample: PositionSample, last_accepted: PositionSample | None) -> bool:
        """True, если отметка принята."""
        return self.check(sample, last_accepted) is None

    def ensure_valid(self, sample: PositionSample, last_accepted: PositionSample | None) -> None:
        """
        То же, что check, но с исключением.

        Raises:
            InvalidSample: отметка отклонена
        """
        reason = self.check(sample, last_accepted)
        if reason is not None:
            raise InvalidSample(reason)
