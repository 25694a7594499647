# src/core/tracking/smoothing.py
"""
Сглаживание позиции взвешенным скользящим средним.

Это не фильтр Калмана: ни ковариаций, ни модели движения.
Свежие отметки получают больший вес, поэтому оценка следует за реальным
движением и при этом гасит одиночные скачки GPS.
"""

from __future__ import annotations

from typing import Sequence

from src.core.tracking.models import PositionSample, SmoothedPosition


DEFAULT_WINDOW = 5


def smooth(samples: Sequence[PositionSample], window: int = DEFAULT_WINDOW) -> SmoothedPosition | None:
    """
    Сглаживает последние отметки окна.

    Алгоритм:
    1. Берём последние min(window, len(samples)) отметок (от старых к новым)
    2. k-я отметка окна получает вес k (самая свежая - наибольший)
    3. Широта и долгота - взвешенные средние, нормированные на сумму весов
    4. Точность - среднее арифметическое точностей окна
    5. Скорость, азимут и время - из самой свежей отметки

    Args:
        samples: Отметки в порядке поступления
        window: Размер окна

    Returns:
        Сглаженная позиция или None для пустого входа
    """
    if not samples or window < 1:
        return None

    recent = list(samples[-window:])
    weights = range(1, len(recent) + 1)
    total_weight = sum(weights)

    latitude = sum(w * s.latitude for w, s in zip(weights, recent)) / total_weight
    longitude = sum(w * s.longitude for w, s in zip(weights, recent)) / total_weight
    accuracy = sum(s.accuracy_meters for s in recent) / len(recent)

    newest = recent[-1]
    return SmoothedPosition(
        latitude=latitude,
        longitude=longitude,
        speed_mps=newest.speed_mps,
        bearing_deg=newest.bearing_deg,
        accuracy_meters=accuracy,
        timestamp=newest.timestamp,
    )
