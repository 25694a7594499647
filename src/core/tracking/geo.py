# src/core/tracking/geo.py
"""
Геометрия на сфере: расстояние по формуле Haversine, азимут, скорость по смещению.
"""

from __future__ import annotations

import math
from datetime import datetime

from src.common.constants import EARTH_RADIUS_M, MPS_TO_KMH


def haversine_distance_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Вычисляет расстояние между двумя точками (в метрах) по формуле Haversine.
    """
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)

    a = (math.sin(dlat / 2) ** 2 +
         math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) *
         math.sin(dlon / 2) ** 2)

    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_M * c


def haversine_distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Расстояние между двумя точками в километрах."""
    return haversine_distance_m(lat1, lon1, lat2, lon2) / 1000.0


def initial_bearing_deg(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Начальный азимут движения из первой точки во вторую.

    Returns:
        Угол в градусах в диапазоне [0, 360), 0 - север, 90 - восток
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dlon = math.radians(lon2 - lon1)

    x = math.sin(dlon) * math.cos(phi2)
    y = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(dlon)

    return (math.degrees(math.atan2(x, y)) + 360.0) % 360.0


def implied_speed_kmh(
    lat1: float,
    lon1: float,
    t1: datetime,
    lat2: float,
    lon2: float,
    t2: datetime,
) -> float | None:
    """
    Скорость (км/ч), необходимая для перемещения между двумя отметками.

    Returns:
        Скорость или None, если вторая отметка не позже первой
    """
    time_delta_seconds = (t2 - t1).total_seconds()
    if time_delta_seconds <= 0:
        return None

    distance_km = haversine_distance_km(lat1, lon1, lat2, lon2)
    return distance_km / time_delta_seconds * 3600


def mps_to_kmh(speed_mps: float) -> float:
    """Перевод м/с в км/ч."""
    return speed_mps * MPS_TO_KMH


def is_valid_coordinate(lat: float, lon: float) -> bool:
    """Проверка диапазона координат."""
    if math.isnan(lat) or math.isnan(lon):
        return False
    return -90 <= lat <= 90 and -180 <= lon <= 180


def destination_point(lat: float, lon: float, bearing_deg: float, distance_m: float) -> tuple[float, float]:
    """
    Точка на расстоянии distance_m от исходной по заданному азимуту.
    Используется для построения тестовых траекторий и симуляций.
    """
    delta = distance_m / EARTH_RADIUS_M
    theta = math.radians(bearing_deg)
    phi1 = math.radians(lat)
    lambda1 = math.radians(lon)

    phi2 = math.asin(
        math.sin(phi1) * math.cos(delta) +
        math.cos(phi1) * math.sin(delta) * math.cos(theta)
    )
    lambda2 = lambda1 + math.atan2(
        math.sin(theta) * math.sin(delta) * math.cos(phi1),
        math.cos(delta) - math.sin(phi1) * math.sin(phi2),
    )

    return math.degrees(phi2), (math.degrees(lambda2) + 540.0) % 360.0 - 180.0
