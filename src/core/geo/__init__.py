# src/core/geo/__init__.py
"""
Geo-сервис.
Расчёт маршрутов через Google Maps Directions API.
"""

from src.core.geo.service import GeoService

__all__ = [
    "GeoService",
]
