# src/core/__init__.py
"""
Доменный слой (Core Domain).
Трекинг поездки и расчёт маршрутов.
"""

from src.core.tracking import SessionRegistry, TrackingSession

__all__ = [
    "SessionRegistry",
    "TrackingSession",
]
