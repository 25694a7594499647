# src/core/tracking/__init__.py
"""
Домен трекинга поездки в реальном времени.
Приём отметок GPS, сглаживание, метрики и обновление маршрута.
"""

from src.core.tracking.errors import (
    DuplicateSession,
    InvalidSample,
    PersistenceError,
    RouteServiceError,
    SessionNotFound,
    TrackingError,
)
from src.core.tracking.interfaces import NullPersistenceSink, PersistenceSink, RouteService
from src.core.tracking.models import (
    GeoPoint,
    PositionSample,
    RideTrackingSession,
    RouteResult,
    SmoothedPosition,
    StreamGap,
    TrackingMetrics,
    TrackingUpdate,
)
from src.core.tracking.registry import SessionRegistry
from src.core.tracking.session import TrackingSession
from src.core.tracking.subscription import Subscription

__all__ = [
    "DuplicateSession",
    "InvalidSample",
    "PersistenceError",
    "RouteServiceError",
    "SessionNotFound",
    "TrackingError",
    "NullPersistenceSink",
    "PersistenceSink",
    "RouteService",
    "GeoPoint",
    "PositionSample",
    "RideTrackingSession",
    "RouteResult",
    "SmoothedPosition",
    "StreamGap",
    "TrackingMetrics",
    "TrackingUpdate",
    "SessionRegistry",
    "TrackingSession",
    "Subscription",
]
