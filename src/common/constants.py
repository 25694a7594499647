# src/common/constants.py
"""
Общие константы и перечисления.
"""

from enum import Enum


class TypeMsg(str, Enum):
    """Типы сообщений для логирования."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class SessionState(str, Enum):
    """Состояния сессии трекинга поездки."""
    STARTING = "starting"
    ACTIVE = "active"
    STOPPED = "stopped"


class RejectReason(str, Enum):
    """Причины отклонения точки геолокации."""
    INVALID_COORDINATES = "invalid_coordinates"
    LOW_ACCURACY = "low_accuracy"
    STALE = "stale"
    OUT_OF_ORDER = "out_of_order"
    IMPOSSIBLE_SPEED = "impossible_speed"
    FUTURE_TIMESTAMP = "future_timestamp"


class StreamMessageType(str, Enum):
    """Типы сообщений в потоке подписчика."""
    TRACKING_UPDATE = "tracking_update"
    GAP = "gap"


# Коэффициент перевода м/с -> км/ч
MPS_TO_KMH: float = 3.6

# Средний радиус Земли в метрах
EARTH_RADIUS_M: float = 6_371_000.0
