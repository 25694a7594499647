# src/core/tracking/errors.py
"""
Исключения трекинга.

Вызывающему коду возвращаются только SessionNotFound и DuplicateSession.
Остальные ошибки потокового пути логируются и поглощаются внутри сессии.
"""

from __future__ import annotations

from src.common.constants import RejectReason


class TrackingError(Exception):
    """Базовое исключение трекинга."""


class SessionNotFound(TrackingError):
    """Сессия для поездки не найдена."""

    def __init__(self, ride_id: str) -> None:
        self.ride_id = ride_id
        super().__init__(f"Сессия трекинга не найдена: {ride_id}")


class DuplicateSession(TrackingError):
    """Сессия для поездки уже запущена."""

    def __init__(self, ride_id: str) -> None:
        self.ride_id = ride_id
        super().__init__(f"Сессия трекинга уже запущена: {ride_id}")


class InvalidSample(TrackingError):
    """Отметка геолокации отклонена валидатором."""

    def __init__(self, reason: RejectReason) -> None:
        self.reason = reason
        super().__init__(f"Отметка отклонена: {reason.value}")


class RouteServiceError(TrackingError):
    """Сервис расчёта маршрута недоступен или вернул ошибку."""


class PersistenceError(TrackingError):
    """Не удалось записать данные во внешнее хранилище."""

