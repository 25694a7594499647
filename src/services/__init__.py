# src/services/__init__.py
"""
Сервисы приложения.

Сервисы:
- realtime_tracking: трекинг поездок в реальном времени (приём отметок GPS,
  управление сессиями, WebSocket-поток для пассажира и диспетчера)
"""

__all__: list[str] = []
