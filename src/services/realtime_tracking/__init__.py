# src/services/realtime_tracking/__init__.py
"""
Realtime Tracking - сервис трекинга поездок.

Обеспечивает:
- Старт и остановку сессий трекинга по поездкам
- Приём отметок GPS от водителя (HTTP)
- Поток сглаженных позиций, ETA и маршрута (WebSocket)
- Сохранение метрик и маршрута в Redis
"""
