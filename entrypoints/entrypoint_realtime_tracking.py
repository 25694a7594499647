#!/usr/bin/env python3
"""
Entrypoint для Realtime Tracking.

Запуск:
    python entrypoint_realtime_tracking.py

Порт по умолчанию: 8092
"""

import sys
from pathlib import Path

# Добавляем корневую директорию проекта в путь
project_root = Path(__file__).parent.parent.resolve()
sys.path.insert(0, str(project_root))

import uvicorn

from src.config import settings


def main() -> None:
    """Запустить Realtime Tracking."""
    uvicorn.run(
        "src.services.realtime_tracking.app:app",
        host=settings.deployment.REALTIME_TRACKING_HOST,
        port=settings.deployment.REALTIME_TRACKING_PORT,
        reload=settings.system.DEBUG,
        log_level=settings.system.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
