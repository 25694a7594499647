#!/usr/bin/env python3
# main.py
"""
Главная точка входа сервиса трекинга поездок.
Запускает HTTP/WebSocket сервис realtime_tracking.
"""

from __future__ import annotations

import asyncio
import sys

import uvicorn

from src.config import settings
from src.common.logger import setup_logging, log_info
from src.common.constants import TypeMsg


VALID_MODES = ("realtime_tracking",)


async def main(mode: str = "realtime_tracking") -> None:
    """
    Главная функция запуска.

    Args:
        mode: Режим запуска (пока только realtime_tracking)
    """
    setup_logging()

    await log_info(
        f"Ride Tracking v{settings.system.VERSION} - запуск в режиме '{mode}'",
        type_msg=TypeMsg.INFO,
    )

    config = uvicorn.Config(
        "src.services.realtime_tracking.app:app",
        host=settings.deployment.REALTIME_TRACKING_HOST,
        port=settings.deployment.REALTIME_TRACKING_PORT,
        log_level=settings.system.LOG_LEVEL.lower(),
    )
    # uvicorn сам обрабатывает SIGINT/SIGTERM и вызывает shutdown lifespan
    server = uvicorn.Server(config)
    await server.serve()


def print_usage() -> None:
    print("""
Использование: python main.py [режим]

Режимы:
    realtime_tracking      - трекинг поездок (HTTP + WebSocket), по умолчанию

Примеры:
    python main.py
    python main.py realtime_tracking
    """)


if __name__ == "__main__":
    mode = "realtime_tracking"

    if len(sys.argv) > 1:
        arg = sys.argv[1].lower()
        if arg in ("--help", "-h"):
            print_usage()
            sys.exit(0)
        elif arg in VALID_MODES:
            mode = arg
        else:
            print(f"Ошибка: неизвестный режим '{arg}'")
            print_usage()
            sys.exit(1)

    try:
        asyncio.run(main(mode))
    except KeyboardInterrupt:
        pass
