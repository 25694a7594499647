# src/core/tracking/scheduling.py
"""
Периодические фоновые задачи сессии.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

from src.common.logger import log_error


async def run_every(
    interval_seconds: float,
    job: Callable[[], Awaitable[Any]],
    *,
    job_name: str,
    ride_id: str,
) -> None:
    """
    Выполнять job каждые interval_seconds до отмены задачи.

    Следующий период отсчитывается после завершения job, поэтому
    два запуска одной задачи никогда не пересекаются. Ошибка одного
    цикла логируется и не останавливает расписание.
    """
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await job()
        except Exception as e:
            await log_error(
                f"Ошибка фоновой задачи {job_name} поездки {ride_id}: {e}",
                extra={"ride_id": ride_id, "job": job_name},
                exc_info=True,
            )
