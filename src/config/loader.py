# src/config/loader.py
"""
Загрузчик конфигурации сервиса трекинга.
Единственный источник истины - config/config.json.
Секретные данные переопределяются из переменных окружения.
"""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings


# =============================================================================
# ОПРЕДЕЛЕНИЕ ПУТЕЙ
# =============================================================================

def get_project_root() -> Path:
    """Возвращает корневую директорию проекта."""
    return Path(__file__).parent.parent.parent


def get_config_path() -> Path:
    """Возвращает путь к файлу конфигурации."""
    return get_project_root() / "config" / "config.json"


def load_config_json(path: Path | None = None) -> dict[str, Any]:
    """Загружает config.json и возвращает словарь без ключей-комментариев."""
    config_path = path or get_config_path()
    if not config_path.exists():
        raise FileNotFoundError(f"Файл конфигурации не найден: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        data = json.load(f)

    return {k: v for k, v in data.items() if not k.startswith("_comment_")}


# =============================================================================
# PYDANTIC МОДЕЛИ КОНФИГУРАЦИИ
# =============================================================================

class SystemSettings(BaseModel):
    """Системные настройки."""
    PROJECT_NAME: str = "ride_tracking"
    VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"


class DeploymentSettings(BaseModel):
    """Настройки развертывания сервиса."""
    REALTIME_TRACKING_HOST: str = "0.0.0.0"
    REALTIME_TRACKING_PORT: int = 8092


class LoggingSettings(BaseModel):
    """Настройки логирования."""
    LOG_LEVEL: str = "DEBUG"
    LOG_TO_FILE: bool = True
    LOG_FILE_PATH: str = "logs/app.log"
    LOG_FORMAT: str = "colored"
    LOG_MAX_BYTES: int = 10485760

    @field_validator("LOG_FORMAT")
    @classmethod
    def check_format(cls, v: str) -> str:
        """Допустимы только json и colored."""
        if v not in ("json", "colored"):
            raise ValueError(f"Неизвестный формат логов: {v}")
        return v


class GoogleMapsSettings(BaseModel):
    """Настройки Google Maps API (сервис расчёта маршрута)."""
    GOOGLE_MAPS_API_KEY: str = ""
    DIRECTIONS_LANGUAGE: str = "en"
    DIRECTIONS_TIMEOUT: float = 10.0

    @field_validator("GOOGLE_MAPS_API_KEY", mode="before")
    @classmethod
    def get_from_env(cls, v: str) -> str:
        """Получает API ключ из переменных окружения."""
        if not v:
            return os.getenv("GOOGLE_MAPS_API_KEY", "")
        return v


class RedisSettings(BaseModel):
    """Настройки Redis."""
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str = ""
    REDIS_NAMESPACE: str = "tracking"
    REDIS_MAX_CONNECTIONS: int = 50

    @field_validator("REDIS_PASSWORD", mode="before")
    @classmethod
    def get_from_env(cls, v: str) -> str:
        """Получает пароль из переменных окружения."""
        if not v:
            return os.getenv("REDIS_PASSWORD", "")
        return v

    @property
    def url(self) -> str:
        """Возвращает URL для подключения к Redis."""
        auth = f":{self.REDIS_PASSWORD}@" if self.REDIS_PASSWORD else ""
        return f"redis://{auth}{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"


class TrackingSettings(BaseModel):
    """Пороги фильтрации, периоды фоновых задач и лимиты сессий трекинга."""
    BUFFER_CAPACITY: int = Field(default=100, ge=1)
    SMOOTHING_WINDOW: int = Field(default=5, ge=1)
    MAX_ACCURACY_METERS: float = 50.0
    MAX_SAMPLE_AGE_SECONDS: float = 10.0
    MAX_CLOCK_SKEW_SECONDS: float = Field(default=5.0, ge=0)
    MAX_SPEED_KMH: float = 200.0
    MOVING_SPEED_THRESHOLD_KMH: float = 5.0
    NOMINAL_SAMPLE_INTERVAL_MS: int = 3000
    DEFAULT_SPEED_KMH: float = 30.0
    METRICS_INTERVAL_SECONDS: float = Field(default=5.0, gt=0)
    ROUTE_REFRESH_INTERVAL_SECONDS: float = Field(default=15.0, gt=0)
    ROUTE_REQUEST_TIMEOUT_SECONDS: float = Field(default=10.0, gt=0)
    SUBSCRIBER_QUEUE_SIZE: int = Field(default=64, ge=1)
    TRAIL_MAX_POINTS: int = Field(default=1000, ge=1)
    TRACKING_TTL: int = 86400

    @model_validator(mode="after")
    def check_window(self) -> "TrackingSettings":
        """Окно сглаживания не может превышать ёмкость буфера."""
        if self.SMOOTHING_WINDOW > self.BUFFER_CAPACITY:
            raise ValueError("SMOOTHING_WINDOW больше BUFFER_CAPACITY")
        return self


# =============================================================================
# ГЛАВНЫЙ КЛАСС НАСТРОЕК
# =============================================================================

def _section(model: type[BaseModel], data: dict[str, Any], env_keys: tuple[str, ...] = ()) -> BaseModel:
    """
    Собирает секцию настроек из плоского config.json.
    Для ключей из env_keys переменная окружения имеет приоритет.
    """
    values: dict[str, Any] = {}
    for field_name in model.model_fields:
        if field_name in env_keys and os.getenv(field_name):
            values[field_name] = os.getenv(field_name)
        elif field_name in data:
            values[field_name] = data[field_name]
    return model(**values)


class Settings(BaseSettings):
    """
    Главный класс настроек приложения.
    Агрегирует все секции конфигурации.
    """
    system: SystemSettings = Field(default_factory=SystemSettings)
    deployment: DeploymentSettings = Field(default_factory=DeploymentSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    google_maps: GoogleMapsSettings = Field(default_factory=GoogleMapsSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    tracking: TrackingSettings = Field(default_factory=TrackingSettings)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @classmethod
    def from_config_json(cls, path: Path | None = None) -> "Settings":
        """
        Создаёт объект Settings из config.json.
        Секреты и адреса инфраструктуры переопределяются из переменных окружения.
        """
        data = load_config_json(path)

        return cls(
            system=_section(SystemSettings, data),
            deployment=_section(
                DeploymentSettings, data,
                env_keys=("REALTIME_TRACKING_HOST", "REALTIME_TRACKING_PORT"),
            ),
            logging=_section(LoggingSettings, data),
            google_maps=_section(GoogleMapsSettings, data, env_keys=("GOOGLE_MAPS_API_KEY",)),
            redis=_section(
                RedisSettings, data,
                env_keys=("REDIS_HOST", "REDIS_PORT", "REDIS_PASSWORD"),
            ),
            tracking=_section(TrackingSettings, data),
        )


@lru_cache()
def get_settings() -> Settings:
    """
    Возвращает синглтон настроек приложения.
    Использует кэширование для производительности.
    """
    from dotenv import load_dotenv

    env_path = get_project_root() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    return Settings.from_config_json()


# Экспорт синглтона для удобного импорта
settings = get_settings()
