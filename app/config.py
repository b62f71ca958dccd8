"""
Конфигурация приложения.

Значения читаются из переменных окружения (и файла .env в рабочей папке):
    WT_DATA_DIR        - папка данных (снимки, фото, store.json, логи)
    WT_EXPORTS_DIR     - куда складывать пакеты результатов
    WT_LOG_LEVEL       - DEBUG / INFO / WARNING / ERROR
    WT_LOG_FORMAT      - text / json
    WEATHER_API_KEY    - ключ погодного сервиса
    WEATHER_BASE_URL   - endpoint текущей погоды
    GEOCODER_BASE_URL  - endpoint геокодера
    WEATHER_TIMEOUT    - таймаут HTTP запросов (сек)
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from wt_core.image_storage import ImageStorage

STORE_FILENAME = "store.json"
LOGS_DIRNAME = "logs"


def _env_path(name: str, default: str) -> Path:
    return Path(os.getenv(name, default)).expanduser()


@dataclass(frozen=True)
class Settings:
    """Настройки WindowTest"""

    data_dir: Path = field(default_factory=lambda: _env_path("WT_DATA_DIR", "data"))
    exports_dir_override: str = field(default_factory=lambda: os.getenv("WT_EXPORTS_DIR", ""))

    log_level: str = field(default_factory=lambda: os.getenv("WT_LOG_LEVEL", "INFO").upper())
    log_format: str = field(default_factory=lambda: os.getenv("WT_LOG_FORMAT", "text").lower())

    # Погода
    weather_api_key: str = field(default_factory=lambda: os.getenv("WEATHER_API_KEY", ""))
    weather_base_url: str = field(
        default_factory=lambda: os.getenv("WEATHER_BASE_URL", "https://api.weatherapi.com/v1")
    )
    geocoder_base_url: str = field(
        default_factory=lambda: os.getenv("GEOCODER_BASE_URL", "https://nominatim.openstreetmap.org")
    )
    weather_timeout: float = field(default_factory=lambda: float(os.getenv("WEATHER_TIMEOUT", "10")))

    @property
    def exports_dir(self) -> Path:
        if self.exports_dir_override:
            return Path(self.exports_dir_override).expanduser()
        return self.data_dir / "exports"

    @property
    def store_path(self) -> Path:
        return self.data_dir / STORE_FILENAME

    @property
    def logs_dir(self) -> Path:
        return self.data_dir / LOGS_DIRNAME

    @property
    def log_level_value(self) -> int:
        return getattr(logging, self.log_level, logging.INFO)

    def image_storage(self) -> ImageStorage:
        return ImageStorage(self.data_dir)


def load_settings(env_file: str | None = None) -> Settings:
    """
    Загрузить .env (если есть) и собрать настройки.

    Уже заданные переменные окружения имеют приоритет над .env.
    """
    load_dotenv(env_file, override=False)
    return Settings()
