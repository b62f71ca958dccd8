"""
Менеджер логирования клиентского приложения.

Консоль + ротируемый файл в папке данных. Формат text или json
(json - для сбора логов с полевых устройств).
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional

from _metadata import get_version_info

# Настройки логирования
LOG_FILENAME = "windowtest.log"
LOG_MAX_BYTES = 5 * 1024 * 1024  # 5 MB
LOG_BACKUP_COUNT = 3
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class JSONFormatter(logging.Formatter):
    """JSON formatter для structured logging."""

    # Поля, которые добавляются в extra для контекста
    EXTRA_FIELDS = frozenset({
        "job_id",
        "stage",
        "artifact",
        "package",
        "duration_ms",
    })

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for field in self.EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_data[field] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


def build_formatter(log_format: str = "text") -> logging.Formatter:
    if log_format == "json":
        return JSONFormatter()
    return logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)


class LoggingManager:
    """
    Singleton менеджер логирования.

    Использование:
        manager = get_logging_manager()
        manager.setup(log_dir=settings.logs_dir, log_level=logging.INFO)
    """

    _instance: Optional["LoggingManager"] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if hasattr(self, '_initialized'):
            return

        self._initialized = True
        self._file_handler: Optional[RotatingFileHandler] = None
        self._console_handler: Optional[logging.StreamHandler] = None
        self._current_log_path: Optional[Path] = None
        self._log_level = logging.INFO

    def setup(
        self,
        log_dir: Optional[Path] = None,
        log_level: int = logging.INFO,
        log_format: str = "text",
    ):
        """
        Инициализировать систему логирования.

        Args:
            log_dir: папка для файла логов (None - только консоль)
            log_level: уровень логирования (DEBUG, INFO, WARNING, ERROR)
            log_format: text или json
        """
        self._log_level = log_level
        formatter = build_formatter(log_format)

        root_logger = logging.getLogger()
        root_logger.setLevel(log_level)

        # Повторный setup не должен дублировать handlers
        self.shutdown()

        self._console_handler = logging.StreamHandler(sys.stderr)
        self._console_handler.setLevel(log_level)
        self._console_handler.setFormatter(formatter)
        root_logger.addHandler(self._console_handler)

        if log_dir is not None:
            try:
                log_dir.mkdir(parents=True, exist_ok=True)
                log_path = log_dir / LOG_FILENAME
                self._file_handler = RotatingFileHandler(
                    str(log_path),
                    maxBytes=LOG_MAX_BYTES,
                    backupCount=LOG_BACKUP_COUNT,
                    encoding="utf-8"
                )
                self._file_handler.setLevel(log_level)
                self._file_handler.setFormatter(formatter)
                root_logger.addHandler(self._file_handler)
                self._current_log_path = log_path
            except OSError as e:
                sys.stderr.write(f"Error opening log file in {log_dir}: {e}\n")

        # Подавить шум от внешних библиотек
        self._configure_library_loggers()

        logger = logging.getLogger(__name__)
        logger.debug("=" * 60)
        logger.debug(f"{get_version_info()} - запуск")
        logger.debug(f"Уровень логирования: {logging.getLevelName(log_level)}")
        logger.debug(f"Файл логов: {self._current_log_path}")
        logger.debug("=" * 60)

    def shutdown(self):
        """Снять и закрыть установленные handlers"""
        root_logger = logging.getLogger()
        for handler in (self._console_handler, self._file_handler):
            if handler is not None:
                root_logger.removeHandler(handler)
                handler.close()
        self._console_handler = None
        self._file_handler = None
        self._current_log_path = None

    def _configure_library_loggers(self):
        """
        Настроить уровни логирования для внешних библиотек.

        Подавляет DEBUG/INFO сообщения от шумных библиотек.
        """
        noisy_loggers = [
            "PIL",
            "httpcore",
            "httpx",
        ]
        for name in noisy_loggers:
            logging.getLogger(name).setLevel(logging.WARNING)

    @property
    def current_log_path(self) -> Optional[Path]:
        """Текущий путь к файлу логов."""
        return self._current_log_path

    @property
    def log_level(self) -> int:
        """Текущий уровень логирования."""
        return self._log_level


def get_logging_manager() -> LoggingManager:
    """
    Получить singleton экземпляр менеджера логирования.

    Returns:
        LoggingManager instance
    """
    return LoggingManager()
