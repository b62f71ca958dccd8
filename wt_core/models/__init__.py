"""
Модель данных приложения.
Содержит классы заданий, окон и фотографий.
"""
from wt_core.models.clock import (
    format_timestamp,
    generate_key,
    generate_window_id,
    parse_timestamp,
    utc_now,
)
from wt_core.models.enums import JobStatus, PhotoType, TestResult, WindowType
from wt_core.models.job import Job
from wt_core.models.window import MAX_LEAK_POINTS, Photo, Window, next_window_number

__all__ = [
    # Основные классы
    "Job",
    "Window",
    "Photo",
    # Enums
    "JobStatus",
    "TestResult",
    "PhotoType",
    "WindowType",
    # Утилиты
    "MAX_LEAK_POINTS",
    "next_window_number",
    "generate_key",
    "generate_window_id",
    "utc_now",
    "parse_timestamp",
    "format_timestamp",
]
