"""Перечисления для моделей данных"""
from enum import Enum
from typing import Optional


class JobStatus(str, Enum):
    """Статус задания (объекта обследования)"""

    READY = "Ready"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    FAILED = "Failed"

    @classmethod
    def from_value(cls, value: Optional[str]) -> "JobStatus":
        """Разобрать статус с учётом legacy написаний (InProgress, in_progress)"""
        if not value:
            return cls.READY
        normalized = value.replace("_", "").replace(" ", "").lower()
        legacy_map = {
            "ready": cls.READY,
            "inprogress": cls.IN_PROGRESS,
            "completed": cls.COMPLETED,
            "failed": cls.FAILED,
        }
        return legacy_map.get(normalized, cls.READY)


class TestResult(str, Enum):
    """Результат испытания окна"""

    __test__ = False  # не путать pytest

    UNSET = ""
    PASS = "Pass"
    FAIL = "Fail"

    @classmethod
    def from_value(cls, value: Optional[str]) -> "TestResult":
        if not value:
            return cls.UNSET
        try:
            return cls(value.strip().capitalize())
        except ValueError:
            return cls.UNSET


class PhotoType(str, Enum):
    """Категория фотографии окна"""

    EXTERIOR = "Exterior"
    INTERIOR = "Interior"
    LEAK = "Leak"


class WindowType(str, Enum):
    """Каталог типов окон"""

    AWNING = "Awning"
    CASEMENT = "Casement"
    CENTER_PIVOT = "Center Pivot"
    DOUBLE_HUNG = "Double Hung"
    FIXED = "Fixed"
    HOPPER = "Hopper"
    JALOUSIE = "Jalousie"
    SINGLE_HUNG = "Single Hung"
    SLIDING = "Sliding"

    @classmethod
    def is_known(cls, value: Optional[str]) -> bool:
        return value in {item.value for item in cls}
