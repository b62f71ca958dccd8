"""
Модели окна (точечной метки на обзорном снимке) и фотографии окна.
"""
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional

from wt_core.models.clock import (
    format_timestamp,
    generate_key,
    generate_window_id,
    parse_timestamp,
    utc_now,
)
from wt_core.models.enums import PhotoType, TestResult

MAX_LEAK_POINTS = 10


@dataclass
class Window:
    """
    Окно на объекте

    Attributes:
        job_key: ключ задания-владельца
        window_id: сгенерированный уникальный идентификатор (ключ в хранилище)
        window_number: отображаемая метка ("W1", "W2", ...), уникальность не проверяется
        x_position, y_position: координаты в пикселях ИСХОДНОГО обзорного снимка
            (не экранные координаты)
        window_type: тип из каталога WindowType или произвольная строка
        condition: состояние (свободный текст)
        test_result: результат испытания
        leak_points: количество точек протечки (0..10)
        is_accessible: доступность окна для испытания
        notes: заметки инспектора
        width, height: измеренные размеры (0 = не измерено)
    """

    job_key: str
    window_number: str
    x_position: float
    y_position: float
    window_type: Optional[str] = None
    condition: Optional[str] = None
    test_result: TestResult = TestResult.UNSET
    leak_points: int = 0
    is_accessible: bool = True
    notes: Optional[str] = None
    width: float = 0.0
    height: float = 0.0
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    window_id: str = field(default_factory=generate_window_id)

    def __post_init__(self):
        self.leak_points = min(max(int(self.leak_points), 0), MAX_LEAK_POINTS)

    @property
    def key(self) -> str:
        return self.window_id

    def touch(self) -> None:
        self.updated_at = utc_now()

    def apply_measurement(self, width: float, height: float) -> None:
        """Сохранить размеры, полученные из AR-измерения"""
        if width < 0 or height < 0:
            raise ValueError("Размеры окна не могут быть отрицательными")
        self.width = float(width)
        self.height = float(height)
        self.touch()

    @property
    def is_measured(self) -> bool:
        return self.width > 0 and self.height > 0

    def to_dict(self) -> dict:
        """Сериализация в словарь для JSON (снимок хранилища)"""
        return {
            "window_id": self.window_id,
            "job_key": self.job_key,
            "window_number": self.window_number,
            "x_position": self.x_position,
            "y_position": self.y_position,
            "window_type": self.window_type,
            "condition": self.condition,
            "test_result": self.test_result.value,
            "leak_points": self.leak_points,
            "is_accessible": self.is_accessible,
            "notes": self.notes,
            "width": self.width,
            "height": self.height,
            "created_at": format_timestamp(self.created_at),
            "updated_at": format_timestamp(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Window":
        return cls(
            window_id=data["window_id"],
            job_key=data["job_key"],
            window_number=data.get("window_number", ""),
            x_position=float(data.get("x_position", 0.0)),
            y_position=float(data.get("y_position", 0.0)),
            window_type=data.get("window_type"),
            condition=data.get("condition"),
            test_result=TestResult.from_value(data.get("test_result")),
            leak_points=data.get("leak_points", 0),
            is_accessible=data.get("is_accessible", True),
            notes=data.get("notes"),
            width=float(data.get("width", 0.0)),
            height=float(data.get("height", 0.0)),
            created_at=parse_timestamp(data.get("created_at")) or utc_now(),
            updated_at=parse_timestamp(data.get("updated_at")) or utc_now(),
        )


@dataclass
class Photo:
    """
    Фотография окна

    Attributes:
        window_key: ключ окна-владельца
        photo_type: категория снимка
        asset_ref: непрозрачная ссылка на хранилище фото платформы
            (для локального хранилища - имя файла в папке photos)
    """

    window_key: str
    photo_type: PhotoType
    asset_ref: str
    created_at: datetime = field(default_factory=utc_now)
    key: str = field(default_factory=generate_key)

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "window_key": self.window_key,
            "photo_type": self.photo_type.value,
            "asset_ref": self.asset_ref,
            "created_at": format_timestamp(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Photo":
        return cls(
            key=data["key"],
            window_key=data["window_key"],
            photo_type=PhotoType(data["photo_type"]),
            asset_ref=data["asset_ref"],
            created_at=parse_timestamp(data.get("created_at")) or utc_now(),
        )


_WINDOW_NUMBER_RE = re.compile(r"^W(\d+)$", re.IGNORECASE)


def next_window_number(windows: Iterable[Window]) -> str:
    """Следующая свободная метка вида W<n>"""
    highest = 0
    for window in windows:
        match = _WINDOW_NUMBER_RE.match(window.window_number or "")
        if match:
            highest = max(highest, int(match.group(1)))
    return f"W{highest + 1}"
