"""Табличная (CSV) проекция окон задания"""
import csv
import io
from typing import Dict, Iterable, List, Optional

from wt_core.models import PhotoType, Window

CSV_COLUMNS = [
    "Window ID",
    "Window Number",
    "X Position",
    "Y Position",
    "Width",
    "Height",
    "Type",
    "Condition",
    "Test Result",
    "Leak Points",
    "Accessible",
    "Notes",
    "Exterior Photo",
    "Interior Photo",
    "Leak Photo",
]


def _number(value: float) -> str:
    """120.0 -> '120', 120.5 -> '120.5'"""
    value = float(value)
    return str(int(value)) if value.is_integer() else repr(value)


def window_row(window: Window, photo_counts: Optional[Dict[PhotoType, int]] = None) -> List[str]:
    counts = photo_counts or {}
    return [
        window.window_id,
        window.window_number or "",
        _number(window.x_position),
        _number(window.y_position),
        _number(window.width),
        _number(window.height),
        window.window_type or "",
        window.condition or "",
        window.test_result.value,
        str(window.leak_points),
        "Yes" if window.is_accessible else "No",
        window.notes or "",
        str(counts.get(PhotoType.EXTERIOR, 0)),
        str(counts.get(PhotoType.INTERIOR, 0)),
        str(counts.get(PhotoType.LEAK, 0)),
    ]


def build_windows_csv(
    windows: Iterable[Window],
    photo_counts: Optional[Dict[str, Dict[PhotoType, int]]] = None,
) -> str:
    """
    Сформировать CSV: строка заголовка и по строке на окно.

    Свободный текст (notes, condition) экранируется по RFC 4180.

    Args:
        windows: окна задания
        photo_counts: window_id -> {PhotoType: количество}
    """
    photo_counts = photo_counts or {}
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)
    for window in windows:
        writer.writerow(window_row(window, photo_counts.get(window.window_id)))
    return buffer.getvalue()
