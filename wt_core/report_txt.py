"""
Генерация текстовых отчётов пакета результатов
"""
from typing import Dict, Iterable, List, Optional

from wt_core.models import Job, Photo, PhotoType, Window

REPORT_FILENAME = "WindowTests.txt"
PHOTOS_MANIFEST_FILENAME = "photos.txt"


def _date_str(job: Job) -> str:
    if job.inspection_date is None:
        return "Not recorded"
    return job.inspection_date.strftime("%m/%d/%Y")


def build_report(job: Job, windows: Iterable[Window]) -> str:
    """Текстовый отчёт по испытаниям окон задания"""
    lines: List[str] = [
        "Window Test Report",
        "==================",
        "",
        f"Job ID: {job.job_id}",
        f"Client: {job.client_name or 'Unknown'}",
        f"Address: {job.full_address()}",
        f"Inspector: {job.inspector_name or 'Unknown'}",
        f"Date: {_date_str(job)}",
    ]

    if job.has_environment:
        lines.append(
            "Conditions: "
            + ", ".join(
                part
                for part in (
                    job.weather_condition,
                    f"{job.temperature:.0f}°F" if job.temperature is not None else None,
                    f"humidity {job.humidity:.0f}%" if job.humidity is not None else None,
                    f"wind {job.wind_speed:.0f} mph" if job.wind_speed is not None else None,
                )
                if part
            )
        )

    lines += ["", "Window Test Results:", "====================", ""]

    for window in windows:
        lines.append(f"Window {window.window_number}:")
        lines.append(f"  Type: {window.window_type or 'Unknown'}")
        lines.append(f"  Condition: {window.condition or 'Unknown'}")
        lines.append(f"  Test Result: {window.test_result.value or 'Pending'}")
        if window.leak_points > 0:
            lines.append(f"  Leak Points: {window.leak_points}")
        lines.append(f"  Accessible: {'Yes' if window.is_accessible else 'No'}")
        if window.is_measured:
            lines.append(f"  Size: {window.width:g} x {window.height:g}")
        if window.notes:
            lines.append(f"  Notes: {window.notes}")
        lines.append("")

    return "\n".join(lines) + "\n"


def build_photos_manifest(
    windows: Iterable[Window],
    photos: Dict[str, List[Photo]],
    exported_names: Optional[Dict[str, str]] = None,
) -> str:
    """
    Список фотографий по окнам.

    Args:
        windows: окна задания
        photos: window_id -> фото окна
        exported_names: photo.key -> имя файла в папке photos пакета
            (отсутствует, если файл не скопирован)
    """
    exported_names = exported_names or {}
    lines: List[str] = ["Photo Manifest", "==============", ""]
    for window in windows:
        window_photos = photos.get(window.window_id, [])
        lines.append(f"Window {window.window_number}: {len(window_photos)} photo(s)")
        for photo_type in PhotoType:
            typed = [p for p in window_photos if p.photo_type == photo_type]
            for photo in typed:
                name = exported_names.get(photo.key)
                location = f"photos/{name}" if name else f"not exported ({photo.asset_ref})"
                lines.append(f"  {photo_type.value}: {location}")
        lines.append("")
    return "\n".join(lines) + "\n"
