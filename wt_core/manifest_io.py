"""
Чтение и запись манифестов пакетов.

- Пакет заданий (jobs.json): {version, createdAt, preparedBy, jobs: [...]}
- Пакет результатов (job.json): {job, intake, field}

Имена полей нормативные и сохраняются как есть для совместимости
настольной и полевой частей.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from _metadata import INTAKE_FORMAT_VERSION
from wt_core.errors import MalformedManifest, MissingManifest
from wt_core.models import format_timestamp, parse_timestamp

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "jobs.json"
RESULTS_FILENAME = "job.json"

# Legacy: zoomScale -> scalePixelsPerFoot. Приближение, не проверенная
# конвертация единиц.
ZOOM_SCALE_TO_PPF = 10.0

SUPPORTED_MAJOR_VERSIONS = ("1",)


# ---------------------------------------------------------------------------
# Пакет заданий
# ---------------------------------------------------------------------------


@dataclass
class IntakeAddress:
    line1: str
    city: str
    state: str
    zip: str


@dataclass
class OverheadSource:
    name: Optional[str] = None
    url: Optional[str] = None
    fetched_at: Optional[datetime] = None


@dataclass
class OverheadInfo:
    """Блок overhead записи задания"""

    image_file: str
    source: Optional[OverheadSource] = None
    scale_pixels_per_foot: Optional[float] = None
    zoom_scale: Optional[float] = None

    @property
    def effective_scale(self) -> Optional[float]:
        """Масштаб с учётом legacy zoomScale"""
        if self.scale_pixels_per_foot is not None:
            return self.scale_pixels_per_foot
        if self.zoom_scale is not None:
            return self.zoom_scale * ZOOM_SCALE_TO_PPF
        return None


@dataclass
class JobIntakeEntry:
    job_id: str
    client_name: str
    address: IntakeAddress
    notes: Optional[str] = None
    overhead: Optional[OverheadInfo] = None


@dataclass
class JobIntakePackage:
    version: str
    created_at: Optional[datetime]
    prepared_by: str
    jobs: List[JobIntakeEntry] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Пакет результатов
# ---------------------------------------------------------------------------


@dataclass
class PhotoCounts:
    exterior: int = 0
    interior: int = 0
    leak: int = 0


@dataclass
class WindowExportEntry:
    window_id: str
    window_number: str
    x_position: float
    y_position: float
    width: float = 0.0
    height: float = 0.0
    window_type: Optional[str] = None
    condition: Optional[str] = None
    test_result: Optional[str] = None
    leak_points: int = 0
    is_accessible: bool = True
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    photo_counts: PhotoCounts = field(default_factory=PhotoCounts)


@dataclass
class IntakeSummary:
    source_name: Optional[str] = None
    source_url: Optional[str] = None
    fetched_at: Optional[datetime] = None


@dataclass
class JobSummary:
    job_id: str
    client_name: str = ""
    address: Optional[IntakeAddress] = None
    environment: Dict[str, Any] = field(default_factory=dict)


@dataclass
class FieldSection:
    inspector: str
    date: Optional[datetime]
    overhead_file: Optional[str]
    windows: List[WindowExportEntry] = field(default_factory=list)


@dataclass
class FieldResultsPackage:
    intake: IntakeSummary
    field: FieldSection
    job: Optional[JobSummary] = None


# ---------------------------------------------------------------------------
# Хелперы разбора
# ---------------------------------------------------------------------------

_MISSING = object()


def _require(data: dict, key: str, path: str, kind: Union[type, tuple] = str) -> Any:
    value = data.get(key, _MISSING) if isinstance(data, dict) else _MISSING
    field_path = f"{path}.{key}" if path else key
    if value is _MISSING or value is None:
        raise MalformedManifest(f"Отсутствует обязательное поле: {field_path}", field_path)
    if not isinstance(value, kind) or isinstance(value, bool) and kind is not bool:
        raise MalformedManifest(f"Неверный тип поля: {field_path}", field_path)
    return value


def _optional(data: dict, key: str, path: str, kind: Union[type, tuple] = str) -> Any:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, kind) or isinstance(value, bool) and kind is not bool:
        raise MalformedManifest(f"Неверный тип поля: {path}.{key}", f"{path}.{key}")
    return value


def _timestamp(data: dict, key: str, path: str) -> Optional[datetime]:
    raw = data.get(key)
    try:
        return parse_timestamp(raw)
    except (ValueError, OverflowError, OSError) as e:
        raise MalformedManifest(
            f"Неверная метка времени {path}.{key}: {raw!r}", f"{path}.{key}"
        ) from e


def _number(data: dict, key: str, path: str) -> Optional[float]:
    value = _optional(data, key, path, (int, float))
    return float(value) if value is not None else None


def _load_json(payload: Union[bytes, str]) -> Any:
    try:
        if isinstance(payload, bytes):
            payload = payload.decode("utf-8-sig")
        return json.loads(payload)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedManifest(f"Манифест не является корректным JSON: {e}") from e


def _check_version(version: str) -> None:
    major = version.split(".", 1)[0]
    if major not in SUPPORTED_MAJOR_VERSIONS:
        logger.warning(f"⚠️ Неизвестная версия манифеста {version}, пробуем разобрать")


# ---------------------------------------------------------------------------
# Пакет заданий: разбор и сериализация
# ---------------------------------------------------------------------------


def _decode_overhead(data: Any, path: str) -> Optional[OverheadInfo]:
    if data is None:
        return None
    if not isinstance(data, dict):
        raise MalformedManifest(f"Неверный тип поля: {path}", path)

    source = None
    raw_source = data.get("source")
    if raw_source is not None:
        if not isinstance(raw_source, dict):
            raise MalformedManifest(f"Неверный тип поля: {path}.source", f"{path}.source")
        source_path = f"{path}.source"
        source = OverheadSource(
            name=_optional(raw_source, "name", source_path),
            url=_optional(raw_source, "url", source_path),
            fetched_at=_timestamp(raw_source, "fetchedAt", source_path),
        )

    return OverheadInfo(
        image_file=_require(data, "imageFile", path),
        source=source,
        scale_pixels_per_foot=_number(data, "scalePixelsPerFoot", path),
        zoom_scale=_number(data, "zoomScale", path),
    )


def _decode_intake_entry(data: Any, path: str) -> JobIntakeEntry:
    if not isinstance(data, dict):
        raise MalformedManifest(f"Неверный тип поля: {path}", path)

    address = _require(data, "address", path, dict)
    address_path = f"{path}.address"

    job_id = _require(data, "jobId", path).strip()
    if not job_id:
        raise MalformedManifest(f"Пустой jobId: {path}.jobId", f"{path}.jobId")

    return JobIntakeEntry(
        job_id=job_id,
        client_name=_require(data, "clientName", path),
        address=IntakeAddress(
            line1=_require(address, "line1", address_path),
            city=_require(address, "city", address_path),
            state=_require(address, "state", address_path),
            zip=_require(address, "zip", address_path),
        ),
        notes=_optional(data, "notes", path),
        overhead=_decode_overhead(data.get("overhead"), f"{path}.overhead"),
    )


def decode_intake(payload: Union[bytes, str]) -> JobIntakePackage:
    """
    Разобрать пакет заданий.

    Args:
        payload: содержимое jobs.json (bytes или str)

    Returns:
        JobIntakePackage

    Raises:
        MalformedManifest: JSON не разбирается или нарушена схема
    """
    data = _load_json(payload)
    if not isinstance(data, dict):
        raise MalformedManifest("Корень манифеста должен быть объектом")

    version = _require(data, "version", "", (str, int, float))
    version = str(version)
    _check_version(version)

    raw_jobs = _require(data, "jobs", "", list)
    jobs = [_decode_intake_entry(item, f"jobs[{i}]") for i, item in enumerate(raw_jobs)]

    return JobIntakePackage(
        version=version,
        created_at=_timestamp(data, "createdAt", ""),
        prepared_by=_optional(data, "preparedBy", "") or "",
        jobs=jobs,
    )


def encode_intake(package: JobIntakePackage) -> str:
    """Сериализовать пакет заданий (метки времени в ISO-8601)"""
    jobs = []
    for entry in package.jobs:
        item: Dict[str, Any] = {
            "jobId": entry.job_id,
            "clientName": entry.client_name,
            "address": {
                "line1": entry.address.line1,
                "city": entry.address.city,
                "state": entry.address.state,
                "zip": entry.address.zip,
            },
        }
        if entry.notes is not None:
            item["notes"] = entry.notes
        if entry.overhead:
            overhead: Dict[str, Any] = {"imageFile": entry.overhead.image_file}
            if entry.overhead.source:
                overhead["source"] = {
                    "name": entry.overhead.source.name,
                    "url": entry.overhead.source.url,
                    "fetchedAt": format_timestamp(entry.overhead.source.fetched_at),
                }
            scale = entry.overhead.effective_scale
            if scale is not None:
                overhead["scalePixelsPerFoot"] = scale
            item["overhead"] = overhead
        jobs.append(item)

    data = {
        "version": package.version or INTAKE_FORMAT_VERSION,
        "createdAt": format_timestamp(package.created_at),
        "preparedBy": package.prepared_by,
        "jobs": jobs,
    }
    return json.dumps(data, ensure_ascii=False, indent=2)


def load_intake_file(path: Union[str, Path]) -> JobIntakePackage:
    """
    Прочитать jobs.json с диска.

    Raises:
        MissingManifest: файла нет
        MalformedManifest: содержимое некорректно
    """
    path = Path(path)
    if not path.is_file():
        raise MissingManifest(f"Пакет не содержит {MANIFEST_FILENAME}")
    package = decode_intake(path.read_bytes())
    logger.info(f"Манифест загружен: {path} (заданий: {len(package.jobs)})")
    return package


# ---------------------------------------------------------------------------
# Пакет результатов: разбор и сериализация
# ---------------------------------------------------------------------------


def _encode_address(address: Optional[IntakeAddress]) -> Optional[dict]:
    if address is None:
        return None
    return {
        "line1": address.line1,
        "city": address.city,
        "state": address.state,
        "zip": address.zip,
    }


def _encode_window(entry: WindowExportEntry) -> dict:
    return {
        "windowId": entry.window_id,
        "windowNumber": entry.window_number,
        "xPosition": entry.x_position,
        "yPosition": entry.y_position,
        "width": entry.width,
        "height": entry.height,
        "windowType": entry.window_type,
        "condition": entry.condition,
        "testResult": entry.test_result,
        "leakPoints": entry.leak_points,
        "isAccessible": entry.is_accessible,
        "notes": entry.notes,
        "createdAt": format_timestamp(entry.created_at),
        "updatedAt": format_timestamp(entry.updated_at),
        "photoCounts": {
            "exterior": entry.photo_counts.exterior,
            "interior": entry.photo_counts.interior,
            "leak": entry.photo_counts.leak,
        },
    }


def encode_results(package: FieldResultsPackage) -> str:
    """Сериализовать пакет результатов (метки времени в ISO-8601)"""
    data: Dict[str, Any] = {}
    if package.job is not None:
        data["job"] = {
            "jobId": package.job.job_id,
            "clientName": package.job.client_name,
            "address": _encode_address(package.job.address),
            "environment": package.job.environment,
        }
    data["intake"] = {
        "sourceName": package.intake.source_name,
        "sourceUrl": package.intake.source_url,
        "fetchedAt": format_timestamp(package.intake.fetched_at),
    }
    data["field"] = {
        "inspector": package.field.inspector,
        "date": format_timestamp(package.field.date),
        "overheadFile": package.field.overhead_file,
        "windows": [_encode_window(w) for w in package.field.windows],
    }
    return json.dumps(data, ensure_ascii=False, indent=2)


def _decode_photo_counts(data: dict, path: str) -> PhotoCounts:
    counts = _optional(data, "photoCounts", path, dict) or {}
    counts_path = f"{path}.photoCounts"
    values = {}
    for key in ("exterior", "interior", "leak"):
        value = _optional(counts, key, counts_path, int) or 0
        if value < 0:
            raise MalformedManifest(f"Отрицательное число фото: {counts_path}.{key}", f"{counts_path}.{key}")
        values[key] = value
    return PhotoCounts(**values)


def _decode_address(data: dict, path: str) -> Optional[IntakeAddress]:
    raw = _optional(data, "address", path, dict)
    if raw is None:
        return None
    address_path = f"{path}.address"
    return IntakeAddress(
        **{key: _optional(raw, key, address_path) or "" for key in ("line1", "city", "state", "zip")}
    )


def _decode_window(data: Any, path: str) -> WindowExportEntry:
    if not isinstance(data, dict):
        raise MalformedManifest(f"Неверный тип поля: {path}", path)
    accessible = _optional(data, "isAccessible", path, bool)
    return WindowExportEntry(
        window_id=_require(data, "windowId", path),
        window_number=_optional(data, "windowNumber", path) or "",
        x_position=float(_require(data, "xPosition", path, (int, float))),
        y_position=float(_require(data, "yPosition", path, (int, float))),
        width=_number(data, "width", path) or 0.0,
        height=_number(data, "height", path) or 0.0,
        window_type=_optional(data, "windowType", path),
        condition=_optional(data, "condition", path),
        test_result=_optional(data, "testResult", path),
        leak_points=int(_optional(data, "leakPoints", path, (int, float)) or 0),
        is_accessible=True if accessible is None else accessible,
        notes=_optional(data, "notes", path),
        created_at=_timestamp(data, "createdAt", path),
        updated_at=_timestamp(data, "updatedAt", path),
        photo_counts=_decode_photo_counts(data, path),
    )


def decode_results(payload: Union[bytes, str]) -> FieldResultsPackage:
    """
    Разобрать пакет результатов (сторона настольного инструмента).

    Raises:
        MalformedManifest: JSON не разбирается или нарушена схема
    """
    data = _load_json(payload)
    if not isinstance(data, dict):
        raise MalformedManifest("Корень манифеста должен быть объектом")

    intake = data.get("intake") or {}
    if not isinstance(intake, dict):
        raise MalformedManifest("Неверный тип поля: intake", "intake")
    field_data = _require(data, "field", "", dict)

    job = None
    raw_job = data.get("job")
    if raw_job is not None and not isinstance(raw_job, dict):
        raise MalformedManifest("Неверный тип поля: job", "job")
    if raw_job is not None:
        job = JobSummary(
            job_id=_require(raw_job, "jobId", "job"),
            client_name=_optional(raw_job, "clientName", "job") or "",
            address=_decode_address(raw_job, "job"),
            environment=_optional(raw_job, "environment", "job", dict) or {},
        )

    raw_windows = _require(field_data, "windows", "field", list)
    return FieldResultsPackage(
        intake=IntakeSummary(
            source_name=intake.get("sourceName"),
            source_url=intake.get("sourceUrl"),
            fetched_at=_timestamp(intake, "fetchedAt", "intake"),
        ),
        field=FieldSection(
            inspector=_optional(field_data, "inspector", "field") or "",
            date=_timestamp(field_data, "date", "field"),
            overhead_file=_optional(field_data, "overheadFile", "field"),
            windows=[_decode_window(w, f"field.windows[{i}]") for i, w in enumerate(raw_windows)],
        ),
        job=job,
    )
