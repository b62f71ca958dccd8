"""
Экспорт пакета результатов полевого обследования.

Состав пакета {jobId}_{city}_{YYYYMMDD}.zip:
    job.json                 - манифест результатов (критичен)
    windows.csv              - окна таблицей (критичен)
    overhead_with_dots.png   - снимок с метками окон (некритичен)
    photos/                  - фотографии окон (некритичны, по одной)
    photos.txt               - список фотографий
    WindowTests.txt          - текстовый отчёт

Ошибка критичного артефакта прерывает экспорт без частичного пакета,
ошибка некритичного логируется и попадает в warnings.
Рабочая папка удаляется при любом исходе.
"""
from __future__ import annotations

import asyncio
import logging
import shutil
import tempfile
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple, Union

from wt_core.archive import create_archive
from wt_core.entity_store import EntityStore
from wt_core.errors import (
    JobNotFound,
    MissingAsset,
    PackageError,
    StorageFailure,
    record_artifact_failure,
)
from wt_core.image_storage import ImageStorage, safe_filename_part
from wt_core.manifest_io import (
    RESULTS_FILENAME,
    FieldResultsPackage,
    FieldSection,
    IntakeAddress,
    IntakeSummary,
    JobSummary,
    PhotoCounts,
    WindowExportEntry,
    encode_results,
)
from wt_core.models import Job, Photo, PhotoType, Window, utc_now
from wt_core.overlay import render_overhead_with_dots
from wt_core.report_txt import (
    PHOTOS_MANIFEST_FILENAME,
    REPORT_FILENAME,
    build_photos_manifest,
    build_report,
)
from wt_core.windows_csv import build_windows_csv

logger = logging.getLogger(__name__)

CSV_FILENAME = "windows.csv"
OVERLAY_FILENAME = "overhead_with_dots.png"
PHOTOS_DIRNAME = "photos"


@dataclass
class ExportResult:
    archive_path: Path
    package_name: str
    artifacts: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


@dataclass
class _Snapshot:
    """Снимок данных задания на момент экспорта"""

    job: Job
    windows: List[Window]
    photos: Dict[str, List[Photo]]

    def photo_counts(self, window: Window) -> Dict[PhotoType, int]:
        counts = {photo_type: 0 for photo_type in PhotoType}
        for photo in self.photos.get(window.window_id, []):
            counts[photo.photo_type] += 1
        return counts


def build_package_name(job: Job, when: datetime) -> str:
    """{jobId}_{city}_{YYYYMMDD}"""
    return "_".join(
        (
            safe_filename_part(job.job_id),
            safe_filename_part(job.city),
            when.strftime("%Y%m%d"),
        )
    )


def build_results_package(
    snapshot: _Snapshot, overhead_file: Optional[str], exported_at: datetime
) -> FieldResultsPackage:
    job = snapshot.job
    windows = []
    for window in snapshot.windows:
        counts = snapshot.photo_counts(window)
        windows.append(
            WindowExportEntry(
                window_id=window.window_id,
                window_number=window.window_number,
                x_position=window.x_position,
                y_position=window.y_position,
                width=window.width,
                height=window.height,
                window_type=window.window_type,
                condition=window.condition,
                test_result=window.test_result.value or None,
                leak_points=window.leak_points,
                is_accessible=window.is_accessible,
                notes=window.notes,
                created_at=window.created_at,
                updated_at=window.updated_at,
                photo_counts=PhotoCounts(
                    exterior=counts[PhotoType.EXTERIOR],
                    interior=counts[PhotoType.INTERIOR],
                    leak=counts[PhotoType.LEAK],
                ),
            )
        )

    environment = {
        key: value
        for key, value in (
            ("temperature", job.temperature),
            ("weatherCondition", job.weather_condition),
            ("humidity", job.humidity),
            ("windSpeed", job.wind_speed),
        )
        if value is not None
    }

    return FieldResultsPackage(
        job=JobSummary(
            job_id=job.job_id,
            client_name=job.client_name,
            address=IntakeAddress(job.address_line1, job.city, job.state, job.zip),
            environment=environment,
        ),
        intake=IntakeSummary(
            source_name=job.overhead_image_source_name,
            source_url=job.overhead_image_source_url,
            fetched_at=job.overhead_image_fetched_at,
        ),
        field=FieldSection(
            inspector=job.inspector_name or "Unknown",
            date=job.inspection_date or exported_at,
            overhead_file=overhead_file,
            windows=windows,
        ),
    )


class ExportPipeline:
    """
    Формирование пакета результатов по заданию.

    Использование:
        pipeline = ExportPipeline(store, ImageStorage(data_dir), exports_dir)
        result = pipeline.run("E2025-05091")
    """

    def __init__(
        self,
        store: EntityStore,
        image_storage: ImageStorage,
        exports_dir: Union[str, Path],
        work_dir: Optional[Union[str, Path]] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.image_storage = image_storage
        self.exports_dir = Path(exports_dir)
        self.work_dir = Path(work_dir) if work_dir else None
        self.clock = clock

    def run(self, job: Union[Job, str]) -> ExportResult:
        """
        Экспортировать задание.

        Args:
            job: Job или внешний jobId

        Returns:
            ExportResult с путём к архиву

        Raises:
            JobNotFound: задания нет в хранилище
            StorageFailure: не удалось записать манифест, CSV или архив
        """
        snapshot = self._snapshot(job)
        exported_at = self.clock()
        package_name = build_package_name(snapshot.job, exported_at)
        logger.info(f"Экспорт задания {snapshot.job.job_id} -> {package_name}")

        if self.work_dir is not None:
            self.work_dir.mkdir(parents=True, exist_ok=True)
        work_root = Path(tempfile.mkdtemp(prefix="export_", dir=self.work_dir))
        package_dir = work_root / package_name
        result = ExportResult(archive_path=self.exports_dir / f"{package_name}.zip", package_name=package_name)

        try:
            package_dir.mkdir(parents=True)

            has_overhead = self.image_storage.has_overhead(snapshot.job.overhead_image_path)
            overhead_file = OVERLAY_FILENAME if has_overhead else None

            self._write_fatal(package_dir, RESULTS_FILENAME, lambda: self._manifest_text(snapshot, overhead_file, exported_at))
            result.artifacts.append(RESULTS_FILENAME)
            self._write_fatal(package_dir, CSV_FILENAME, lambda: self._csv_text(snapshot))
            result.artifacts.append(CSV_FILENAME)

            if self._render_overlay(snapshot, package_dir, result):
                result.artifacts.append(OVERLAY_FILENAME)
            elif overhead_file is not None:
                # Манифест не должен ссылаться на несозданный файл
                self._write_fatal(package_dir, RESULTS_FILENAME, lambda: self._manifest_text(snapshot, None, exported_at))

            exported_names = self._copy_photos(snapshot, package_dir, result)
            self._write_optional(
                package_dir,
                PHOTOS_MANIFEST_FILENAME,
                lambda: build_photos_manifest(snapshot.windows, snapshot.photos, exported_names),
                result,
            )
            self._write_optional(
                package_dir, REPORT_FILENAME, lambda: build_report(snapshot.job, snapshot.windows), result
            )

            try:
                create_archive(package_dir, result.archive_path)
            except OSError as e:
                raise StorageFailure(f"Не удалось создать архив {result.archive_path.name}: {e}") from e
        except PackageError as e:
            logger.error(f"❌ Экспорт {snapshot.job.job_id} прерван: {e}")
            raise
        except OSError as e:
            logger.error(f"❌ Экспорт {snapshot.job.job_id} прерван: {e}")
            raise StorageFailure(f"Ошибка файловой системы при экспорте: {e}") from e
        finally:
            shutil.rmtree(work_root, ignore_errors=True)

        logger.info(
            f"✅ Пакет результатов создан: {result.archive_path}"
            + (f" (предупреждений: {len(result.warnings)})" if result.warnings else "")
        )
        return result

    async def run_async(self, job: Union[Job, str]) -> ExportResult:
        """Выполнить экспорт в рабочем потоке, не блокируя event loop"""
        return await asyncio.to_thread(self.run, job)

    # ------------------------------------------------------------------
    # Снимок данных
    # ------------------------------------------------------------------

    def _snapshot(self, job: Union[Job, str]) -> _Snapshot:
        if isinstance(job, Job):
            current = self.store.get(Job, job.key)
        else:
            current = self.store.find_job(job)
        if current is None:
            job_id = job.job_id if isinstance(job, Job) else job
            raise JobNotFound(f"Задание не найдено: {job_id}")

        windows = self.store.windows_for(current)
        photos = {window.window_id: self.store.photos_for(window) for window in windows}
        return _Snapshot(job=current, windows=windows, photos=photos)

    # ------------------------------------------------------------------
    # Артефакты
    # ------------------------------------------------------------------

    @staticmethod
    def _manifest_text(snapshot: _Snapshot, overhead_file: Optional[str], exported_at: datetime) -> str:
        return encode_results(build_results_package(snapshot, overhead_file, exported_at))

    @staticmethod
    def _csv_text(snapshot: _Snapshot) -> str:
        counts = {w.window_id: snapshot.photo_counts(w) for w in snapshot.windows}
        return build_windows_csv(snapshot.windows, counts)

    @staticmethod
    def _write_fatal(package_dir: Path, filename: str, build: Callable[[], str]) -> None:
        try:
            content = build()
            (package_dir / filename).write_text(content, encoding="utf-8")
        except (OSError, TypeError, ValueError) as e:
            raise StorageFailure(f"Не удалось сформировать {filename}: {e}") from e

    @staticmethod
    def _write_optional(
        package_dir: Path, filename: str, build: Callable[[], str], result: ExportResult
    ) -> None:
        try:
            (package_dir / filename).write_text(build(), encoding="utf-8")
            result.artifacts.append(filename)
        except Exception as e:
            result.warnings.append(str(record_artifact_failure(filename, e)))

    def _render_overlay(self, snapshot: _Snapshot, package_dir: Path, result: ExportResult) -> bool:
        job = snapshot.job
        try:
            if not self.image_storage.has_overhead(job.overhead_image_path):
                raise MissingAsset(f"У задания {job.job_id} нет обзорного снимка", job.overhead_image_path)
            render_overhead_with_dots(
                self.image_storage.overhead_path(job.overhead_image_path),
                snapshot.windows,
                package_dir / OVERLAY_FILENAME,
            )
            return True
        except Exception as e:
            result.warnings.append(str(record_artifact_failure(OVERLAY_FILENAME, e)))
            (package_dir / OVERLAY_FILENAME).unlink(missing_ok=True)
            return False

    def _copy_photos(self, snapshot: _Snapshot, package_dir: Path, result: ExportResult) -> Dict[str, str]:
        """
        Скопировать фото окон в photos/. Возвращает photo.key -> имя файла в пакете.

        Номер окна не уникален, поэтому счётчик ведётся по (метка, тип)
        на весь пакет.
        """
        exported: Dict[str, str] = {}
        photos_dir = package_dir / PHOTOS_DIRNAME
        index_by_name: Dict[Tuple[str, PhotoType], int] = {}

        for window in snapshot.windows:
            label = safe_filename_part(window.window_number, "W")
            for photo in snapshot.photos.get(window.window_id, []):
                index = index_by_name.get((label, photo.photo_type), 0) + 1
                index_by_name[(label, photo.photo_type)] = index
                source = self.image_storage.photo_path(photo.asset_ref)
                suffix = source.suffix or ".jpg"
                name = f"{label}_{photo.photo_type.value}_{index}{suffix}"
                try:
                    if not source.is_file():
                        raise MissingAsset(f"Фото не найдено: {photo.asset_ref}", photo.asset_ref)
                    photos_dir.mkdir(exist_ok=True)
                    shutil.copyfile(source, photos_dir / name)
                    exported[photo.key] = name
                    result.artifacts.append(f"{PHOTOS_DIRNAME}/{name}")
                except Exception as e:
                    result.warnings.append(str(record_artifact_failure(f"{PHOTOS_DIRNAME}/{name}", e)))

        return exported
