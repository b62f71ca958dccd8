"""
Импорт пакета заданий.

Этапы: IDLE -> ACQUIRING_ROOT -> LOCATING_MANIFEST -> PARSING_MANIFEST ->
MATERIALIZING_ENTITIES -> COMPLETE | FAILED.

Распределение прогресса:
    получение корня        0.0 - 0.3
    поиск и разбор         0.3 - 0.5
    создание заданий       0.5 - 0.9 (линейно по числу заданий)
    фиксация               0.9 - 1.0

Все задания пакета фиксируются одной транзакцией хранилища: при сбое
фиксации ни одно из них не видно через query().
"""
from __future__ import annotations

import asyncio
import logging
import os
import shutil
import tempfile
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, Union

from wt_core.archive import extract_archive, is_archive
from wt_core.entity_store import EntityStore
from wt_core.errors import (
    AccessDenied,
    ImportCancelled,
    MissingAsset,
    PackageError,
    StorageFailure,
)
from wt_core.image_storage import ImageStorage
from wt_core.manifest_io import (
    MANIFEST_FILENAME,
    JobIntakeEntry,
    JobIntakePackage,
    load_intake_file,
)
from wt_core.models import Job, JobStatus
from wt_core.package_locator import locate_package_root

logger = logging.getLogger(__name__)

ACQUIRE_END = 0.3
LOCATE_END = 0.35
PARSE_END = 0.5
MATERIALIZE_END = 0.9


class ImportStage(str, Enum):
    IDLE = "idle"
    ACQUIRING_ROOT = "acquiring_root"
    LOCATING_MANIFEST = "locating_manifest"
    PARSING_MANIFEST = "parsing_manifest"
    MATERIALIZING_ENTITIES = "materializing_entities"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass(frozen=True)
class ImportProgress:
    """Событие прогресса импорта"""

    stage: ImportStage
    fraction: float
    message: str = ""


ProgressCallback = Callable[[ImportProgress], None]


@dataclass
class ImportResult:
    imported_jobs: List[Job] = field(default_factory=list)
    progress: List[ImportProgress] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    package_root: Optional[Path] = None


class JobImportPipeline:
    """
    Импорт пакета заданий (ZIP или папка) в хранилище.

    Использование:
        pipeline = JobImportPipeline(store, ImageStorage(data_dir))
        result = pipeline.run(Path("intake.zip"))
    """

    def __init__(
        self,
        store: EntityStore,
        image_storage: ImageStorage,
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
        work_dir: Optional[Union[str, Path]] = None,
    ):
        """
        Args:
            store: хранилище сущностей
            image_storage: локальное хранилище снимков
            on_progress: наблюдатель событий прогресса (вызывается из потока импорта)
            cancel_event: кооперативная отмена, проверяется между этапами
            work_dir: где создавать временную папку распаковки (по умолчанию системная)
        """
        self.store = store
        self.image_storage = image_storage
        self.on_progress = on_progress
        self.cancel_event = cancel_event
        self.work_dir = Path(work_dir) if work_dir else None

        self.stage = ImportStage.IDLE
        self.progress = 0.0
        self.error: Optional[str] = None
        self._events: List[ImportProgress] = []

    # ------------------------------------------------------------------
    # Публичный API
    # ------------------------------------------------------------------

    def run(self, source: Union[str, Path]) -> ImportResult:
        """
        Импортировать пакет.

        Args:
            source: ZIP-архив, папка пакета или сам jobs.json

        Returns:
            ImportResult с зафиксированными заданиями

        Raises:
            AccessDenied, MissingManifest, MalformedManifest, StorageFailure,
            ImportCancelled
        """
        source = Path(source)
        self._events = []
        self.error = None
        self.progress = 0.0
        result = ImportResult(progress=self._events)

        logger.info(f"Импорт пакета: {source}")
        try:
            self._emit(ImportStage.ACQUIRING_ROOT, 0.0)
            with self._acquire_root(source) as root:
                self._emit(ImportStage.ACQUIRING_ROOT, ACQUIRE_END)
                self._check_cancel()

                self._emit(ImportStage.LOCATING_MANIFEST, ACQUIRE_END)
                package_root = locate_package_root(root)
                result.package_root = package_root
                self._emit(ImportStage.LOCATING_MANIFEST, LOCATE_END)
                self._check_cancel()

                self._emit(ImportStage.PARSING_MANIFEST, LOCATE_END)
                package = load_intake_file(package_root / MANIFEST_FILENAME)
                self._emit(
                    ImportStage.PARSING_MANIFEST,
                    PARSE_END,
                    f"Заданий в пакете: {len(package.jobs)}",
                )
                self._check_cancel()

                result.imported_jobs = self._materialize(package, package_root, result.warnings)
        except PackageError as e:
            self._fail(e)
            raise
        except OSError as e:
            error = StorageFailure(f"Ошибка файловой системы при импорте: {e}")
            self._fail(error)
            raise error from e
        except Exception as e:
            self._fail(e)
            raise

        self._emit(ImportStage.COMPLETE, 1.0, f"Импортировано заданий: {len(result.imported_jobs)}")
        logger.info(
            f"✅ Импорт завершён: {len(result.imported_jobs)} заданий"
            + (f", предупреждений: {len(result.warnings)}" if result.warnings else "")
        )
        return result

    async def run_async(self, source: Union[str, Path]) -> ImportResult:
        """Выполнить импорт в рабочем потоке, не блокируя event loop"""
        return await asyncio.to_thread(self.run, source)

    # ------------------------------------------------------------------
    # Этапы
    # ------------------------------------------------------------------

    @contextmanager
    def _acquire_root(self, source: Path) -> Iterator[Path]:
        """Получить корень пакета. Временная папка распаковки удаляется при любом выходе."""
        if not source.exists():
            raise AccessDenied(f"Источник не найден: {source}")
        if not os.access(source, os.R_OK):
            raise AccessDenied(f"Нет доступа к источнику: {source}")

        if source.is_dir():
            logger.debug(f"Используется папка напрямую: {source}")
            yield source
            return

        if source.name == MANIFEST_FILENAME:
            yield source.parent
            return

        if not is_archive(source):
            raise AccessDenied(f"Неподдерживаемый источник пакета: {source.name}")

        if self.work_dir is not None:
            self.work_dir.mkdir(parents=True, exist_ok=True)
        temp_dir = Path(tempfile.mkdtemp(prefix="temp_import_", dir=self.work_dir))
        try:
            self._emit(ImportStage.ACQUIRING_ROOT, 0.1)
            extract_archive(source, temp_dir)
            yield temp_dir
        finally:
            shutil.rmtree(temp_dir, ignore_errors=True)
            logger.debug(f"Временная папка удалена: {temp_dir}")

    def _materialize(
        self, package: JobIntakePackage, package_root: Path, warnings: List[str]
    ) -> List[Job]:
        self._emit(ImportStage.MATERIALIZING_ENTITIES, PARSE_END)

        total = len(package.jobs)
        batch: Dict[str, Job] = {}
        created_files: List[str] = []

        try:
            with self.store.transaction():
                for index, entry in enumerate(package.jobs):
                    self._check_cancel()
                    job = batch.get(entry.job_id) or self.store.find_job(entry.job_id)
                    job = self._materialize_job(entry, job, package_root, warnings, created_files)
                    self.store.add(job)
                    batch[job.job_id] = job

                    fraction = PARSE_END + (index + 1) / total * (MATERIALIZE_END - PARSE_END)
                    self._emit(ImportStage.MATERIALIZING_ENTITIES, fraction, entry.job_id)

                self._emit(ImportStage.MATERIALIZING_ENTITIES, MATERIALIZE_END, "Фиксация")
        except BaseException:
            for filename in created_files:
                self.image_storage.remove_overhead(filename)
            raise

        return [self.store.get(Job, job.key) for job in batch.values()]

    def _materialize_job(
        self,
        entry: JobIntakeEntry,
        job: Optional[Job],
        package_root: Path,
        warnings: List[str],
        created_files: List[str],
    ) -> Job:
        """Создать или обновить задание по записи манифеста"""
        if job is None:
            job = Job(job_id=entry.job_id)
        else:
            logger.info(f"Задание {entry.job_id} уже существует, обновляем данные заявки")

        job.client_name = entry.client_name
        job.address_line1 = entry.address.line1
        job.city = entry.address.city
        job.state = entry.address.state
        job.zip = entry.address.zip
        job.notes = entry.notes
        # Импортированное задание всегда начинается с нуля
        job.status = JobStatus.READY
        job.touch()

        overhead = entry.overhead
        if overhead is None:
            return job

        if overhead.source is not None:
            job.overhead_image_source_name = overhead.source.name
            job.overhead_image_source_url = overhead.source.url
            job.overhead_image_fetched_at = overhead.source.fetched_at
        scale = overhead.effective_scale
        if scale is not None:
            job.scale_pixels_per_foot = scale

        try:
            image_path = self._resolve_asset(package_root, overhead.image_file)
            filename = self.image_storage.overhead_filename(job.job_id)
            existed = self.image_storage.has_overhead(filename)
            job.overhead_image_path = self.image_storage.store_overhead(image_path, job.job_id)
            if not existed:
                created_files.append(filename)
        except MissingAsset as e:
            logger.warning(f"⚠️ {entry.job_id}: {e}")
            warnings.append(f"{entry.job_id}: {e}")

        return job

    @staticmethod
    def _resolve_asset(package_root: Path, relative: str) -> Path:
        root = package_root.resolve()
        try:
            candidate = (root / relative).resolve()
            is_file = candidate.is_file()
        except (OSError, ValueError) as e:
            raise MissingAsset(f"Недопустимый путь снимка {relative!r}: {e}", relative) from e
        if candidate != root and root not in candidate.parents:
            raise MissingAsset(f"Путь снимка вне пакета: {relative}", relative)
        if not is_file:
            raise MissingAsset(f"Обзорный снимок не найден: {relative}", relative)
        return candidate

    # ------------------------------------------------------------------
    # Прогресс
    # ------------------------------------------------------------------

    def _emit(self, stage: ImportStage, fraction: float, message: str = "") -> None:
        self.stage = stage
        self.progress = max(self.progress, fraction)
        event = ImportProgress(stage=stage, fraction=self.progress, message=message)
        self._events.append(event)
        if self.on_progress is not None:
            self.on_progress(event)

    def _fail(self, error: Exception) -> None:
        """Сообщить об ошибке с текущей долей прогресса, затем сбросить прогресс в 0"""
        self.error = str(error)
        logger.error(f"❌ Импорт не выполнен ({self.stage.value}): {error}")
        self._emit(ImportStage.FAILED, self.progress, self.error)
        self.progress = 0.0

    def _check_cancel(self) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise ImportCancelled("Импорт отменён")
