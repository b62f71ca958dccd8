"""
Локальное хранилище изображений.

Обзорные снимки: {root}/overhead_images/{jobId}_overhead.jpg
Фотографии окон: {root}/photos/<asset_ref>

На запись задания сохраняется только имя файла, не абсолютный путь.
"""
from __future__ import annotations

import logging
import re
import shutil
from pathlib import Path
from typing import Optional, Union

from wt_core.errors import MissingAsset, StorageFailure

logger = logging.getLogger(__name__)

OVERHEAD_DIRNAME = "overhead_images"
PHOTOS_DIRNAME = "photos"

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def safe_filename_part(value: str, fallback: str = "Unknown") -> str:
    """Заменить небезопасные для пути символы на '_'"""
    cleaned = _UNSAFE_CHARS.sub("_", (value or "").strip()).strip("._")
    return cleaned or fallback


class ImageStorage:
    """Папка с обзорными снимками и фотографиями окон"""

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)
        self.overhead_dir = self.root / OVERHEAD_DIRNAME
        self.photos_dir = self.root / PHOTOS_DIRNAME

    @staticmethod
    def overhead_filename(job_id: str) -> str:
        return f"{safe_filename_part(job_id)}_overhead.jpg"

    def overhead_path(self, filename: str) -> Path:
        return self.overhead_dir / filename

    def photo_path(self, asset_ref: str) -> Path:
        return self.photos_dir / asset_ref

    def has_overhead(self, filename: Optional[str]) -> bool:
        return bool(filename) and self.overhead_path(filename).is_file()

    def store_overhead(self, source: Union[str, Path], job_id: str) -> str:
        """
        Скопировать обзорный снимок в хранилище.

        Имя файла детерминировано по jobId, повторный импорт перезаписывает снимок.

        Returns:
            Имя файла внутри overhead_images

        Raises:
            MissingAsset: исходного файла нет
            StorageFailure: ошибка записи
        """
        source = Path(source)
        if not source.is_file():
            raise MissingAsset(f"Обзорный снимок не найден: {source.name}", str(source))

        filename = self.overhead_filename(job_id)
        destination = self.overhead_path(filename)
        try:
            self.overhead_dir.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, destination)
        except OSError as e:
            raise StorageFailure(f"Не удалось сохранить обзорный снимок {filename}: {e}") from e

        logger.debug(f"Обзорный снимок сохранён: {destination}")
        return filename

    def store_photo(self, data: bytes, asset_ref: str) -> str:
        """Сохранить байты фотографии (результат камеры) под именем asset_ref"""
        destination = self.photo_path(asset_ref)
        try:
            self.photos_dir.mkdir(parents=True, exist_ok=True)
            destination.write_bytes(data)
        except OSError as e:
            raise StorageFailure(f"Не удалось сохранить фото {asset_ref}: {e}") from e
        return asset_ref

    def remove_overhead(self, filename: str) -> None:
        try:
            self.overhead_path(filename).unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Не удалось удалить обзорный снимок {filename}: {e}")
