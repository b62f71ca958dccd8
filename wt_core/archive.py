"""Чтение и запись ZIP-архивов пакетов"""
from __future__ import annotations

import logging
import os
import zipfile
from pathlib import Path
from typing import Optional, Union

from wt_core.errors import AccessDenied, ArchiveError

logger = logging.getLogger(__name__)

ARCHIVE_SUFFIX = ".zip"


def is_archive(path: Union[str, Path]) -> bool:
    return Path(path).suffix.lower() == ARCHIVE_SUFFIX


def extract_archive(archive_path: Union[str, Path], dest_dir: Union[str, Path]) -> Path:
    """
    Распаковать архив в папку.

    Args:
        archive_path: путь к ZIP
        dest_dir: папка назначения (создаётся при необходимости)

    Returns:
        Папка назначения

    Raises:
        AccessDenied: архив не открывается на чтение
        ArchiveError: архив повреждён или содержит пути за пределами dest_dir
    """
    archive_path = Path(archive_path)
    dest_dir = Path(dest_dir)
    dest_dir.mkdir(parents=True, exist_ok=True)
    dest_root = dest_dir.resolve()

    try:
        with zipfile.ZipFile(archive_path) as zf:
            for member in zf.infolist():
                target = (dest_root / member.filename).resolve()
                if target != dest_root and dest_root not in target.parents:
                    raise ArchiveError(f"Недопустимый путь в архиве: {member.filename}")
            zf.extractall(dest_root)
            count = len(zf.infolist())
    except zipfile.BadZipFile as e:
        raise ArchiveError(f"Архив повреждён: {archive_path.name}") from e
    except (FileNotFoundError, PermissionError) as e:
        raise AccessDenied(f"Не удалось открыть архив: {archive_path}") from e

    logger.info(f"Архив распакован: {archive_path.name} -> {dest_dir} ({count} записей)")
    return dest_dir


def create_archive(
    source_dir: Union[str, Path],
    archive_path: Union[str, Path],
    root_name: Optional[str] = None,
) -> Path:
    """
    Упаковать папку в ZIP (deflate).

    Args:
        source_dir: папка с содержимым пакета
        archive_path: путь к создаваемому архиву
        root_name: имя корневой папки внутри архива (по умолчанию имя source_dir)

    Returns:
        Путь к архиву
    """
    source_dir = Path(source_dir)
    archive_path = Path(archive_path)
    archive_path.parent.mkdir(parents=True, exist_ok=True)
    root_name = root_name or source_dir.name

    tmp_path = archive_path.with_suffix(archive_path.suffix + ".tmp")
    try:
        with zipfile.ZipFile(tmp_path, "w", zipfile.ZIP_DEFLATED) as zf:
            for dirpath, _, filenames in sorted(os.walk(source_dir)):
                for filename in sorted(filenames):
                    file_path = Path(dirpath) / filename
                    arcname = Path(root_name) / file_path.relative_to(source_dir)
                    zf.write(file_path, arcname.as_posix())
        tmp_path.replace(archive_path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise

    logger.info(f"Архив создан: {archive_path} ({archive_path.stat().st_size} байт)")
    return archive_path
