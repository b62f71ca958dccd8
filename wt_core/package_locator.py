"""
Поиск корня пакета заданий.

Пакет может прийти как голая папка, как папка с одним лишним уровнем
вложенности (его добавляют файловые диалоги и распаковщики) или, редко,
как набор соседних папок. Порядок поиска jobs.json:

1. сам корень;
2. единственная подпапка;
3. первая по порядку перечисления подпапка, где есть манифест;
4. иначе MissingManifest.

Глубже одного уровня не ищем.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Iterable, List, Union

from wt_core.errors import AccessDenied, MissingManifest
from wt_core.manifest_io import MANIFEST_FILENAME

logger = logging.getLogger(__name__)

DirectoryLister = Callable[[Path], Iterable[Path]]

# Служебные папки архиваторов
IGNORED_DIR_NAMES = frozenset({"__MACOSX"})


def list_directory(path: Path) -> List[Path]:
    """Перечислить содержимое папки в стабильном порядке (по имени)"""
    return sorted(path.iterdir(), key=lambda p: p.name)


def _is_candidate_dir(path: Path) -> bool:
    if path.name.startswith(".") or path.name in IGNORED_DIR_NAMES:
        return False
    return path.is_dir()


def has_manifest(directory: Path, manifest_name: str = MANIFEST_FILENAME) -> bool:
    return (directory / manifest_name).is_file()


def locate_package_root(
    root: Union[str, Path],
    lister: DirectoryLister = list_directory,
    manifest_name: str = MANIFEST_FILENAME,
) -> Path:
    """
    Найти папку, содержащую манифест.

    Args:
        root: корень, выбранный пользователем или полученный распаковкой
        lister: функция перечисления содержимого папки
        manifest_name: имя файла манифеста

    Returns:
        Папка с манифестом

    Raises:
        AccessDenied: корень недоступен для чтения
        MissingManifest: манифест не найден
    """
    root = Path(root)
    if has_manifest(root, manifest_name):
        logger.debug(f"{manifest_name} найден в корне: {root}")
        return root

    try:
        entries = list(lister(root))
    except FileNotFoundError as e:
        raise AccessDenied(f"Папка пакета не найдена: {root}") from e
    except (PermissionError, NotADirectoryError) as e:
        raise AccessDenied(f"Нет доступа к папке пакета: {root}") from e

    subfolders = [p for p in entries if _is_candidate_dir(p)]
    logger.debug(f"{manifest_name} нет в корне, подпапок: {len(subfolders)}")

    if len(subfolders) == 1:
        if has_manifest(subfolders[0], manifest_name):
            logger.info(f"{manifest_name} найден в единственной подпапке: {subfolders[0].name}")
            return subfolders[0]
    elif len(subfolders) > 1:
        for subfolder in subfolders:
            if has_manifest(subfolder, manifest_name):
                logger.info(f"{manifest_name} найден в подпапке: {subfolder.name}")
                return subfolder

    raise MissingManifest(f"Пакет не содержит {manifest_name}")
