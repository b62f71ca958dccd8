"""Таксономия ошибок обмена пакетами"""
import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


class PackageError(Exception):
    """Базовая ошибка обработки пакета. str(error) показывается пользователю."""

    pass


class AccessDenied(PackageError):
    """Источник пакета недоступен (нет прав, не существует, песочница)"""

    pass


class MissingManifest(PackageError):
    """В пакете нет jobs.json"""

    pass


class MalformedManifest(PackageError):
    """Манифест не разбирается или нарушает схему"""

    def __init__(self, message: str, field_path: Optional[str] = None):
        super().__init__(message)
        self.field_path = field_path


class MissingAsset(PackageError):
    """Файл, на который ссылается манифест, отсутствует"""

    def __init__(self, message: str, asset_path: Optional[str] = None):
        super().__init__(message)
        self.asset_path = asset_path


class StorageFailure(PackageError):
    """Ошибка фиксации в хранилище или записи на диск"""

    pass


class ArchiveError(PackageError):
    """Архив повреждён или содержит недопустимые пути"""

    pass


class JobNotFound(PackageError):
    """Задание с указанным jobId отсутствует в хранилище"""

    pass


class ImportCancelled(PackageError):
    """Импорт отменён между этапами"""

    pass


@dataclass
class ArtifactWarning:
    """Некритичная ошибка при формировании одного артефакта"""

    artifact: str
    message: str

    def __str__(self) -> str:
        return f"{self.artifact}: {self.message}"


def record_artifact_failure(artifact: str, error: Exception) -> ArtifactWarning:
    """
    Залогировать некритичную ошибку артефакта и вернуть предупреждение.

    Args:
        artifact: имя артефакта (файл пакета)
        error: исключение

    Returns:
        ArtifactWarning для отчёта вызывающему
    """
    if isinstance(error, (PackageError, OSError)):
        logger.warning(f"⚠️ Артефакт {artifact} пропущен: {error}")
    else:
        logger.error(
            f"❌ Неожиданная ошибка артефакта {artifact}: {type(error).__name__}: {error}",
            exc_info=True,
        )
    return ArtifactWarning(artifact=artifact, message=str(error))
