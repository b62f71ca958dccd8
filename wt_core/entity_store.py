"""
Хранилище сущностей Job / Window / Photo.

Таблицы - словари по ключу с обратными ссылками (Window.job_key,
Photo.window_key) вместо живого графа объектов.

Запись - одна транзакция за раз (single-writer): изменения копятся
в pending и становятся видны query() только после save(). Читатели
всегда видят последнее зафиксированное состояние и никогда - половину
импорта. Каскадное удаление выполняется явно при фиксации.
"""
from __future__ import annotations

import copy
import json
import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, Type, TypeVar, Union

from wt_core.errors import StorageFailure
from wt_core.models import Job, Photo, Window

logger = logging.getLogger(__name__)

STORE_FORMAT_VERSION = 1

Entity = Union[Job, Window, Photo]
T = TypeVar("T", Job, Window, Photo)

# Имя таблицы в снимке -> класс сущности
_TABLES: Dict[str, type] = {"jobs": Job, "windows": Window, "photos": Photo}
_TABLE_BY_TYPE: Dict[type, str] = {v: k for k, v in _TABLES.items()}


def _table_name(entity_type: type) -> str:
    try:
        return _TABLE_BY_TYPE[entity_type]
    except KeyError:
        raise TypeError(f"Неизвестный тип сущности: {entity_type.__name__}") from None


class EntityStore:
    """
    Транзакционное хранилище сущностей с опциональным JSON-снимком на диске.

    Использование:
        store = EntityStore(Path("data/store.json"))
        with store.transaction():
            job = store.create(Job, job_id="E1")
            store.create(Window, job_key=job.key, window_number="W1", x_position=1, y_position=2)
        # транзакция фиксируется через save() при выходе без исключения
    """

    def __init__(self, path: Optional[Union[str, Path]] = None):
        """
        Args:
            path: файл снимка; None - только в памяти
        """
        self._path = Path(path) if path else None
        self._write_lock = threading.RLock()
        self._read_lock = threading.Lock()
        self._committed: Dict[str, Dict[str, Entity]] = {name: {} for name in _TABLES}
        self._pending_upserts: Dict[str, Dict[str, Entity]] = {name: {} for name in _TABLES}
        self._pending_deletes: Dict[str, set] = {name: set() for name in _TABLES}

        if self._path is not None and self._path.exists():
            self._committed = self._load_snapshot(self._path)

    # ------------------------------------------------------------------
    # Чтение
    # ------------------------------------------------------------------

    def query(
        self, entity_type: Type[T], predicate: Optional[Callable[[T], bool]] = None
    ) -> List[T]:
        """
        Вернуть копии зафиксированных сущностей типа entity_type.

        Порядок - по created_at, затем по ключу.
        """
        table = _table_name(entity_type)
        with self._read_lock:
            items = list(self._committed[table].values())
        result = [copy.deepcopy(item) for item in items if predicate is None or predicate(item)]
        result.sort(key=lambda e: (e.created_at, e.key))
        return result

    def get(self, entity_type: Type[T], key: str) -> Optional[T]:
        table = _table_name(entity_type)
        with self._read_lock:
            item = self._committed[table].get(key)
        return copy.deepcopy(item) if item is not None else None

    def find_job(self, job_id: str) -> Optional[Job]:
        """Найти задание по внешнему jobId"""
        jobs = self.query(Job, lambda j: j.job_id == job_id)
        return jobs[0] if jobs else None

    def windows_for(self, job: Job) -> List[Window]:
        return self.query(Window, lambda w: w.job_key == job.key)

    def photos_for(self, window: Window) -> List[Photo]:
        return self.query(Photo, lambda p: p.window_key == window.key)

    # ------------------------------------------------------------------
    # Запись
    # ------------------------------------------------------------------

    def create(self, entity_type: Type[T], **fields) -> T:
        """Создать сущность и поставить её в очередь на запись"""
        entity = entity_type(**fields)
        return self.add(entity)

    def add(self, entity: T) -> T:
        """Поставить новую или изменённую сущность в очередь на запись"""
        table = _table_name(type(entity))
        with self._write_lock:
            self._pending_deletes[table].discard(entity.key)
            self._pending_upserts[table][entity.key] = entity
        return entity

    def delete(self, entity: Entity) -> None:
        """Поставить сущность на удаление (Job -> окна -> фото каскадом)"""
        table = _table_name(type(entity))
        with self._write_lock:
            self._pending_upserts[table].pop(entity.key, None)
            self._pending_deletes[table].add(entity.key)

    def has_changes(self) -> bool:
        return any(self._pending_upserts[t] or self._pending_deletes[t] for t in _TABLES)

    def rollback(self) -> None:
        """Отбросить незафиксированные изменения"""
        with self._write_lock:
            for name in _TABLES:
                self._pending_upserts[name].clear()
                self._pending_deletes[name].clear()

    def save(self) -> None:
        """
        Атомарно зафиксировать накопленные изменения.

        При ошибке (нарушение инвариантов, сбой записи снимка) ни одно
        изменение не становится видимым, очередь сбрасывается.

        Raises:
            StorageFailure: фиксация не удалась
        """
        with self._write_lock:
            if not self.has_changes():
                return
            try:
                staged = self._build_staged_state()
                self._persist(staged)
            except StorageFailure:
                self.rollback()
                raise
            except (OSError, TypeError, ValueError) as e:
                self.rollback()
                raise StorageFailure(f"Не удалось сохранить данные: {e}") from e

            with self._read_lock:
                self._committed = staged
            self.rollback()
            logger.debug(
                "Хранилище зафиксировано: "
                + ", ".join(f"{name}={len(staged[name])}" for name in _TABLES)
            )

    @contextmanager
    def transaction(self) -> Iterator["EntityStore"]:
        """
        Транзакция записи: save() при успешном выходе, rollback() при исключении.
        Блокирует других писателей до завершения.
        """
        with self._write_lock:
            try:
                yield self
            except BaseException:
                self.rollback()
                raise
            self.save()

    # ------------------------------------------------------------------
    # Внутреннее
    # ------------------------------------------------------------------

    def _build_staged_state(self) -> Dict[str, Dict[str, Entity]]:
        staged = {name: dict(self._committed[name]) for name in _TABLES}

        for name in _TABLES:
            for key, entity in self._pending_upserts[name].items():
                staged[name][key] = copy.deepcopy(entity)

        # Каскад: Job -> Window -> Photo
        deleted_jobs = set(self._pending_deletes["jobs"])
        deleted_windows = set(self._pending_deletes["windows"])
        deleted_windows |= {k for k, w in staged["windows"].items() if w.job_key in deleted_jobs}
        deleted_photos = set(self._pending_deletes["photos"])
        deleted_photos |= {k for k, p in staged["photos"].items() if p.window_key in deleted_windows}

        for key in deleted_jobs:
            staged["jobs"].pop(key, None)
        for key in deleted_windows:
            staged["windows"].pop(key, None)
        for key in deleted_photos:
            staged["photos"].pop(key, None)

        self._validate(staged)
        return staged

    @staticmethod
    def _validate(state: Dict[str, Dict[str, Entity]]) -> None:
        for job in state["jobs"].values():
            if not job.job_id or not job.job_id.strip():
                raise StorageFailure("Задание без jobId не может быть сохранено")
        for window in state["windows"].values():
            if window.job_key not in state["jobs"]:
                raise StorageFailure(f"Окно {window.window_number} ссылается на несуществующее задание")
        for photo in state["photos"].values():
            if photo.window_key not in state["windows"]:
                raise StorageFailure("Фото ссылается на несуществующее окно")

    def _persist(self, state: Dict[str, Dict[str, Entity]]) -> None:
        """Записать снимок на диск (атомарно через temp file)"""
        if self._path is None:
            return
        data = {"version": STORE_FORMAT_VERSION}
        for name in _TABLES:
            data[name] = [entity.to_dict() for entity in state[name].values()]

        self._path.parent.mkdir(parents=True, exist_ok=True)
        temp_file = self._path.with_suffix(".tmp")
        with open(temp_file, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
        temp_file.replace(self._path)

    @staticmethod
    def _load_snapshot(path: Path) -> Dict[str, Dict[str, Entity]]:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StorageFailure(f"Не удалось прочитать хранилище {path}: {e}") from e

        state: Dict[str, Dict[str, Entity]] = {}
        for name, entity_type in _TABLES.items():
            items = [entity_type.from_dict(item) for item in data.get(name, [])]
            state[name] = {item.key: item for item in items}
        logger.info(
            f"Хранилище загружено: {path} "
            f"(заданий: {len(state['jobs'])}, окон: {len(state['windows'])})"
        )
        return state
