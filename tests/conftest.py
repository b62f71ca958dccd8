from __future__ import annotations

import json
import zipfile
from pathlib import Path
from typing import Optional

import pytest
from PIL import Image

from wt_core.entity_store import EntityStore
from wt_core.image_storage import ImageStorage


def make_image(path: Path, size=(400, 300), color=(200, 200, 200)) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", size, color).save(path, format="JPEG")
    return path


def intake_entry(
    job_id: str,
    city: str = "Austin",
    image_file: Optional[str] = None,
    **overhead_extra,
) -> dict:
    entry = {
        "jobId": job_id,
        "clientName": f"Client {job_id}",
        "address": {"line1": "12 Main St", "city": city, "state": "TX", "zip": "78701"},
        "notes": None,
    }
    if image_file is not None:
        entry["overhead"] = {"imageFile": image_file, **overhead_extra}
    return entry


def write_package(
    root: Path,
    entries: list,
    images: Optional[dict] = None,
    subdir: Optional[str] = None,
) -> Path:
    """Собрать папку пакета: jobs.json + снимки. Возвращает папку с манифестом."""
    package_dir = root / subdir if subdir else root
    package_dir.mkdir(parents=True, exist_ok=True)
    manifest = {
        "version": "1.0",
        "createdAt": "2025-09-26T14:00:10Z",
        "preparedBy": "Dispatch",
        "jobs": entries,
    }
    (package_dir / "jobs.json").write_text(json.dumps(manifest), encoding="utf-8")
    for name, size in (images or {}).items():
        make_image(package_dir / name, size=size)
    return package_dir


def zip_directory(source: Path, archive: Path) -> Path:
    with zipfile.ZipFile(archive, "w", zipfile.ZIP_DEFLATED) as zf:
        for path in sorted(source.rglob("*")):
            if path.is_file():
                zf.write(path, path.relative_to(source).as_posix())
    return archive


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    path = tmp_path / "data"
    path.mkdir()
    return path


@pytest.fixture
def store(data_dir: Path) -> EntityStore:
    return EntityStore(data_dir / "store.json")


@pytest.fixture
def image_storage(data_dir: Path) -> ImageStorage:
    return ImageStorage(data_dir)


@pytest.fixture
def work_dir(tmp_path: Path) -> Path:
    path = tmp_path / "work"
    path.mkdir()
    return path
