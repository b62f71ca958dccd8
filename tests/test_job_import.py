import asyncio
import threading
from pathlib import Path

import pytest

from tests.conftest import intake_entry, make_image, write_package, zip_directory
from wt_core.entity_store import EntityStore
from wt_core.errors import (
    AccessDenied,
    ArchiveError,
    ImportCancelled,
    MalformedManifest,
    MissingManifest,
    StorageFailure,
)
from wt_core.job_import import ImportStage, JobImportPipeline
from wt_core.models import Job, JobStatus, Window


def _pipeline(store, image_storage, work_dir, **kwargs) -> JobImportPipeline:
    return JobImportPipeline(store, image_storage, work_dir=work_dir, **kwargs)


def test_import_folder_creates_ready_job(tmp_path, store, image_storage, work_dir):
    entry = intake_entry("E1", city="Largo", image_file="overhead/E1.jpg", scalePixelsPerFoot=10.0)
    entry["clientName"] = "Smith"
    entry["address"] = {"line1": "1 Main St", "city": "Largo", "state": "FL", "zip": "33770"}
    package = write_package(tmp_path / "pkg", [entry], images={"overhead/E1.jpg": (400, 300)})

    result = _pipeline(store, image_storage, work_dir).run(package)

    jobs = store.query(Job)
    assert len(jobs) == 1
    job = jobs[0]
    assert job.status is JobStatus.READY
    assert job.scale_pixels_per_foot == 10.0
    assert job.overhead_image_path == "E1_overhead.jpg"
    assert image_storage.has_overhead("E1_overhead.jpg")
    assert [j.job_id for j in result.imported_jobs] == ["E1"]
    assert result.warnings == []
    assert result.package_root == package


def test_import_zip_with_wrapping_folder(tmp_path, store, image_storage, work_dir):
    source = tmp_path / "src"
    write_package(
        source,
        [intake_entry("E1", image_file="E1.jpg"), intake_entry("E2")],
        images={"E1.jpg": (200, 100)},
        subdir="Intake_Sept",
    )
    archive = zip_directory(source, tmp_path / "intake.zip")

    result = _pipeline(store, image_storage, work_dir).run(archive)

    assert sorted(j.job_id for j in result.imported_jobs) == ["E1", "E2"]
    assert image_storage.has_overhead("E1_overhead.jpg")
    # временная папка распаковки удалена
    assert list(work_dir.iterdir()) == []


def test_source_metadata_and_zoom_scale(tmp_path, store, image_storage, work_dir):
    entry = intake_entry(
        "E1",
        image_file="missing.jpg",
        source={"name": "Nearmap", "url": "https://example.test/e1", "fetchedAt": 1758895210},
        zoomScale=2.0,
    )
    package = write_package(tmp_path / "pkg", [entry])

    result = _pipeline(store, image_storage, work_dir).run(package)

    job = store.find_job("E1")
    assert job.overhead_image_source_name == "Nearmap"
    assert job.overhead_image_fetched_at.isoformat() == "2025-09-26T14:00:10+00:00"
    assert job.scale_pixels_per_foot == 20.0
    # снимка нет - задание создано, предупреждение записано
    assert job.overhead_image_path is None
    assert len(result.warnings) == 1
    assert "missing.jpg" in result.warnings[0]


def test_image_path_outside_package_is_rejected(tmp_path, store, image_storage, work_dir):
    make_image(tmp_path / "outside.jpg")
    package = write_package(tmp_path / "pkg", [intake_entry("E1", image_file="../outside.jpg")])

    result = _pipeline(store, image_storage, work_dir).run(package)

    assert store.find_job("E1").overhead_image_path is None
    assert result.warnings


def test_null_byte_in_image_path_is_a_warning(tmp_path, store, image_storage, work_dir):
    package = write_package(tmp_path / "pkg", [intake_entry("E1", image_file="a\u0000b.jpg"), intake_entry("E2")])
    events = []

    result = _pipeline(store, image_storage, work_dir, on_progress=events.append).run(package)

    assert sorted(j.job_id for j in result.imported_jobs) == ["E1", "E2"]
    assert store.find_job("E1").overhead_image_path is None
    assert len(result.warnings) == 1
    assert result.warnings[0].startswith("E1:")
    assert events[-1].stage is ImportStage.COMPLETE


def test_unexpected_error_reports_failure(tmp_path, store, image_storage, work_dir, monkeypatch):
    package = write_package(tmp_path / "pkg", [intake_entry("E1", image_file="E1.jpg")], images={"E1.jpg": (50, 50)})

    def broken(*_args, **_kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(image_storage, "store_overhead", broken)
    events = []
    pipeline = _pipeline(store, image_storage, work_dir, on_progress=events.append)

    with pytest.raises(RuntimeError):
        pipeline.run(package)

    assert store.query(Job) == []
    assert events[-1].stage is ImportStage.FAILED
    assert events[-1].fraction >= 0.5
    assert pipeline.progress == 0.0
    assert pipeline.error == "boom"


def test_progress_is_monotonic_and_completes(tmp_path, store, image_storage, work_dir):
    events = []
    package = write_package(tmp_path / "pkg", [intake_entry(f"E{i}") for i in range(3)])
    pipeline = _pipeline(store, image_storage, work_dir, on_progress=events.append)

    result = pipeline.run(package)

    fractions = [e.fraction for e in events]
    assert fractions == sorted(fractions)
    assert events[-1].stage is ImportStage.COMPLETE
    assert events[-1].fraction == 1.0
    assert result.progress == events
    stages = [e.stage for e in events]
    assert stages.index(ImportStage.PARSING_MANIFEST) < stages.index(ImportStage.MATERIALIZING_ENTITIES)


def test_commit_failure_leaves_no_jobs(tmp_path, store, image_storage, work_dir, monkeypatch):
    package = write_package(
        tmp_path / "pkg",
        [intake_entry("E1", image_file="E1.jpg"), intake_entry("E2"), intake_entry("E3")],
        images={"E1.jpg": (100, 100)},
    )

    def broken(_state):
        raise OSError("disk full")

    monkeypatch.setattr(store, "_persist", broken)
    events = []
    pipeline = _pipeline(store, image_storage, work_dir, on_progress=events.append)

    with pytest.raises(StorageFailure):
        pipeline.run(package)

    assert store.query(Job) == []
    # снимок, скопированный в рамках неудачного импорта, удалён
    assert not image_storage.has_overhead("E1_overhead.jpg")
    assert events[-1].stage is ImportStage.FAILED
    assert events[-1].fraction == pytest.approx(0.9)
    assert pipeline.progress == 0.0
    assert pipeline.error


def test_malformed_manifest_imports_nothing(tmp_path, store, image_storage, work_dir):
    package = tmp_path / "pkg"
    package.mkdir()
    (package / "jobs.json").write_text('{"version": "1.0", "jobs": [{"jobId": "E1"}]}', encoding="utf-8")

    with pytest.raises(MalformedManifest):
        _pipeline(store, image_storage, work_dir).run(package)
    assert store.query(Job) == []


def test_missing_manifest(tmp_path, store, image_storage, work_dir):
    (tmp_path / "empty").mkdir()
    with pytest.raises(MissingManifest):
        _pipeline(store, image_storage, work_dir).run(tmp_path / "empty")


def test_missing_source_is_access_denied(tmp_path, store, image_storage, work_dir):
    with pytest.raises(AccessDenied):
        _pipeline(store, image_storage, work_dir).run(tmp_path / "nothing.zip")


def test_corrupt_archive_cleans_up(tmp_path, store, image_storage, work_dir):
    archive = tmp_path / "broken.zip"
    archive.write_bytes(b"not a zip at all")
    with pytest.raises(ArchiveError):
        _pipeline(store, image_storage, work_dir).run(archive)
    assert list(work_dir.iterdir()) == []


def test_manifest_file_as_source(tmp_path, store, image_storage, work_dir):
    package = write_package(tmp_path / "pkg", [intake_entry("E1")])
    result = _pipeline(store, image_storage, work_dir).run(package / "jobs.json")
    assert [j.job_id for j in result.imported_jobs] == ["E1"]


def test_reimport_updates_job_and_keeps_windows(tmp_path, store, image_storage, work_dir):
    package = write_package(tmp_path / "pkg", [intake_entry("E1")])
    _pipeline(store, image_storage, work_dir).run(package)
    job = store.find_job("E1")
    with store.transaction():
        job.status = JobStatus.IN_PROGRESS
        store.add(job)
        store.create(Window, job_key=job.key, window_number="W1", x_position=1, y_position=2)

    entry = intake_entry("E1")
    entry["clientName"] = "Renamed"
    package = write_package(tmp_path / "pkg2", [entry])
    _pipeline(store, image_storage, work_dir).run(package)

    jobs = store.query(Job)
    assert len(jobs) == 1
    assert jobs[0].key == job.key
    assert jobs[0].client_name == "Renamed"
    assert jobs[0].status is JobStatus.READY
    assert len(store.windows_for(jobs[0])) == 1


def test_cancel_before_materialization(tmp_path, store, image_storage, work_dir):
    cancel = threading.Event()
    cancel.set()
    package = write_package(tmp_path / "pkg", [intake_entry("E1")])
    with pytest.raises(ImportCancelled):
        _pipeline(store, image_storage, work_dir, cancel_event=cancel).run(package)
    assert store.query(Job) == []


def test_run_async(tmp_path, data_dir, image_storage, work_dir):
    store = EntityStore(data_dir / "store.json")
    package = write_package(tmp_path / "pkg", [intake_entry("E1")])
    result = asyncio.run(_pipeline(store, image_storage, work_dir).run_async(package))
    assert [j.job_id for j in result.imported_jobs] == ["E1"]
    assert EntityStore(data_dir / "store.json").find_job("E1") is not None


def test_read_only_source_is_not_modified(tmp_path, store, image_storage, work_dir):
    package = write_package(tmp_path / "pkg", [intake_entry("E1", image_file="E1.jpg")], images={"E1.jpg": (50, 50)})
    before = sorted(p.relative_to(package) for p in package.rglob("*"))
    _pipeline(store, image_storage, work_dir).run(package)
    assert sorted(p.relative_to(package) for p in Path(package).rglob("*")) == before
