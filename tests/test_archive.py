import zipfile

import pytest

from wt_core.archive import create_archive, extract_archive, is_archive
from wt_core.errors import AccessDenied, ArchiveError


def test_create_archive_nests_under_root_name(tmp_path):
    source = tmp_path / "E1_Largo_20250927"
    (source / "photos").mkdir(parents=True)
    (source / "job.json").write_text("{}", encoding="utf-8")
    (source / "photos" / "W1_Exterior_1.jpg").write_bytes(b"x")

    archive = create_archive(source, tmp_path / "out" / "pkg.zip")

    with zipfile.ZipFile(archive) as zf:
        assert sorted(zf.namelist()) == [
            "E1_Largo_20250927/job.json",
            "E1_Largo_20250927/photos/W1_Exterior_1.jpg",
        ]
        assert all(info.compress_type == zipfile.ZIP_DEFLATED for info in zf.infolist())
    assert not (tmp_path / "out" / "pkg.zip.tmp").exists()


def test_extract_rejects_entries_escaping_destination(tmp_path):
    archive = tmp_path / "evil.zip"
    with zipfile.ZipFile(archive, "w") as zf:
        zf.writestr("../escape.txt", "x")
    with pytest.raises(ArchiveError):
        extract_archive(archive, tmp_path / "dest")
    assert not (tmp_path / "escape.txt").exists()


def test_extract_corrupt_archive(tmp_path):
    archive = tmp_path / "bad.zip"
    archive.write_bytes(b"PK garbage")
    with pytest.raises(ArchiveError):
        extract_archive(archive, tmp_path / "dest")


def test_extract_missing_archive(tmp_path):
    with pytest.raises(AccessDenied):
        extract_archive(tmp_path / "none.zip", tmp_path / "dest")


def test_extract_round_trip(tmp_path):
    archive = tmp_path / "pkg.zip"
    with zipfile.ZipFile(archive, "w") as zf:
        zf.writestr("pkg/jobs.json", "{}")
    dest = extract_archive(archive, tmp_path / "dest")
    assert (dest / "pkg" / "jobs.json").read_text() == "{}"


def test_is_archive():
    assert is_archive("Intake.ZIP")
    assert not is_archive("jobs.json")
