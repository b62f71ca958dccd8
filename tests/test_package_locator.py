from pathlib import Path

import pytest

from wt_core.errors import AccessDenied, MissingManifest
from wt_core.package_locator import locate_package_root


def _manifest(directory: Path) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    (directory / "jobs.json").write_text("{}", encoding="utf-8")
    return directory


def test_manifest_at_root(tmp_path):
    _manifest(tmp_path)
    (tmp_path / "nested").mkdir()
    assert locate_package_root(tmp_path) == tmp_path


def test_single_wrapping_subfolder(tmp_path):
    inner = _manifest(tmp_path / "Intake_2025")
    assert locate_package_root(tmp_path) == inner


def test_two_subfolders_first_in_enumeration_order_wins(tmp_path):
    _manifest(tmp_path / "b_second")
    first = _manifest(tmp_path / "a_first")
    assert locate_package_root(tmp_path) == first


def test_injected_lister_controls_order(tmp_path):
    a = _manifest(tmp_path / "a")
    b = _manifest(tmp_path / "b")
    assert locate_package_root(tmp_path, lister=lambda root: [b, a]) == b


def test_skips_subfolders_without_manifest(tmp_path):
    (tmp_path / "a_empty").mkdir()
    target = _manifest(tmp_path / "b_package")
    assert locate_package_root(tmp_path) == target


def test_macos_metadata_folder_is_ignored(tmp_path):
    _manifest(tmp_path / "__MACOSX" / "pkg")
    inner = _manifest(tmp_path / "pkg")
    assert locate_package_root(tmp_path) == inner


def test_no_manifest_anywhere(tmp_path):
    (tmp_path / "one").mkdir()
    (tmp_path / "one" / "deeper").mkdir()
    _manifest(tmp_path / "one" / "deeper" / "too_deep")
    with pytest.raises(MissingManifest):
        locate_package_root(tmp_path)


def test_unlistable_root_is_access_denied(tmp_path):
    def denied(_root):
        raise PermissionError("sandbox")

    with pytest.raises(AccessDenied):
        locate_package_root(tmp_path, lister=denied)


def test_missing_root_is_access_denied(tmp_path):
    with pytest.raises(AccessDenied):
        locate_package_root(tmp_path / "nope")
