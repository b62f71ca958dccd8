import json
from datetime import datetime, timezone

import pytest

from wt_core.errors import MalformedManifest, MissingManifest
from wt_core.manifest_io import (
    FieldResultsPackage,
    FieldSection,
    IntakeSummary,
    JobSummary,
    WindowExportEntry,
    decode_intake,
    decode_results,
    encode_intake,
    encode_results,
    load_intake_file,
)

# 2025-09-26T14:00:10Z
EPOCH_14_00_10 = 1758895210


def _manifest(fetched_at, **overhead) -> str:
    return json.dumps(
        {
            "version": "1.0",
            "createdAt": "2025-09-26T13:00:00Z",
            "preparedBy": "Dispatch",
            "jobs": [
                {
                    "jobId": "E2025-05091",
                    "clientName": "Smith",
                    "address": {"line1": "1 Main St", "city": "Largo", "state": "FL", "zip": "33770"},
                    "notes": None,
                    "overhead": {
                        "imageFile": "overhead/E1.jpg",
                        "source": {"name": "Nearmap", "url": "https://example.test/tile", "fetchedAt": fetched_at},
                        **overhead,
                    },
                }
            ],
        }
    )


def test_iso_and_epoch_timestamps_parse_to_same_instant():
    iso = decode_intake(_manifest("2025-09-26T14:00:10Z"))
    epoch = decode_intake(_manifest(EPOCH_14_00_10))
    expected = datetime(2025, 9, 26, 14, 0, 10, tzinfo=timezone.utc)
    assert iso.jobs[0].overhead.source.fetched_at == expected
    assert epoch.jobs[0].overhead.source.fetched_at == expected


@pytest.mark.parametrize(
    "value",
    ["2025-09-26T14:00:10.000Z", "2025-09-26T16:00:10+02:00", str(EPOCH_14_00_10), float(EPOCH_14_00_10)],
)
def test_timestamp_variants(value):
    package = decode_intake(_manifest(value))
    assert package.jobs[0].overhead.source.fetched_at == datetime(2025, 9, 26, 14, 0, 10, tzinfo=timezone.utc)


def test_decode_accepts_bytes_with_bom():
    package = decode_intake(b"\xef\xbb\xbf" + _manifest(None).encode("utf-8"))
    assert package.prepared_by == "Dispatch"
    assert package.jobs[0].overhead.source.fetched_at is None
    assert package.jobs[0].notes is None


def test_legacy_zoom_scale_derives_pixels_per_foot():
    package = decode_intake(_manifest(None, zoomScale=2.5))
    assert package.jobs[0].overhead.effective_scale == 25.0


def test_explicit_scale_wins_over_zoom_scale():
    package = decode_intake(_manifest(None, zoomScale=2.5, scalePixelsPerFoot=10.0))
    assert package.jobs[0].overhead.effective_scale == 10.0


def test_missing_required_field_names_path():
    data = json.loads(_manifest(None))
    del data["jobs"][0]["address"]["city"]
    with pytest.raises(MalformedManifest) as exc:
        decode_intake(json.dumps(data))
    assert exc.value.field_path == "jobs[0].address.city"
    assert "jobs[0].address.city" in str(exc.value)


def test_wrong_type_is_malformed():
    data = json.loads(_manifest(None))
    data["jobs"][0]["overhead"]["scalePixelsPerFoot"] = "ten"
    with pytest.raises(MalformedManifest):
        decode_intake(json.dumps(data))


def test_bad_timestamp_is_malformed():
    with pytest.raises(MalformedManifest) as exc:
        decode_intake(_manifest("yesterday"))
    assert exc.value.field_path == "jobs[0].overhead.source.fetchedAt"


def test_invalid_json_is_malformed():
    with pytest.raises(MalformedManifest):
        decode_intake("{not json")


def test_unknown_major_version_still_decodes(caplog):
    data = json.loads(_manifest(None))
    data["version"] = "2.0"
    package = decode_intake(json.dumps(data))
    assert package.version == "2.0"
    assert "2.0" in caplog.text


def test_missing_file_is_missing_manifest(tmp_path):
    with pytest.raises(MissingManifest):
        load_intake_file(tmp_path / "jobs.json")


def test_encode_intake_emits_iso_and_derived_scale():
    package = decode_intake(_manifest(EPOCH_14_00_10, zoomScale=1.5))
    data = json.loads(encode_intake(package))
    overhead = data["jobs"][0]["overhead"]
    assert overhead["source"]["fetchedAt"] == "2025-09-26T14:00:10Z"
    assert overhead["scalePixelsPerFoot"] == 15.0
    assert data["createdAt"] == "2025-09-26T13:00:00Z"


def test_results_encode_decode():
    when = datetime(2025, 9, 27, 9, 30, tzinfo=timezone.utc)
    package = FieldResultsPackage(
        job=JobSummary(job_id="E1", client_name="Smith", environment={"temperature": 81.0}),
        intake=IntakeSummary(source_name="Nearmap"),
        field=FieldSection(
            inspector="Jane",
            date=when,
            overhead_file=None,
            windows=[WindowExportEntry(window_id="A", window_number="W1", x_position=120.0, y_position=80.0, created_at=when)],
        ),
    )
    text = encode_results(package)
    raw = json.loads(text)
    assert raw["field"]["date"] == "2025-09-27T09:30:00Z"
    assert raw["field"]["overheadFile"] is None
    assert raw["field"]["windows"][0]["photoCounts"] == {"exterior": 0, "interior": 0, "leak": 0}

    decoded = decode_results(text)
    assert decoded.field.windows[0].x_position == 120.0
    assert decoded.field.date == when
    assert decoded.job.environment == {"temperature": 81.0}


def _results_with_window(**window) -> str:
    entry = {"windowId": "A", "windowNumber": "W1", "xPosition": 1, "yPosition": 2, **window}
    return json.dumps({"intake": {}, "field": {"inspector": "Jane", "windows": [entry]}})


@pytest.mark.parametrize(
    "window",
    [
        {"photoCounts": [1, 2]},
        {"photoCounts": {"exterior": "many"}},
        {"photoCounts": {"leak": 1.5}},
        {"photoCounts": {"interior": -1}},
        {"isAccessible": "no"},
    ],
)
def test_results_window_schema_violations(window):
    with pytest.raises(MalformedManifest):
        decode_results(_results_with_window(**window))


def test_results_window_defaults():
    window = decode_results(_results_with_window()).field.windows[0]
    assert window.is_accessible is True
    assert (window.photo_counts.exterior, window.photo_counts.interior, window.photo_counts.leak) == (0, 0, 0)

    window = decode_results(_results_with_window(isAccessible=False, photoCounts={"leak": 3})).field.windows[0]
    assert window.is_accessible is False
    assert window.photo_counts.leak == 3


@pytest.mark.parametrize(
    "job",
    [
        "E1",
        {"jobId": "E1", "address": "1 Main St"},
        {"jobId": "E1", "address": {"city": 42}},
        {"jobId": "E1", "environment": [81]},
    ],
)
def test_results_job_schema_violations(job):
    payload = json.dumps({"job": job, "intake": {}, "field": {"inspector": "Jane", "windows": []}})
    with pytest.raises(MalformedManifest):
        decode_results(payload)
