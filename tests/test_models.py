from __future__ import annotations

import pytest

from adx_batch.exceptions import ValidationFailure
from adx_batch.models import (
    EventEnvelope,
    ManifestDescriptor,
    Task,
    TaskOptions,
    TaskRequest,
    TaskStatus,
    TaskStatusView,
)


def test_request_keeps_only_the_secret_of_the_active_mode(task_options) -> None:
    task_options.captcha = "1234"
    request = TaskRequest.from_options(["a"], task_options)

    assert request.key == "secret-key"
    assert request.captcha is None


def test_captcha_mode_requires_a_captcha(task_options) -> None:
    task_options.auth_mode = "captcha"

    with pytest.raises(ValidationFailure, match="captcha is required"):
        TaskRequest.from_options(["a"], task_options)

    task_options.captcha = " 8812 "
    request = TaskRequest.from_options(["a"], task_options)
    assert request.captcha == "8812"
    assert request.key is None


def test_key_mode_requires_a_key(task_options) -> None:
    task_options.key = ""

    with pytest.raises(ValidationFailure, match="key is required"):
        TaskRequest.from_options(["a"], task_options)


def test_request_paths_are_deduplicated_in_order(task_options) -> None:
    request = TaskRequest.from_options(["b", "a", "b", " ", "a"], task_options)

    assert request.selected_manifest_paths == ["b", "a"]


def test_empty_selection_is_rejected(task_options) -> None:
    with pytest.raises(ValidationFailure, match="selectedManifestPaths is empty"):
        TaskRequest.from_options([], task_options)


@pytest.mark.parametrize(
    ("given", "expected"),
    [
        ("", None),
        ("   ", None),
        ("/out/pack", "/out/pack.adx"),
        ("/out/pack.ADX", "/out/pack.ADX"),
    ],
)
def test_bundle_output_path_normalization(task_options, given, expected) -> None:
    task_options.bundle_output_path = given

    assert TaskRequest.from_options(["a"], task_options).bundle_output_path == expected


def test_negative_retries_are_rejected() -> None:
    with pytest.raises(ValueError):
        TaskOptions(retries=-1)


def test_request_is_immutable(task_options) -> None:
    request = TaskRequest.from_options(["a"], task_options)

    with pytest.raises(ValueError):
        request.output_dir = "/elsewhere"


def test_wire_format_uses_camel_case_and_omits_unset_fields(task_options) -> None:
    wire = TaskRequest.from_options(["a"], task_options).to_wire()

    assert wire["selectedManifestPaths"] == ["a"]
    assert wire["connectSid"] == "sid-123"
    assert wire["authMode"] == "key"
    assert wire["downloadNoBga"] is False
    assert wire["requestIntervalMs"] == 1000
    assert "captcha" not in wire
    assert "bundleOutputPath" not in wire


def test_task_parses_engine_snapshot() -> None:
    task = Task.model_validate(
        {
            "taskId": "t1",
            "status": "failed",
            "totalIds": 3,
            "processedIds": 3,
            "okCount": 1,
            "skipCount": 1,
            "failCount": 1,
            "newFilesCount": 1,
            "failItems": [{"id": "42", "reason": "http 404"}],
            "logs": ["line"],
            "startedAt": "2024-05-01 10:00:00",
            "endedAt": "2024-05-01 10:01:00",
            "message": "done with errors",
        }
    )

    assert task.status is TaskStatus.FAILED
    assert task.status.is_terminal
    assert task.fail_items[0].reason == "http 404"
    assert task.bundle_output_path is None


def test_partial_snapshot_uses_zero_counters() -> None:
    task = Task.model_validate({"taskId": "t1", "status": "running", "processedIds": 3})

    assert task.processed_ids == 3
    assert task.total_ids == 0
    assert not task.status.is_terminal


def test_event_envelope_parses_optional_status() -> None:
    with_status = EventEnvelope.model_validate(
        {"taskId": "t1", "level": "warn", "event": "cancelled", "message": "stop", "status": "cancelled"}
    )
    without_status = EventEnvelope.model_validate(
        {"taskId": "t1", "level": "info", "event": "ok", "message": "ok 1"}
    )

    assert with_status.status is TaskStatus.CANCELLED
    assert without_status.status is None


def test_manifest_descriptor_reads_camel_case() -> None:
    item = ManifestDescriptor.model_validate(
        {
            "id": "overlay:pack/manifest.json",
            "name": "Pack",
            "path": "/data/pack/manifest.json",
            "relativePath": "pack/manifest.json",
            "levelCount": 12,
            "source": "overlay",
        }
    )

    assert item.relative_path == "pack/manifest.json"
    assert item.level_count == 12


def test_status_view_projection() -> None:
    assert TaskStatusView.from_task(None) is None

    view = TaskStatusView.from_task(
        Task(task_id="t1", status="completed", bundle_output_path="/out/all.adx")
    )
    assert view.bundle_output_path == "/out/all.adx"
    assert view.status is TaskStatus.COMPLETED
