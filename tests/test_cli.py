from __future__ import annotations

import asyncio

import pytest
from typer.testing import CliRunner

from adx_batch.cli import app as cli_app
from adx_batch.models import FailItem, Task
from adx_batch.storage.config_manager import ConfigManager
from conftest import FakeEngine

runner = CliRunner()


class LaggingEngine(FakeEngine):
    """Polls keep reporting `running` after a `failed` event; a direct lookup is current."""

    def __init__(self) -> None:
        super().__init__(catalog=["a", "b"])
        self.final = Task(
            task_id="t1",
            status="failed",
            total_ids=2,
            processed_ids=2,
            fail_count=1,
            fail_items=[FailItem(id="1001", reason="http 404")],
        )
        self._event_sent = False

    async def fetch_task_state(self, task_id: str):
        self.fetch_calls.append(task_id)
        if asyncio.current_task().get_name().startswith("poll-"):
            if not self._event_sent:
                self._event_sent = True
                asyncio.get_running_loop().call_soon(
                    self.emit, task_id, "Task failed", "failed"
                )
            return Task(task_id=task_id, status="running", total_ids=2, processed_ids=1)
        return self.final


@pytest.fixture()
def cli_config(tmp_path, monkeypatch):
    config_file = tmp_path / "config.ini"
    ConfigManager(config_file).save_new_config(
        {
            "output_dir": "/tmp/out",
            "connect_sid": "sid-123",
            "key": "secret-key",
            "poll_interval_ms": 100,
        }
    )
    monkeypatch.setattr(cli_app, "CONFIG_FILE", config_file)
    return config_file


def _use_engine(monkeypatch, engine) -> None:
    monkeypatch.setattr(cli_app, "HttpTaskEngine", lambda base_url: engine)


def test_run_reports_final_state_when_an_event_ends_the_task(cli_config, monkeypatch) -> None:
    engine = LaggingEngine()
    _use_engine(monkeypatch, engine)

    result = runner.invoke(cli_app.app, ["run", "a"])

    assert isinstance(result.exception, SystemExit)
    assert result.exit_code == 1
    assert "Failed items (1)" in result.output
    assert "http 404" in result.output
    assert engine.start_requests[0].selected_manifest_paths == ["a"]


def test_run_exits_cleanly_for_a_completed_task(cli_config, monkeypatch) -> None:
    engine = FakeEngine(catalog=["a", "b"])
    engine.states = [
        Task(task_id="t1", status="completed", total_ids=2, processed_ids=2, ok_count=2)
    ]
    _use_engine(monkeypatch, engine)

    result = runner.invoke(cli_app.app, ["run", "--all"])

    assert result.exit_code == 0, result.output
    assert "completed" in result.output
    assert engine.start_requests[0].selected_manifest_paths == ["a", "b"]


def test_run_without_selection_is_rejected(cli_config, monkeypatch) -> None:
    engine = FakeEngine(catalog=["a"])
    _use_engine(monkeypatch, engine)

    result = runner.invoke(cli_app.app, ["run"])

    assert result.exit_code == 1
    assert engine.start_requests == []
