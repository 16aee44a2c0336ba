from __future__ import annotations

from pathlib import Path

import allure
import pytest
from click.testing import CliRunner

from message_pipeline.main import message_pipeline

pytestmark = [
    allure.epic("Command Line"),
    allure.feature("Run & Stats"),
]


@pytest.fixture()
def fast_pipeline(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MESSAGE_PIPELINE_CYCLE_INTERVAL_SECONDS", "0.02")
    monkeypatch.setenv("MESSAGE_PIPELINE_DWELL_SECONDS", "0.002")
    monkeypatch.setenv("MESSAGE_PIPELINE_WATCH_INTERVAL_SECONDS", "0.5")


@pytest.mark.usefixtures("fast_pipeline")
def test_run_command_prints_summary(tmp_path: Path) -> None:
    db_path = tmp_path / "cli.db"

    result = CliRunner().invoke(
        message_pipeline,
        ["run", "--db-path", str(db_path), "--messages", "15", "--batches", "2", "--delay", "0"],
    )

    assert result.exit_code == 0, result.output
    assert "Outcome: drained" in result.output
    assert "Producer: inserted=30 failed=0" in result.output
    assert "Remaining: messages=0 properties=0" in result.output


def test_run_command_reports_invalid_settings(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("MESSAGE_PIPELINE_BATCH_LIMIT", "0")

    result = CliRunner().invoke(message_pipeline, ["run", "--db-path", str(tmp_path / "x.db")])

    assert result.exit_code != 0
    assert "BATCH_LIMIT" in result.output


def test_stats_command_on_fresh_store(tmp_path: Path) -> None:
    result = CliRunner().invoke(message_pipeline, ["stats", "--db-path", str(tmp_path / "s.db")])

    assert result.exit_code == 0, result.output
    assert result.output.splitlines() == [
        "pending: 0",
        "active: 0",
        "done: 0",
        "properties: 0",
    ]


def test_version_option() -> None:
    result = CliRunner().invoke(message_pipeline, ["--version"])

    assert result.exit_code == 0
    assert "0.1.0" in result.output
