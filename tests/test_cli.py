# tests/test_cli.py

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from task_tracker.cli import main


@pytest.fixture(autouse=True)
def log_dir(tmp_path: Path, monkeypatch) -> Path:
    """Keep CLI log files in tmp and drop the handlers main() installs."""
    path = tmp_path / "logs"
    monkeypatch.setenv("LOG_DIR", str(path))
    root = logging.getLogger()
    before = list(root.handlers)
    yield path
    for handler in [h for h in root.handlers if h not in before]:
        root.removeHandler(handler)
        handler.close()


def _run(data: Path, *args: str) -> int:
    return main(["--data", str(data), *args])


def test_add_list_done_stats(tmp_path: Path, capsys) -> None:
    data = tmp_path / "tasks.json"

    assert _run(data, "add", "Write tests", "-p", "high", "--tags", "dev, qa") == 0
    assert _run(data, "add", "Ship it", "--due", "2030-03-01") == 0
    assert "Added task #2: Ship it" in capsys.readouterr().out

    assert _run(data, "list", "--sort", "priority") == 0
    out = capsys.readouterr().out
    assert out.index("Write tests") < out.index("Ship it")
    assert "[dev, qa]" in out

    assert _run(data, "done", "1", "2") == 0
    assert "Completed 2 task(s): #1, #2" in capsys.readouterr().out

    assert _run(data, "stats") == 0
    assert "100.00%" in capsys.readouterr().out

    saved = json.loads(data.read_text(encoding="utf-8"))
    assert saved["nextId"] == 3
    assert saved["tasks"][0]["tags"] == ["dev", "qa"]


def test_update_show_and_missing_ids(tmp_path: Path, capsys) -> None:
    data = tmp_path / "tasks.json"
    _run(data, "add", "Draft")
    capsys.readouterr()

    assert _run(data, "update", "1", "--status", "in-progress", "--title", "Draft v2") == 0
    assert "Draft v2 [in-progress]" in capsys.readouterr().out

    assert _run(data, "show", "1") == 0
    shown = json.loads(capsys.readouterr().out)
    assert shown["title"] == "Draft v2" and shown["status"] == "in-progress"

    assert _run(data, "update", "9", "--title", "x") == 1
    assert "task 9 does not exist" in capsys.readouterr().err

    assert _run(data, "delete", "9") == 1
    assert _run(data, "delete", "1") == 0


def test_corrupt_file_is_reported(tmp_path: Path, capsys) -> None:
    data = tmp_path / "tasks.json"
    data.write_text("oops", encoding="utf-8")

    assert _run(data, "list") == 1
    assert "malformed JSON" in capsys.readouterr().err


def test_cli_writes_structured_log_file(tmp_path: Path, log_dir: Path, capsys) -> None:
    data = tmp_path / "tasks.json"

    assert _run(data, "add", "Logged") == 0
    assert "task.create" not in capsys.readouterr().err

    records = [json.loads(line) for line in (log_dir / "tracker.jsonl").read_text(encoding="utf-8").splitlines()]
    created = [r for r in records if r["msg"] == "task.create"]
    assert created and created[0]["category"] == "tasks" and created[0]["task_id"] == 1
