from __future__ import annotations

import json
from pathlib import Path

from dex_task.logging import JsonlEventLog, make_event


def test_event_log_writes_jsonl_schema(tmp_path: Path) -> None:
    log = JsonlEventLog(tmp_path / "logs" / "dex-events.jsonl")

    log.append(make_event("skip_up_to_date", "No new compiled code.", input_count=3))

    lines = log.path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 1
    event = json.loads(lines[0])
    assert set(event.keys()) == {"event", "level", "message", "metadata", "timestamp"}
    assert event["event"] == "skip_up_to_date"
    assert event["level"] == "info"
    assert event["metadata"] == {"input_count": 3}
    assert event["timestamp"].endswith("Z")


def test_make_event_sorts_metadata_keys() -> None:
    event = make_event("depfile_written", "done", zeta=1, alpha=2, level="warning")

    assert list(event.metadata) == ["alpha", "zeta"]
    assert event.level == "warning"


def test_event_log_creates_parent_on_first_append(tmp_path: Path) -> None:
    log = JsonlEventLog(tmp_path / "reports" / "events.jsonl")

    assert not log.path.parent.exists()
    log.append(make_event("conversion_starting", "Converting"))
    log.append(make_event("depfile_written", "Wrote"))

    lines = log.path.read_text(encoding="utf-8").splitlines()
    assert [json.loads(line)["event"] for line in lines] == [
        "conversion_starting",
        "depfile_written",
    ]
