import json
from pathlib import Path

import pytest

from chorematrix.config import Settings
from chorematrix.ops import StructuredLogger


def test_structured_logger_writes_json_lines(tmp_path: Path, clock) -> None:
    path = tmp_path / "logs" / "chorematrix.jsonl"
    logger = StructuredLogger(path=path, clock=clock)

    logger.log("instances_generated", created=3)
    logger.warning("instance_not_found", instance="x")

    lines = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
    assert [line["event"] for line in lines] == ["instances_generated", "instance_not_found"]
    assert lines[1]["level"] == "warning"
    assert lines[0]["timestamp"] == clock().isoformat()
    assert logger.tail(1)[0]["instance"] == "x"
    with pytest.raises(ValueError):
        logger.log("oops", level="fatal")


def test_settings_read_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("CHOREMATRIX_DATABASE_URL", "sqlite:///family.db")
    monkeypatch.setenv("CHOREMATRIX_STORAGE_PREFIX", "home:")
    monkeypatch.setenv("CHOREMATRIX_LOG_PATH", str(tmp_path / "ops.jsonl"))
    monkeypatch.setenv("CHOREMATRIX_DEFAULT_CATEGORY", "IN_PROGRESS")

    settings = Settings.from_env()

    assert settings.database_url == "sqlite:///family.db"
    assert settings.storage_key("choreInstances") == "home:choreInstances"
    assert settings.log_path == tmp_path / "ops.jsonl"
    assert settings.default_category == "IN_PROGRESS"
