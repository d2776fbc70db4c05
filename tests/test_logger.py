"""Tests for event loggers."""

import json

from terraform_harness.logging import ConsoleLogger, FileLogger, LogLevel, MultiLogger, NullLogger


def test_file_logger_writes_json_lines(tmp_path):
    path = tmp_path / "events.jsonl"
    logger = FileLogger(str(path))
    logger.info("scenario.started", "Starting minimal", {"scenario_id": "minimal"})
    logger.debug("terraform.init", "filtered out")
    logger.error("scenario.failed", "boom")

    entries = [json.loads(line) for line in path.read_text().splitlines()]
    assert [e["event"] for e in entries] == ["scenario.started", "scenario.failed"]
    assert entries[0]["data"] == {"scenario_id": "minimal"}
    assert entries[1]["level"] == "error"
    assert "data" not in entries[1]


def test_console_logger_prefixes_scenario(capsys):
    logger = ConsoleLogger(min_level=LogLevel.INFO, colored=False)
    logger.info("retry.attempt", "Retrying apply", {"scenario_id": "complete", "attempt": 2})
    logger.debug("terraform.init", "hidden")

    out = capsys.readouterr().out
    assert "[complete]" in out
    assert "Retrying apply" in out
    assert "attempt=2" in out
    assert "hidden" not in out


def test_multi_logger_fans_out(tmp_path, capsys):
    path = tmp_path / "events.jsonl"
    logger = MultiLogger(NullLogger(), FileLogger(str(path)), ConsoleLogger(colored=False))
    logger.warning("destroy.failed", "Destroy failed")
    assert json.loads(path.read_text())["event"] == "destroy.failed"
    assert "Destroy failed" in capsys.readouterr().out
