"""Unit tests for :mod:`settingsvault.utils.logging`."""
from __future__ import annotations

import io
import json

from settingsvault.store import ProfileStore
from settingsvault.utils.logging import REDACTED, JsonLogger, get_logger


def test_record_schema() -> None:
    stream = io.StringIO()
    JsonLogger(stream=stream, component="unit").warning("backup_pruned", profile="Default", count=2)

    record = json.loads(stream.getvalue())

    assert record["lvl"] == "WARN"
    assert record["msg"] == "backup_pruned"
    assert record["component"] == "unit"
    assert record["profile"] == "Default"
    assert record["count"] == 2
    assert "ts" in record


def test_sensitive_fields_are_redacted_at_any_depth() -> None:
    stream = io.StringIO()
    logger = JsonLogger(stream=stream)

    logger.info("event", data={"password": "x"}, context={"key": "abcd", "nested": {"value": 3}})

    record = json.loads(stream.getvalue())
    assert record["data"] == REDACTED
    assert record["context"]["key"] == REDACTED
    assert record["context"]["nested"]["value"] == REDACTED


def test_one_line_per_record_and_non_json_values() -> None:
    stream = io.StringIO()
    logger = JsonLogger(stream=stream)

    logger.debug("first", path=object())
    logger.error("second")

    lines = stream.getvalue().splitlines()
    assert [json.loads(line)["msg"] for line in lines] == ["first", "second"]


def test_get_logger_sets_component() -> None:
    assert get_logger("settingsvault.backup").component == "settingsvault.backup"


def test_store_logs_never_contain_profile_content(store: ProfileStore, log_stream: io.StringIO) -> None:
    store.save("Default", {"token": "s3cr3t-value"})
    store.load("Default")
    store.backup("Default")
    store.recover("Default")

    assert "s3cr3t-value" not in log_stream.getvalue()
    assert "profile_saved" in log_stream.getvalue()
