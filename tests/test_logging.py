"""Tests for structured logging helpers."""

import json
import logging

import pytest

from table_editor.errors import DuplicateIdentifier
from table_editor.models import Rule
from table_editor.services.command_engine import CommandEngine
from table_editor.services.commands import InsertRuleCommand
from table_editor.utils.logging import configure_logging, log_validation_result


def _payloads(caplog, prefix):
    return [json.loads(r.getMessage().split(": ", 1)[1]) for r in caplog.records if r.getMessage().startswith(prefix)]


def test_engine_logs_commands(caplog, table):
    engine = CommandEngine(table)
    with caplog.at_level(logging.INFO, logger="table_editor"):
        engine.execute(InsertRuleCommand(Rule.from_values("r2", ["2", '"b"']), 1))
        engine.undo()
    payloads = _payloads(caplog, "Command:")
    assert [(p["action"], p["label"], p["success"]) for p in payloads] == [
        ("execute", "insert rule", True),
        ("undo", "insert rule", True),
    ]


def test_failed_command_logged_as_warning(caplog, table):
    engine = CommandEngine(table)
    with caplog.at_level(logging.INFO, logger="table_editor"):
        with pytest.raises(DuplicateIdentifier):
            engine.execute(InsertRuleCommand(Rule.from_values("r1", ["2", '"b"']), 1))
    failed = [r for r in caplog.records if r.levelno == logging.WARNING and "Command:" in r.getMessage()]
    assert len(failed) == 1
    assert json.loads(failed[0].getMessage().split(": ", 1)[1])["success"] is False


def test_validation_result_level(caplog):
    logger = logging.getLogger("table_editor.test")
    with caplog.at_level(logging.INFO, logger="table_editor"):
        log_validation_result(logger, "t", invalid_cells=0, total_cells=4)
        log_validation_result(logger, "t", invalid_cells=2, total_cells=4)
    levels = [r.levelno for r in caplog.records if "Validation:" in r.getMessage()]
    assert levels == [logging.INFO, logging.WARNING]


def test_configure_logging_writes_file(tmp_path):
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    try:
        configure_logging("DEBUG", log_dir=tmp_path, log_to_console=False)
        logging.getLogger("table_editor.test").info("hello")
        for handler in root.handlers:
            handler.flush()
        assert "hello" in (tmp_path / "table_editor.log").read_text(encoding="utf-8")
    finally:
        for handler in list(root.handlers):
            root.removeHandler(handler)
            handler.close()
        for handler in saved_handlers:
            root.addHandler(handler)
        root.setLevel(saved_level)
