"""
Structured logging for the table editor.

- Configurable level (DEBUG, INFO, WARN, ERROR)
- Writes to /logs/ directory
- Console handler for development
- Helpers for command execution and cell validation results
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

# Default: project root / logs
LOG_DIR = Path(__file__).resolve().parent.parent.parent / "logs"
LOG_LEVEL = os.getenv("TABLE_EDITOR_LOG_LEVEL", "INFO").upper()


def configure_logging(
    level: str = LOG_LEVEL,
    log_dir: Optional[Path] = None,
    log_to_console: bool = True,
) -> None:
    """Configure root and table_editor loggers. Call once at app startup."""
    log_dir = log_dir or LOG_DIR
    log_dir.mkdir(parents=True, exist_ok=True)
    level_value = getattr(logging, level.upper(), logging.INFO)

    file_handler = logging.FileHandler(log_dir / "table_editor.log", encoding="utf-8")
    file_handler.setLevel(level_value)
    file_handler.setFormatter(
        logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s")
    )

    root = logging.getLogger()
    root.setLevel(level_value)
    # Avoid duplicate handlers when reloading
    for h in list(root.handlers):
        root.removeHandler(h)
    root.addHandler(file_handler)
    if log_to_console:
        console = logging.StreamHandler(sys.stdout)
        console.setLevel(level_value)
        console.setFormatter(logging.Formatter("%(levelname)s | %(name)s | %(message)s"))
        root.addHandler(console)

    logging.getLogger("table_editor").setLevel(level_value)


def get_logger(name: str) -> logging.Logger:
    """Return a logger for the given module (e.g. table_editor.services.command_engine)."""
    return logging.getLogger(name)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def log_command(
    logger: logging.Logger,
    action: str,
    label: str,
    duration_sec: Optional[float] = None,
    success: bool = True,
    error: Optional[str] = None,
    extra: Optional[dict[str, Any]] = None,
) -> None:
    """Log a command engine step (execute, undo, redo, load)."""
    payload = {
        "event": "command",
        "action": action,
        "label": label,
        "duration_sec": duration_sec,
        "success": success,
        "error": error,
        "ts": _now(),
    }
    if extra:
        payload.update(extra)
    if success:
        logger.info("Command: %s", json.dumps(payload, default=str))
    else:
        logger.warning("Command: %s", json.dumps(payload, default=str))


def log_validation_result(
    logger: logging.Logger,
    table_id: str,
    invalid_cells: int,
    total_cells: int,
    duration_sec: Optional[float] = None,
) -> None:
    """Log a full-table validation run."""
    payload = {
        "event": "validation",
        "table_id": table_id,
        "invalid_cells": invalid_cells,
        "total_cells": total_cells,
        "duration_sec": duration_sec,
        "ts": _now(),
    }
    level = logging.WARNING if invalid_cells else logging.INFO
    logger.log(level, "Validation: %s", json.dumps(payload, default=str))
