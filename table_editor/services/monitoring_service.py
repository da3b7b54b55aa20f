"""
Monitoring for the editing service.

- Health check: session store reachable, configuration summary
- Metrics: open tables, rules/columns held in memory, invalid cells, result counters
- Used by /api/health and /api/metrics
"""

import logging
from typing import Any

from table_editor.errors import UnknownIdentifier
from table_editor.services.session_store import EditorSessionStore

logger = logging.getLogger(__name__)


def get_health(store: EditorSessionStore) -> dict[str, Any]:
    """Return health status for /api/health."""
    settings = store.settings
    return {
        "status": "healthy",
        "checks": {
            "sessions": {"status": "up", "open_tables": len(store)},
            "config": {
                "simple_mode": settings.simple_mode,
                "undo_limit": settings.undo_limit,
                "min_column_width": settings.min_column_width,
            },
        },
    }


def get_metrics(store: EditorSessionStore) -> dict[str, Any]:
    """Aggregate metrics over every open table for /api/metrics."""
    rules_total = 0
    columns_total = 0
    invalid_total = 0
    undo_depth_total = 0
    for table_id in store.ids():
        try:
            with store.editing(table_id) as editor:
                table = editor.table
                rules_total += table.rule_count
                columns_total += table.column_count
                invalid_total += len(table.invalid_cells())
                undo_depth_total += editor.engine.state().undo_depth
        except UnknownIdentifier:
            continue  # closed meanwhile
    return {
        "tables_open": len(store),
        "tables_opened": store.counters["tables_opened"],
        "tables_closed": store.counters["tables_closed"],
        "rules_total": rules_total,
        "columns_total": columns_total,
        "invalid_cells_total": invalid_total,
        "undo_depth_total": undo_depth_total,
        "results_success": store.counters["results_success"],
        "results_noop": store.counters["results_noop"],
        "results_failure": store.counters["results_failure"],
    }
