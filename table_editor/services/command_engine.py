"""
Command engine: executes commands against the table and keeps undo/redo history.

Every successful execute/undo/redo emits exactly one `changed` event followed
by `stack_changed`. A command that raises leaves the table, both stacks and
therefore every subscriber's state untouched.
"""

import time
from collections import deque
from typing import Optional, Sequence

from table_editor.models import Column, DecisionTable, Rule, TableProperties
from table_editor.services.commands import Command
from table_editor.services.events import ChangeScope, CommandStackState, Signal, TableChanged
from table_editor.utils.logging import get_logger, log_command, log_validation_result

logger = get_logger(__name__)


class CommandEngine:
    """Undoable command execution for one DecisionTable."""

    def __init__(self, table: DecisionTable, undo_limit: Optional[int] = None):
        if undo_limit is not None and undo_limit < 1:
            raise ValueError("undo_limit must be positive or None")
        self.table = table
        self.undo_limit = undo_limit
        self._done: deque[Command] = deque(maxlen=undo_limit)
        self._undone: list[Command] = []
        self.changed: Signal[TableChanged] = Signal("changed")
        self.stack_changed: Signal[CommandStackState] = Signal("stack_changed")

    # ---- history ----

    def can_undo(self) -> bool:
        return bool(self._done)

    def can_redo(self) -> bool:
        return bool(self._undone)

    def state(self) -> CommandStackState:
        return CommandStackState(
            can_undo=self.can_undo(),
            can_redo=self.can_redo(),
            undo_label=self._done[-1].label if self._done else None,
            redo_label=self._undone[-1].label if self._undone else None,
            undo_depth=len(self._done),
            redo_depth=len(self._undone),
        )

    def clear(self) -> None:
        """Drop both stacks without touching the table."""
        self._done.clear()
        self._undone.clear()
        self.stack_changed.emit(self.state())

    # ---- execution ----

    def execute(self, command: Command) -> TableChanged:
        start = time.perf_counter()
        try:
            command.validate(self.table)
            scope = command.execute(self.table)
        except Exception as e:
            log_command(logger, "execute", command.label, time.perf_counter() - start, success=False, error=str(e))
            raise
        self._done.append(command)
        self._undone.clear()
        log_command(logger, "execute", command.label, time.perf_counter() - start)
        return self._notify("execute", command.label, scope)

    def undo(self) -> Optional[TableChanged]:
        """Revert the last executed command; None when there is nothing to undo."""
        if not self._done:
            logger.debug("Nothing to undo")
            return None
        command = self._done[-1]
        start = time.perf_counter()
        scope = command.revert(self.table)
        self._done.pop()
        self._undone.append(command)
        log_command(logger, "undo", command.label, time.perf_counter() - start)
        return self._notify("undo", command.label, scope)

    def redo(self) -> Optional[TableChanged]:
        """Re-execute the last undone command; None when there is nothing to redo."""
        if not self._undone:
            logger.debug("Nothing to redo")
            return None
        command = self._undone[-1]
        start = time.perf_counter()
        scope = command.execute(self.table)
        self._undone.pop()
        self._done.append(command)
        log_command(logger, "redo", command.label, time.perf_counter() - start)
        return self._notify("redo", command.label, scope)

    def load_table(
        self,
        columns: Sequence[Column],
        rules: Sequence[Rule],
        properties: Optional[TableProperties] = None,
    ) -> TableChanged:
        """Replace the table wholesale. Not undoable; clears both stacks."""
        start = time.perf_counter()
        self.table.load(columns, rules, properties)
        self._done.clear()
        self._undone.clear()
        log_command(
            logger,
            "load",
            "load table",
            time.perf_counter() - start,
            extra={"columns": len(columns), "rules": len(rules)},
        )
        log_validation_result(
            logger,
            self.table.decision_id,
            invalid_cells=len(self.table.invalid_cells()),
            total_cells=self.table.rule_count * self.table.column_count,
        )
        scope = ChangeScope.of(
            rule_ids=[r.id for r in self.table.get_rules()],
            column_ids=[c.id for c in self.table.get_columns()],
            structural=True,
        )
        return self._notify("load", "load table", scope)

    def _notify(self, action: str, label: str, scope: ChangeScope) -> TableChanged:
        event = TableChanged.from_scope(action, label, scope)
        self.changed.emit(event)
        self.stack_changed.emit(self.state())
        return event
