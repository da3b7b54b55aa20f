"""
Reversible table commands.

A command is the only way the editor mutates a DecisionTable. execute()
applies the change and records what revert() needs to undo it; both return
the ChangeScope the change touched. The table validates before it applies,
so a command that raises has changed nothing.
"""

import copy
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence

from table_editor.models import COLUMN_ATTRIBUTES, Column, DecisionTable, RemovedColumn, Rule, TableProperties
from table_editor.services.events import ChangeScope

logger = logging.getLogger(__name__)


class Command(ABC):
    """Base class for reversible commands."""

    label: str = "command"

    def validate(self, table: DecisionTable) -> None:
        """Raise if execute() would fail. The table itself checks simple commands."""

    @abstractmethod
    def execute(self, table: DecisionTable) -> ChangeScope:
        ...

    @abstractmethod
    def revert(self, table: DecisionTable) -> ChangeScope:
        ...

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.label}>"


# -----------------------------------------------------------------------------
# Columns
# -----------------------------------------------------------------------------


class InsertColumnCommand(Command):
    label = "insert column"

    def __init__(self, column: Column, index: int):
        self.column = column
        self.index = index

    def execute(self, table: DecisionTable) -> ChangeScope:
        table.insert_column(self.column, self.index)
        return ChangeScope.of(column_ids=[self.column.id], structural=True)

    def revert(self, table: DecisionTable) -> ChangeScope:
        table.remove_column(self.column.id)
        return ChangeScope.of(column_ids=[self.column.id], structural=True)


class RemoveColumnCommand(Command):
    label = "remove column"

    def __init__(self, column_id: str):
        self.column_id = column_id
        self.removed: Optional[RemovedColumn] = None

    def execute(self, table: DecisionTable) -> ChangeScope:
        self.removed = table.remove_column(self.column_id)
        return ChangeScope.of(column_ids=[self.column_id], structural=True)

    def revert(self, table: DecisionTable) -> ChangeScope:
        removed = self.removed
        table.insert_column(removed.column, removed.index, cells=removed.cells)
        return ChangeScope.of(column_ids=[self.column_id], structural=True)


class MoveColumnCommand(Command):
    label = "move column"

    def __init__(self, column_id: str, to_index: int):
        self.column_id = column_id
        self.to_index = to_index
        self.from_index: Optional[int] = None

    def execute(self, table: DecisionTable) -> ChangeScope:
        self.from_index = table.move_column(self.column_id, self.to_index)
        return ChangeScope.of(column_ids=[self.column_id], structural=True)

    def revert(self, table: DecisionTable) -> ChangeScope:
        table.move_column(self.column_id, self.from_index)
        return ChangeScope.of(column_ids=[self.column_id], structural=True)


class UpdateColumnCommand(Command):
    """Change column attributes; resizing is a width update."""

    label = "update column"

    def __init__(self, column_id: str, **changes: Any):
        self.column_id = column_id
        self.changes = changes
        self.previous: Optional[Column] = None
        if set(changes) == {"width"}:
            self.label = "resize column"

    def execute(self, table: DecisionTable) -> ChangeScope:
        self.previous = table.update_column(self.column_id, **self.changes)
        return ChangeScope.of(column_ids=[self.column_id])

    def revert(self, table: DecisionTable) -> ChangeScope:
        restore = {k: getattr(self.previous, k) for k in self.changes if k in COLUMN_ATTRIBUTES}
        table.update_column(self.column_id, **restore)
        return ChangeScope.of(column_ids=[self.column_id])


# -----------------------------------------------------------------------------
# Rules and cells
# -----------------------------------------------------------------------------


class InsertRuleCommand(Command):
    label = "insert rule"

    def __init__(self, rule: Rule, index: int):
        self.rule = rule
        self.index = index

    def execute(self, table: DecisionTable) -> ChangeScope:
        table.insert_rule(self.rule, self.index)
        return ChangeScope.of(rule_ids=[self.rule.id], structural=True)

    def revert(self, table: DecisionTable) -> ChangeScope:
        table.remove_rule(self.rule.id)
        return ChangeScope.of(rule_ids=[self.rule.id], structural=True)


class RemoveRuleCommand(Command):
    label = "remove rule"

    def __init__(self, rule_id: str):
        self.rule_id = rule_id
        self.removed: Optional[Rule] = None
        self.index: Optional[int] = None

    def execute(self, table: DecisionTable) -> ChangeScope:
        self.removed, self.index = table.remove_rule(self.rule_id)
        return ChangeScope.of(rule_ids=[self.rule_id], structural=True)

    def revert(self, table: DecisionTable) -> ChangeScope:
        table.insert_rule(self.removed, self.index)
        return ChangeScope.of(rule_ids=[self.rule_id], structural=True)


class MoveRuleCommand(Command):
    label = "move rule"

    def __init__(self, rule_id: str, to_index: int):
        self.rule_id = rule_id
        self.to_index = to_index
        self.from_index: Optional[int] = None

    def execute(self, table: DecisionTable) -> ChangeScope:
        self.from_index = table.move_rule(self.rule_id, self.to_index)
        return ChangeScope.of(rule_ids=[self.rule_id], structural=True)

    def revert(self, table: DecisionTable) -> ChangeScope:
        table.move_rule(self.rule_id, self.from_index)
        return ChangeScope.of(rule_ids=[self.rule_id], structural=True)


class SetCellValueCommand(Command):
    label = "set cell value"

    def __init__(self, rule_id: str, column_id: str, raw: str):
        self.rule_id = rule_id
        self.column_id = column_id
        self.raw = raw
        self.previous: Optional[str] = None

    def execute(self, table: DecisionTable) -> ChangeScope:
        self.previous = table.set_cell_value(self.rule_id, self.column_id, self.raw)
        return ChangeScope.of(rule_ids=[self.rule_id], column_ids=[self.column_id])

    def revert(self, table: DecisionTable) -> ChangeScope:
        table.set_cell_value(self.rule_id, self.column_id, self.previous)
        return ChangeScope.of(rule_ids=[self.rule_id], column_ids=[self.column_id])


# -----------------------------------------------------------------------------
# Table
# -----------------------------------------------------------------------------


class SetTablePropertiesCommand(Command):
    label = "set table properties"

    def __init__(self, properties: TableProperties):
        self.properties = properties
        self.previous: Optional[TableProperties] = None

    def execute(self, table: DecisionTable) -> ChangeScope:
        self.previous = table.set_properties(self.properties)
        return ChangeScope()

    def revert(self, table: DecisionTable) -> ChangeScope:
        table.set_properties(self.previous)
        return ChangeScope()


class MacroCommand(Command):
    """
    Ordered sub-commands applied as one undo step.

    validate() dry-runs copies of every sub-command on a clone of the table,
    so a macro that would fail part-way is rejected before anything runs.
    """

    def __init__(self, commands: Sequence[Command], label: str = "macro"):
        self.commands = list(commands)
        self.label = label

    def validate(self, table: DecisionTable) -> None:
        scratch = table.clone()
        for command in copy.deepcopy(self.commands):
            command.validate(scratch)
            command.execute(scratch)

    def execute(self, table: DecisionTable) -> ChangeScope:
        scope = ChangeScope()
        executed: list[Command] = []
        try:
            for command in self.commands:
                scope = scope.merge(command.execute(table))
                executed.append(command)
        except Exception:
            logger.warning("Macro '%s' failed after %d step(s); rolling back", self.label, len(executed))
            for command in reversed(executed):
                command.revert(table)
            raise
        return scope

    def revert(self, table: DecisionTable) -> ChangeScope:
        scope = ChangeScope()
        for command in reversed(self.commands):
            scope = scope.merge(command.revert(table))
        return scope
