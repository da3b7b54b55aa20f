"""
Drag-and-drop reorder and column resize controllers.

Pointer handling happens elsewhere; these controllers receive resolved
indices (or widths) and turn them into at most one command each.
"""

import logging
from typing import Optional

from table_editor.config import DEFAULT_MIN_COLUMN_WIDTH
from table_editor.errors import IndexOutOfRange
from table_editor.services.command_engine import CommandEngine
from table_editor.services.commands import MoveColumnCommand, MoveRuleCommand, UpdateColumnCommand
from table_editor.services.events import TableChanged

logger = logging.getLogger(__name__)


class RuleDragController:
    def __init__(self, engine: CommandEngine):
        self.engine = engine

    def drop(self, source_index: int, target_index: int) -> Optional[TableChanged]:
        """Move the rule at source_index; the target is clamped into the table."""
        rules = self.engine.table.get_rules()
        _check_source(source_index, len(rules), "rule")
        target = max(0, min(target_index, len(rules) - 1))
        if target == source_index:
            return None
        return self.engine.execute(MoveRuleCommand(rules[source_index].id, target))


class ColumnDragController:
    def __init__(self, engine: CommandEngine):
        self.engine = engine

    def drop(self, source_index: int, target_index: int) -> Optional[TableChanged]:
        """
        Move the column at source_index. The target is clamped into the
        contiguous block of columns of the same kind, so inputs stay before
        outputs and outputs before annotations.
        """
        columns = self.engine.table.get_columns()
        _check_source(source_index, len(columns), "column")
        kind = columns[source_index].kind
        block = [i for i, c in enumerate(columns) if c.kind == kind]
        target = max(block[0], min(target_index, block[-1]))
        if target == source_index:
            return None
        return self.engine.execute(MoveColumnCommand(columns[source_index].id, target))


class ColumnResizeController:
    def __init__(self, engine: CommandEngine, min_column_width: int = DEFAULT_MIN_COLUMN_WIDTH):
        self.engine = engine
        self.min_column_width = min_column_width

    def preview(self, column_id: str, width: int) -> int:
        """Width the column would get; the table is not touched."""
        self.engine.table.get_column(column_id)
        return max(int(width), self.min_column_width)

    def commit(self, column_id: str, width: int) -> Optional[TableChanged]:
        new_width = self.preview(column_id, width)
        if self.engine.table.get_column(column_id).width == new_width:
            return None
        logger.debug("Resizing column %s to %dpx", column_id, new_width)
        return self.engine.execute(UpdateColumnCommand(column_id, width=new_width))


def _check_source(index: int, count: int, what: str) -> None:
    if not 0 <= index < count:
        raise IndexOutOfRange(f"No {what} at index {index}", index=index, upper=count - 1)
