"""
Cell selection and keyboard navigation.

The selection stores identities (rule id, column id) plus the position they
were last seen at. After every table change on_table_changed() re-resolves
them: an active cell whose rule or column disappeared falls back to whatever
now sits at the remembered position (clamped to the table), a range endpoint
that disappeared collapses the range.
"""

import logging
from typing import Optional

from pydantic import BaseModel

from table_editor.models import CellRef, DecisionTable
from table_editor.services.events import Signal, TableChanged

logger = logging.getLogger(__name__)


class SelectionState(BaseModel):
    """Payload of Selection.selection_changed."""

    active_cell: Optional[CellRef] = None
    range: Optional[tuple[CellRef, CellRef]] = None

    model_config = {"frozen": True}


class Selection:
    """Active cell and optional rectangular range (anchor, focus)."""

    def __init__(self, table: DecisionTable):
        self.table = table
        self._active: Optional[CellRef] = None
        self._active_pos: Optional[tuple[int, int]] = None
        self._range: Optional[tuple[CellRef, CellRef]] = None
        self.selection_changed: Signal[SelectionState] = Signal("selection_changed")

    # ---- queries ----

    def get_active_cell(self) -> Optional[CellRef]:
        return self._active

    def get_range(self) -> Optional[tuple[CellRef, CellRef]]:
        return self._range

    def state(self) -> SelectionState:
        return SelectionState(active_cell=self._active, range=self._range)

    def cells_in_range(self) -> list[CellRef]:
        """Cells covered by the range in row-major order; the active cell alone without a range."""
        if self._range is None:
            return [self._active] if self._active else []
        (r1, c1), (r2, c2) = (self._position(ref) for ref in self._range)
        rules = self.table.get_rules()
        columns = self.table.get_columns()
        return [
            CellRef(rule_id=rules[r].id, column_id=columns[c].id)
            for r in range(min(r1, r2), max(r1, r2) + 1)
            for c in range(min(c1, c2), max(c1, c2) + 1)
        ]

    # ---- navigation ----

    def move_to(self, rule_id: str, column_id: str) -> SelectionState:
        row, col = self.table.rule_index(rule_id), self.table.column_index(column_id)
        return self._apply(self._ref_at(row, col), (row, col), None)

    def move_by(self, row_delta: int, col_delta: int) -> SelectionState:
        """Move the active cell, clamping at the table edges (no wrap-around)."""
        if self._is_empty():
            return self.state()
        if self._active is None:
            row, col = 0, 0
        else:
            row, col = self._position(self._active)
            row = _clamp(row + row_delta, self.table.rule_count)
            col = _clamp(col + col_delta, self.table.column_count)
        return self._apply(self._ref_at(row, col), (row, col), None)

    def extend_range_to(self, rule_id: str, column_id: str) -> SelectionState:
        """Range from the anchor (current range anchor or active cell) to the given cell."""
        row, col = self.table.rule_index(rule_id), self.table.column_index(column_id)
        focus = self._ref_at(row, col)
        if self._active is None:
            return self._apply(focus, (row, col), (focus, focus))
        anchor = self._range[0] if self._range else self._active
        return self._apply(self._active, self._active_pos, (anchor, focus))

    def extend_range_by(self, row_delta: int, col_delta: int) -> SelectionState:
        if self._active is None:
            return self.move_by(row_delta, col_delta)
        focus = self._range[1] if self._range else self._active
        row, col = self._position(focus)
        row = _clamp(row + row_delta, self.table.rule_count)
        col = _clamp(col + col_delta, self.table.column_count)
        target = self._ref_at(row, col)
        return self.extend_range_to(target.rule_id, target.column_id)

    def select_all(self) -> SelectionState:
        if self._is_empty():
            return self.state()
        first = self._ref_at(0, 0)
        last = self._ref_at(self.table.rule_count - 1, self.table.column_count - 1)
        if self._active is None:
            return self._apply(first, (0, 0), (first, last))
        return self._apply(self._active, self._active_pos, (first, last))

    def clear(self) -> SelectionState:
        return self._apply(None, None, None)

    def advance(self, backwards: bool = False) -> SelectionState:
        """
        Tab/enter move in row-major order. Stepping past the last (or before
        the first) cell leaves the selection where it is.
        """
        if self._is_empty():
            return self.state()
        columns = self.table.column_count
        last = self.table.rule_count * columns - 1
        if self._active is None:
            flat = last if backwards else 0
        else:
            row, col = self._position(self._active)
            flat = row * columns + col + (-1 if backwards else 1)
            if not 0 <= flat <= last:
                return self.state()
        row, col = divmod(flat, columns)
        return self._apply(self._ref_at(row, col), (row, col), None)

    # ---- re-validation ----

    def on_table_changed(self, event: Optional[TableChanged] = None) -> SelectionState:
        """Re-resolve stored coordinates against the table's current shape."""
        if self._active is None:
            return self._apply(None, None, None)
        if self._is_empty():
            return self._apply(None, None, None)
        row, col = self._resolve_active()
        active = self._ref_at(row, col)
        selection_range = self._range
        if selection_range is not None and not all(self._exists(ref) for ref in selection_range):
            selection_range = None
        return self._apply(active, (row, col), selection_range)

    # ---- internals ----

    def _apply(
        self,
        active: Optional[CellRef],
        position: Optional[tuple[int, int]],
        selection_range: Optional[tuple[CellRef, CellRef]],
    ) -> SelectionState:
        before = self.state()
        self._active = active
        self._active_pos = position
        self._range = selection_range
        after = self.state()
        if after != before:
            logger.debug("Selection changed: %s", after)
            self.selection_changed.emit(after)
        return after

    def _is_empty(self) -> bool:
        return self.table.rule_count == 0 or self.table.column_count == 0

    def _exists(self, ref: CellRef) -> bool:
        return self.table.has_rule(ref.rule_id) and self.table.has_column(ref.column_id)

    def _position(self, ref: CellRef) -> tuple[int, int]:
        return self.table.rule_index(ref.rule_id), self.table.column_index(ref.column_id)

    def _ref_at(self, row: int, col: int) -> CellRef:
        return CellRef(
            rule_id=self.table.get_rules()[row].id,
            column_id=self.table.get_columns()[col].id,
        )

    def _resolve_active(self) -> tuple[int, int]:
        last_row, last_col = self._active_pos or (0, 0)
        if self.table.has_rule(self._active.rule_id):
            row = self.table.rule_index(self._active.rule_id)
        else:
            row = _clamp(last_row, self.table.rule_count)
        if self.table.has_column(self._active.column_id):
            col = self.table.column_index(self._active.column_id)
        else:
            col = _clamp(last_col, self.table.column_count)
        return row, col


def _clamp(index: int, count: int) -> int:
    return max(0, min(index, count - 1))
