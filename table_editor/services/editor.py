"""
Editor facade and composition root.

create_editor() wires the table, registry, command engine, selection,
controllers and clipboard with explicit references. TableEditor is the
boundary the UI (or the HTTP layer) talks to: every operation returns a
Result instead of raising.
"""

import functools
import logging
from typing import Any, Callable, Iterable, Optional, Protocol, Sequence

from pydantic import ValidationError

from shared.schemas import (
    Aggregation,
    ColumnKind,
    CommandRequest,
    DecisionTableDocument,
    HitPolicy,
    InsertColumnRequest,
    InsertRuleRequest,
    MoveColumnRequest,
    MoveRuleRequest,
    RemoveColumnRequest,
    RemoveRuleRequest,
    ResizeColumnRequest,
    SetCellRequest,
    SetPropertiesRequest,
    UpdateColumnRequest,
)
from table_editor.config import EditorSettings
from table_editor.errors import ErrorKind, InvalidTableProperty, TableEditError
from table_editor.models import (
    Cell,
    CellRef,
    Column,
    DecisionTable,
    Rule,
    TableProperties,
    columns_and_rules_from_document,
    generate_id,
)
from table_editor.services.cell_editors import CellEditor, CellEditorRegistry, EditingSession, default_editors
from table_editor.services.clipboard import RuleClipboard
from table_editor.services.command_engine import CommandEngine
from table_editor.services.commands import (
    Command,
    InsertColumnCommand,
    InsertRuleCommand,
    MacroCommand,
    RemoveColumnCommand,
    RemoveRuleCommand,
    SetCellValueCommand,
    SetTablePropertiesCommand,
    UpdateColumnCommand,
)
from table_editor.services.events import TableChanged
from table_editor.services.expression_languages import ExpressionLanguages
from table_editor.services.reorder import ColumnDragController, ColumnResizeController, RuleDragController
from table_editor.services.results import Result
from table_editor.services.selection import Selection

logger = logging.getLogger(__name__)

KIND_ORDER = (ColumnKind.INPUT, ColumnKind.OUTPUT, ColumnKind.ANNOTATION)


class Viewer(Protocol):
    """Read-only access to a decision table."""

    def get_columns(self) -> tuple[Column, ...]: ...

    def get_rules(self) -> tuple[Rule, ...]: ...

    def get_cell(self, rule_id: str, column_id: str) -> Cell: ...

    def to_document(self) -> DecisionTableDocument: ...


class Editable(Protocol):
    """Undoable editing on top of a viewer."""

    viewer: Viewer

    def undo(self) -> Result: ...

    def redo(self) -> Result: ...

    def can_undo(self) -> bool: ...

    def can_redo(self) -> bool: ...


class TableViewer:
    """Viewer over a DecisionTable."""

    def __init__(self, table: DecisionTable, languages: ExpressionLanguages):
        self._table = table
        self.languages = languages

    @property
    def properties(self) -> TableProperties:
        return self._table.properties

    def get_columns(self) -> tuple[Column, ...]:
        return self._table.get_columns()

    def get_rules(self) -> tuple[Rule, ...]:
        return self._table.get_rules()

    def get_cell(self, rule_id: str, column_id: str) -> Cell:
        return self._table.get_cell(rule_id, column_id)

    def invalid_cells(self) -> list[tuple[str, str, Cell]]:
        return self._table.invalid_cells()

    def to_document(self) -> DecisionTableDocument:
        return self._table.to_document()


def _as_result(fn: Callable[..., Any]) -> Callable[..., Result]:
    """Convert TableEditError into a FAILURE result; pass Results through."""

    @functools.wraps(fn)
    def wrapper(self: "TableEditor", *args: Any, **kwargs: Any) -> Result:
        try:
            value = fn(self, *args, **kwargs)
        except TableEditError as e:
            logger.info("%s rejected: %s", fn.__name__, e.message)
            return Result.failure(e)
        if isinstance(value, Result):
            return value
        return Result.success(value)

    return wrapper


class TableEditor:
    """Editing facade: viewer + command engine + selection + editors."""

    def __init__(
        self,
        viewer: TableViewer,
        engine: CommandEngine,
        selection: Selection,
        registry: CellEditorRegistry,
        rule_drag: RuleDragController,
        column_drag: ColumnDragController,
        column_resize: ColumnResizeController,
        clipboard: RuleClipboard,
    ):
        self.viewer = viewer
        self.engine = engine
        self.selection = selection
        self.registry = registry
        self.rule_drag = rule_drag
        self.column_drag = column_drag
        self.column_resize = column_resize
        self.clipboard = clipboard
        self.session: Optional[EditingSession] = None

    @property
    def table(self) -> DecisionTable:
        return self.engine.table

    def can_undo(self) -> bool:
        return self.engine.can_undo()

    def can_redo(self) -> bool:
        return self.engine.can_redo()

    # ---- document ----

    def load(self, document: DecisionTableDocument) -> TableChanged:
        """Load a document; clears history and the selection. Raises on an invalid document."""
        columns, rules, properties = columns_and_rules_from_document(document)
        previous_id = self.table.decision_id
        self.table.decision_id = document.id
        try:
            event = self.engine.load_table(columns, rules, properties)
        except TableEditError:
            self.table.decision_id = previous_id
            raise
        self.session = None
        self.selection.clear()
        return event

    @_as_result
    def open(self, document: DecisionTableDocument) -> TableChanged:
        return self.load(document)

    # ---- rules ----

    @_as_result
    def add_rule(
        self,
        index: Optional[int] = None,
        values: Optional[Sequence[str]] = None,
        rule_id: Optional[str] = None,
    ) -> TableChanged:
        table = self.table
        if values is None:
            values = [table.validator.default_raw(c) for c in table.get_columns()]
        index = table.rule_count if index is None else index
        rule = Rule.from_values(rule_id or generate_id("rule"), values)
        return self.engine.execute(InsertRuleCommand(rule, index))

    @_as_result
    def remove_rules(self, rule_ids: Sequence[str]) -> Any:
        if not rule_ids:
            return Result.noop("No rules to remove")
        if len(rule_ids) == 1:
            return self.engine.execute(RemoveRuleCommand(rule_ids[0]))
        return self.engine.execute(
            MacroCommand([RemoveRuleCommand(r) for r in rule_ids], label="remove rules")
        )

    @_as_result
    def move_rule(self, source_index: int, target_index: int) -> Any:
        return self._or_noop(self.rule_drag.drop(source_index, target_index), "Rule stays in place")

    # ---- columns ----

    @_as_result
    def add_column(
        self,
        kind: ColumnKind = ColumnKind.INPUT,
        label: str = "",
        type_ref: Optional[str] = None,
        expression_language: Optional[str] = None,
        index: Optional[int] = None,
        column_id: Optional[str] = None,
    ) -> TableChanged:
        """Insert a column; by default at the end of the columns of its kind."""
        kind = _coerce(ColumnKind, kind, "column kind")
        if index is None:
            rank = KIND_ORDER.index(kind)
            index = sum(1 for c in self.table.get_columns() if KIND_ORDER.index(c.kind) <= rank)
        column = Column(
            id=column_id or generate_id(kind.value),
            kind=kind,
            label=label,
            type_ref=type_ref,
            expression_language=expression_language,
        )
        return self.engine.execute(InsertColumnCommand(column, index))

    @_as_result
    def remove_column(self, column_id: str) -> TableChanged:
        return self.engine.execute(RemoveColumnCommand(column_id))

    @_as_result
    def move_column(self, source_index: int, target_index: int) -> Any:
        return self._or_noop(self.column_drag.drop(source_index, target_index), "Column stays in place")

    @_as_result
    def resize_column(self, column_id: str, width: int) -> Any:
        return self._or_noop(self.column_resize.commit(column_id, width), "Width unchanged")

    @_as_result
    def update_column(self, column_id: str, **changes: Any) -> Any:
        current = self.table.get_column(column_id)
        changes = {k: v for k, v in changes.items() if getattr(current, k, object()) != v}
        if not changes:
            return Result.noop("Column unchanged")
        return self.engine.execute(UpdateColumnCommand(column_id, **changes))

    # ---- cells ----

    @_as_result
    def set_cell(self, rule_id: str, column_id: str, value: str) -> Any:
        if self.table.get_cell(rule_id, column_id).raw == value:
            return Result.noop("Value unchanged")
        return self.engine.execute(SetCellValueCommand(rule_id, column_id, value))

    @_as_result
    def open_cell(self, rule_id: str, column_id: str) -> EditingSession:
        """Start editing a cell with the editor resolved for its column; selects it."""
        cell = self.table.get_cell(rule_id, column_id)
        column = self.table.get_column(column_id)
        if self.session is not None and self.session.is_open:
            self.registry.cancel(self.session)
        self.selection.move_to(rule_id, column_id)
        self.session = self.registry.open(CellRef(rule_id=rule_id, column_id=column_id), cell, column)
        return self.session

    def cell_editor(self, session: Optional[EditingSession] = None) -> CellEditor:
        """Editor variant driving a session (for its structured setters)."""
        session = session or self.session
        return self.registry.get(session.editor)

    @_as_result
    def commit_edit(self, session: Optional[EditingSession] = None) -> Any:
        session = session or self.session
        if session is None:
            return Result.noop("No cell is being edited")
        raw = self.registry.commit(session)
        if session is self.session:
            self.session = None
        if raw == session.original:
            return Result.noop("Value unchanged")
        return self.engine.execute(SetCellValueCommand(session.rule_id, session.column_id, raw))

    @_as_result
    def cancel_edit(self, session: Optional[EditingSession] = None) -> Any:
        session = session or self.session
        if session is None:
            return Result.noop("No cell is being edited")
        self.registry.cancel(session)
        if session is self.session:
            self.session = None
        return None

    # ---- table properties ----

    @_as_result
    def set_hit_policy(self, hit_policy: HitPolicy, aggregation: Optional[Aggregation] = None) -> Any:
        """Set hit policy and aggregation together; aggregation only applies to COLLECT."""
        return self._set_properties({"hit_policy": hit_policy, "aggregation": aggregation})

    @_as_result
    def set_table_properties(self, **changes: Any) -> Any:
        """Update name, hit_policy and/or aggregation."""
        return self._set_properties(changes)

    def _set_properties(self, changes: dict[str, Any]) -> Any:
        unknown = set(changes) - set(TableProperties.model_fields)
        if unknown:
            raise InvalidTableProperty(f"Unknown table properties: {sorted(unknown)}", properties=sorted(unknown))
        try:
            properties = TableProperties(**{**self.table.properties.model_dump(), **changes})
        except ValidationError as e:
            raise InvalidTableProperty(f"Invalid table properties: {e.errors()[0]['msg']}", changes=changes) from e
        if properties == self.table.properties:
            return Result.noop("Table properties unchanged")
        return self.engine.execute(SetTablePropertiesCommand(properties))

    @_as_result
    def set_simple_mode(self, enabled: bool) -> bool:
        """Switch between typed simple editors and free-text expression editing."""
        self.registry.simple_mode = enabled
        return enabled

    # ---- clipboard ----

    @_as_result
    def copy_rules(self, rule_ids: Sequence[str]) -> int:
        return self.clipboard.copy(rule_ids)

    @_as_result
    def cut_rules(self, rule_ids: Sequence[str]) -> Any:
        if not rule_ids:
            return Result.noop("No rules to cut")
        return self.clipboard.cut(rule_ids)

    @_as_result
    def paste_rules(self, index: Optional[int] = None) -> Any:
        return self._or_noop(self.clipboard.paste(index), "Clipboard is empty")

    # ---- history ----

    @_as_result
    def undo(self) -> Any:
        event = self.engine.undo()
        if event is None:
            return Result.noop("Nothing to undo", ErrorKind.NOTHING_TO_UNDO)
        return event

    @_as_result
    def redo(self) -> Any:
        event = self.engine.redo()
        if event is None:
            return Result.noop("Nothing to redo", ErrorKind.NOTHING_TO_REDO)
        return event

    # ---- request dispatch ----

    def apply(self, request: CommandRequest) -> Result:
        """Run a command request from the shared contract."""
        if isinstance(request, InsertRuleRequest):
            return self.add_rule(request.index, request.values, request.rule_id)
        if isinstance(request, RemoveRuleRequest):
            return self.remove_rules(request.rule_ids)
        if isinstance(request, InsertColumnRequest):
            return self.add_column(
                request.kind,
                label=request.label,
                type_ref=request.type_ref,
                expression_language=request.expression_language,
                index=request.index,
                column_id=request.column_id,
            )
        if isinstance(request, RemoveColumnRequest):
            return self.remove_column(request.column_id)
        if isinstance(request, MoveRuleRequest):
            return self.move_rule(request.source_index, request.target_index)
        if isinstance(request, MoveColumnRequest):
            return self.move_column(request.source_index, request.target_index)
        if isinstance(request, SetCellRequest):
            return self.set_cell(request.rule_id, request.column_id, request.value)
        if isinstance(request, UpdateColumnRequest):
            return self.update_column(request.column_id, **_set_fields(request, exclude={"op", "column_id"}))
        if isinstance(request, ResizeColumnRequest):
            return self.resize_column(request.column_id, request.width)
        if isinstance(request, SetPropertiesRequest):
            return self.set_table_properties(**_set_fields(request, exclude={"op"}))
        raise TypeError(f"Unsupported command request: {type(request).__name__}")

    def execute(self, command: Command) -> Result:
        """Run an arbitrary command through the engine."""
        try:
            return Result.success(self.engine.execute(command))
        except TableEditError as e:
            return Result.failure(e)

    @staticmethod
    def _or_noop(event: Optional[TableChanged], detail: str) -> Any:
        return Result.noop(detail) if event is None else event


def _set_fields(request: Any, exclude: Iterable[str]) -> dict[str, Any]:
    return request.model_dump(exclude_unset=True, exclude=set(exclude))


def _coerce(enum: Any, value: Any, what: str) -> Any:
    try:
        return enum(value)
    except ValueError as e:
        raise InvalidTableProperty(f"Unknown {what} '{value}'", value=str(value)) from e


# -----------------------------------------------------------------------------
# Composition root
# -----------------------------------------------------------------------------


def create_editor(
    settings: Optional[EditorSettings] = None,
    editors: Optional[Sequence[CellEditor]] = None,
    document: Optional[DecisionTableDocument] = None,
) -> TableEditor:
    """Build a fully wired TableEditor; optionally open a document."""
    settings = settings or EditorSettings()
    languages = ExpressionLanguages(
        settings.expression_languages,
        default_input_expression_language=settings.default_input_expression_language,
        default_output_expression_language=settings.default_output_expression_language,
    )
    registry = CellEditorRegistry(
        editors if editors is not None else default_editors(languages),
        languages=languages,
        simple_mode=settings.simple_mode,
    )
    table = DecisionTable(validator=registry)
    engine = CommandEngine(table, undo_limit=settings.undo_limit)
    selection = Selection(table)
    engine.changed.connect(selection.on_table_changed)
    editor = TableEditor(
        viewer=TableViewer(table, languages),
        engine=engine,
        selection=selection,
        registry=registry,
        rule_drag=RuleDragController(engine),
        column_drag=ColumnDragController(engine),
        column_resize=ColumnResizeController(engine, settings.min_column_width),
        clipboard=RuleClipboard(engine),
    )
    if document is not None:
        editor.load(document)
    return editor
