"""Editing services (commands, selection, cell editors, facade)."""

from table_editor.services.cell_editors import (
    CellEditor,
    CellEditorRegistry,
    EditingSession,
    SessionState,
    default_editors,
)
from table_editor.services.clipboard import RuleClipboard
from table_editor.services.command_engine import CommandEngine
from table_editor.services.commands import (
    Command,
    InsertColumnCommand,
    InsertRuleCommand,
    MacroCommand,
    MoveColumnCommand,
    MoveRuleCommand,
    RemoveColumnCommand,
    RemoveRuleCommand,
    SetCellValueCommand,
    SetTablePropertiesCommand,
    UpdateColumnCommand,
)
from table_editor.services.editor import Editable, TableEditor, TableViewer, Viewer, create_editor
from table_editor.services.events import ChangeScope, CommandStackState, Signal, TableChanged
from table_editor.services.expression_languages import ExpressionLanguages, ExpressionLanguagesConfig
from table_editor.services.reorder import ColumnDragController, ColumnResizeController, RuleDragController
from table_editor.services.results import Result, ResultStatus
from table_editor.services.selection import Selection, SelectionState

__all__ = [
    "CellEditor",
    "CellEditorRegistry",
    "EditingSession",
    "SessionState",
    "default_editors",
    "RuleClipboard",
    "CommandEngine",
    "Command",
    "InsertColumnCommand",
    "InsertRuleCommand",
    "MacroCommand",
    "MoveColumnCommand",
    "MoveRuleCommand",
    "RemoveColumnCommand",
    "RemoveRuleCommand",
    "SetCellValueCommand",
    "SetTablePropertiesCommand",
    "UpdateColumnCommand",
    "Editable",
    "TableEditor",
    "TableViewer",
    "Viewer",
    "create_editor",
    "ChangeScope",
    "CommandStackState",
    "Signal",
    "TableChanged",
    "ExpressionLanguages",
    "ExpressionLanguagesConfig",
    "ColumnDragController",
    "ColumnResizeController",
    "RuleDragController",
    "Result",
    "ResultStatus",
    "Selection",
    "SelectionState",
]
