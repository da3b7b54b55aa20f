"""
Editing routes for open decision tables.

Tables live in the in-memory EditorSessionStore; every command goes through
the table's TableEditor so history, selection and validation behave exactly
as in an embedded editor.
"""

from contextlib import contextmanager
from typing import Any, Iterator, NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from shared.schemas import CommandRequest, DecisionTableDocument
from table_editor.errors import ErrorKind, TableEditError
from table_editor.services.editor import TableEditor
from table_editor.services.results import Result, ResultStatus
from table_editor.services.session_store import EditorSessionStore, get_session_store

router = APIRouter()

ERROR_STATUS = {
    ErrorKind.UNKNOWN_ID: 404,
    ErrorKind.STRUCTURAL_MISMATCH: 409,
    ErrorKind.DUPLICATE_ID: 409,
    ErrorKind.INDEX_OUT_OF_RANGE: 400,
    ErrorKind.INVALID_PROPERTY: 400,
    ErrorKind.EDIT_SESSION_CLOSED: 409,
}


class SelectRequest(BaseModel):
    rule_id: str
    column_id: str
    extend: bool = Field(False, description="Extend the range from the anchor instead of moving")


class SelectionMoveRequest(BaseModel):
    row_delta: int = 0
    col_delta: int = 0
    extend: bool = Field(False, description="Extend the range instead of moving the active cell")
    advance: bool = Field(False, description="Tab/enter move in row-major order; deltas are ignored")
    backwards: bool = False


def _raise(kind: Optional[ErrorKind], detail: Optional[str]) -> NoReturn:
    raise HTTPException(status_code=ERROR_STATUS.get(kind, 400), detail=detail or "Request rejected")


@contextmanager
def _editing(table_id: str, store: EditorSessionStore) -> Iterator[TableEditor]:
    """The table's editor, held exclusively until the block ends; edit errors become HTTP errors."""
    try:
        with store.editing(table_id) as editor:
            yield editor
    except TableEditError as e:
        _raise(e.kind, e.message)


def _table_view(table_id: str, editor: TableEditor) -> dict[str, Any]:
    document = editor.viewer.to_document()
    return {
        "id": table_id,
        "document": document.model_dump(mode="json"),
        "invalid_cells": [
            {"rule_id": rule_id, "column_id": column_id, "reason": cell.reason}
            for rule_id, column_id, cell in editor.viewer.invalid_cells()
        ],
        "history": editor.engine.state().model_dump(),
    }


def _result_response(table_id: str, editor: TableEditor, result: Result) -> dict[str, Any]:
    if result.status == ResultStatus.FAILURE:
        _raise(result.error_kind, result.detail)
    event = result.value.model_dump(mode="json") if isinstance(result.value, BaseModel) else None
    return {
        "status": result.status.value,
        "detail": result.detail,
        "event": event,
        "table": _table_view(table_id, editor),
    }


# -----------------------------------------------------------------------------
# Tables
# -----------------------------------------------------------------------------


@router.post("/", status_code=201)
def open_table(document: DecisionTableDocument, store: EditorSessionStore = Depends(get_session_store)):
    """Open a decision table document for editing."""
    try:
        editor = store.open(document)
    except TableEditError as e:
        _raise(e.kind, e.message)
    return _table_view(document.id, editor)


@router.get("/", response_model=list[dict])
def list_tables(store: EditorSessionStore = Depends(get_session_store)):
    """List open tables."""
    tables = []
    for table_id in store.ids():
        try:
            with store.editing(table_id) as editor:
                table = editor.table
                tables.append(
                    {
                        "id": table_id,
                        "name": table.properties.name,
                        "hit_policy": table.properties.hit_policy.value,
                        "columns": table.column_count,
                        "rules": table.rule_count,
                    }
                )
        except TableEditError:
            continue  # closed meanwhile
    return tables


@router.get("/{table_id}")
def get_table(table_id: str, store: EditorSessionStore = Depends(get_session_store)):
    with _editing(table_id, store) as editor:
        return _table_view(table_id, editor)


@router.delete("/{table_id}")
def close_table(table_id: str, store: EditorSessionStore = Depends(get_session_store)):
    """Close the table and return its final document."""
    try:
        document = store.close(table_id)
    except TableEditError as e:
        _raise(e.kind, e.message)
    return document.model_dump(mode="json")


# -----------------------------------------------------------------------------
# Commands and history
# -----------------------------------------------------------------------------


@router.post("/{table_id}/commands")
def run_command(
    table_id: str,
    request: CommandRequest,
    store: EditorSessionStore = Depends(get_session_store),
):
    """Apply one editing command. NOOP results (e.g. unchanged value) are 200 with status 'noop'."""
    with _editing(table_id, store) as editor:
        result = store.record(editor.apply(request))
        return _result_response(table_id, editor, result)


@router.post("/{table_id}/undo")
def undo(table_id: str, store: EditorSessionStore = Depends(get_session_store)):
    with _editing(table_id, store) as editor:
        return _result_response(table_id, editor, store.record(editor.undo()))


@router.post("/{table_id}/redo")
def redo(table_id: str, store: EditorSessionStore = Depends(get_session_store)):
    with _editing(table_id, store) as editor:
        return _result_response(table_id, editor, store.record(editor.redo()))


# -----------------------------------------------------------------------------
# Selection
# -----------------------------------------------------------------------------


@router.get("/{table_id}/selection")
def get_selection(table_id: str, store: EditorSessionStore = Depends(get_session_store)):
    with _editing(table_id, store) as editor:
        return editor.selection.state().model_dump()


@router.put("/{table_id}/selection")
def select_cell(
    table_id: str,
    body: SelectRequest,
    store: EditorSessionStore = Depends(get_session_store),
):
    with _editing(table_id, store) as editor:
        if body.extend:
            state = editor.selection.extend_range_to(body.rule_id, body.column_id)
        else:
            state = editor.selection.move_to(body.rule_id, body.column_id)
        return state.model_dump()


@router.post("/{table_id}/selection/move")
def move_selection(
    table_id: str,
    body: SelectionMoveRequest,
    store: EditorSessionStore = Depends(get_session_store),
):
    with _editing(table_id, store) as editor:
        selection = editor.selection
        if body.advance:
            state = selection.advance(backwards=body.backwards)
        elif body.extend:
            state = selection.extend_range_by(body.row_delta, body.col_delta)
        else:
            state = selection.move_by(body.row_delta, body.col_delta)
        return state.model_dump()
