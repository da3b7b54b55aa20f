"""
Error taxonomy for the table editing core.

Structural errors are raised before any mutation happens and leave the
table, the undo/redo stacks and the selection untouched. Cell values that
fail to parse are not errors: they are recorded on the cell as
``status=invalid`` (see ``table_editor.models.CellStatus``).
"""

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Machine-readable error category (also used by ``Result``)."""

    STRUCTURAL_MISMATCH = "structural_mismatch"
    DUPLICATE_ID = "duplicate_id"
    INDEX_OUT_OF_RANGE = "index_out_of_range"
    UNKNOWN_ID = "unknown_id"
    INVALID_PROPERTY = "invalid_property"
    EDIT_SESSION_CLOSED = "edit_session_closed"
    NOTHING_TO_UNDO = "nothing_to_undo"
    NOTHING_TO_REDO = "nothing_to_redo"


class TableEditError(Exception):
    """Base class for all rejected edits."""

    kind: ErrorKind = ErrorKind.STRUCTURAL_MISMATCH

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind.value, "message": self.message, "details": self.details}


class StructuralMismatch(TableEditError):
    """Rule/column cardinality would be violated."""

    kind = ErrorKind.STRUCTURAL_MISMATCH


class DuplicateIdentifier(TableEditError):
    """A column or rule with the same ID already exists."""

    kind = ErrorKind.DUPLICATE_ID


class IndexOutOfRange(TableEditError, IndexError):
    """Insert/move index outside the allowed bounds."""

    kind = ErrorKind.INDEX_OUT_OF_RANGE


class UnknownIdentifier(TableEditError, LookupError):
    """Referenced rule or column does not exist."""

    kind = ErrorKind.UNKNOWN_ID


class InvalidTableProperty(TableEditError, ValueError):
    """Table property combination is not allowed (e.g. aggregation without COLLECT)."""

    kind = ErrorKind.INVALID_PROPERTY


class EditSessionClosed(TableEditError):
    """Commit or cancel on a session that was already committed or cancelled."""

    kind = ErrorKind.EDIT_SESSION_CLOSED
