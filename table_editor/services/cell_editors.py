"""
Cell editor registry: per-type editing contracts and cell validation.

Each editor variant claims columns through can_edit(column). The registry
resolves a column to the first claiming variant in registration order and
falls back to the generic expression editor, so the simple (typed) editors
shadow free-text editing for the types they recognise.

Editors never write to the table. commit() hands back raw text; the command
engine stores it and the table validates it again through validate().
"""

import logging
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, Sequence

from pydantic import BaseModel, Field

from shared.schemas import ColumnKind
from table_editor.errors import EditSessionClosed
from table_editor.models import Cell, CellRef, CellStatus, Column
from table_editor.services.expression_languages import FEEL, ExpressionLanguages
from table_editor.services.value_parsing import (
    COMPARISON_OPERATORS,
    Duration,
    Expression,
    entry_operands,
    is_literal,
    parse_boolean,
    parse_date,
    parse_date_time,
    parse_duration,
    parse_input_entry,
    parse_number,
    parse_output_entry,
    parse_string,
    parse_time,
    split_top_level,
    tokenize,
)

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    OPEN = "open"
    COMMITTED = "committed"
    CANCELLED = "cancelled"


class EditingSession(BaseModel):
    """In-progress edit of one cell. Only `draft` changes while it is open."""

    rule_id: str
    column_id: str
    editor: str = Field(..., description="KEY of the editor variant that opened the session")
    kind: ColumnKind
    type_ref: Optional[str] = None
    expression_language: str = FEEL
    original: str = Field("", description="Raw text when the session was opened")
    draft: str = Field("", description="Raw text being edited")
    state: SessionState = SessionState.OPEN

    @property
    def ref(self) -> CellRef:
        return CellRef(rule_id=self.rule_id, column_id=self.column_id)

    @property
    def is_open(self) -> bool:
        return self.state == SessionState.OPEN

    @property
    def changed(self) -> bool:
        return self.draft != self.original


# -----------------------------------------------------------------------------
# Editor variants
# -----------------------------------------------------------------------------


class CellEditor:
    """Base class for cell editor variants."""

    KEY: str = "base"  # override in subclass

    def __init__(self, languages: ExpressionLanguages):
        self.languages = languages

    # ---- capability set ----

    def can_edit(self, column: Column) -> bool:
        raise NotImplementedError("`can_edit` must be implemented in subclass.")

    def open(self, ref: CellRef, cell: Cell, column: Column) -> EditingSession:
        return EditingSession(
            rule_id=ref.rule_id,
            column_id=ref.column_id,
            editor=self.KEY,
            kind=column.kind,
            type_ref=column.type_ref,
            expression_language=self.languages.effective_language(column.expression_language, column.kind),
            original=cell.raw,
            draft=cell.raw,
        )

    def commit(self, session: EditingSession) -> str:
        _require_open(session)
        session.state = SessionState.COMMITTED
        return session.draft

    def cancel(self, session: EditingSession) -> None:
        _require_open(session)
        session.state = SessionState.CANCELLED

    # ---- validation ----

    def parse(self, raw: str, column: Column) -> Any:
        """Parsed representation of raw text; raises ValueError when it does not parse."""
        return raw

    def default_raw(self, column: Column) -> str:
        return ""

    # ---- editing ----

    def set_text(self, session: EditingSession, text: str) -> None:
        _require_open(session)
        session.draft = text


class AnnotationCellEditor(CellEditor):
    """Free text for annotation columns."""

    KEY = "annotation"

    def can_edit(self, column: Column) -> bool:
        return column.kind == ColumnKind.ANNOTATION


class ExpressionCellEditor(CellEditor):
    """Generic fallback: language-tagged free text, opaque to the editor."""

    KEY = "expression"

    def can_edit(self, column: Column) -> bool:
        return True


class SimpleCellEditor(CellEditor):
    """
    Typed editor for FEEL columns whose type_ref is in TYPE_REFS.

    Input cells accept the unary test shapes enabled below; output cells
    accept a single literal.
    """

    TYPE_REFS: tuple[str, ...] = ()
    COMPARISONS = True
    INTERVALS = True
    LISTS = True
    NEGATION = False

    def can_edit(self, column: Column) -> bool:
        if column.kind == ColumnKind.ANNOTATION or column.type_ref not in self.TYPE_REFS:
            return False
        return self.languages.effective_language(column.expression_language, column.kind) == FEEL

    def parse(self, raw: str, column: Column) -> Any:
        """
        Simple-mode shape of `raw`, or an Expression for other valid FEEL.

        Raises ValueError when the text does not lex, when an output entry is
        not a single expression, or when one of its literals does not fit the
        column type.
        """
        tokenize(raw)
        try:
            return self.parse_simple(raw, column)
        except ValueError as e:
            return self._parse_expression(raw, column, e)

    def parse_simple(self, raw: str, column: Column) -> Any:
        literal = lambda text: self.parse_literal(text, column)  # noqa: E731
        if column.kind == ColumnKind.INPUT:
            return parse_input_entry(
                raw,
                literal,
                comparisons=self.COMPARISONS,
                intervals=self.INTERVALS,
                lists=self.LISTS,
                negation=self.NEGATION,
            )
        return parse_output_entry(raw, literal)

    def _parse_expression(self, raw: str, column: Column, error: ValueError) -> Expression:
        is_input = column.kind == ColumnKind.INPUT
        text = raw.strip()
        if not is_input and (text.startswith(COMPARISON_OPERATORS) or len(split_top_level(text)) > 1):
            raise ValueError(f"'{text}' is not a single output expression")
        for operand in entry_operands(text, is_input):
            if not operand:
                raise error
            if is_literal(operand):
                self.parse_literal(operand, column)
        return Expression(text=text)

    def parse_literal(self, text: str, column: Column) -> Any:
        raise NotImplementedError("`parse_literal` must be implemented in subclass.")

    def format_literal(self, value: Any) -> str:
        raise NotImplementedError("`format_literal` must be implemented in subclass.")

    def set_value(self, session: EditingSession, value: Any) -> None:
        """Write a single literal (None clears the cell)."""
        self.set_text(session, "" if value is None else self.format_literal(value))


class ComparableCellEditor(SimpleCellEditor):
    """Simple editor for ordered types: comparisons and intervals on inputs."""

    def set_comparison(self, session: EditingSession, operator: str, value: Any) -> None:
        _require_input(session)
        if operator not in COMPARISON_OPERATORS:
            raise ValueError(f"Unsupported comparison operator '{operator}'")
        self.set_text(session, f"{operator} {self.format_literal(value)}")

    def set_interval(
        self,
        session: EditingSession,
        start: Any,
        end: Any,
        start_inclusive: bool = True,
        end_inclusive: bool = True,
    ) -> None:
        _require_input(session)
        open_bracket = "[" if start_inclusive else "]"
        close_bracket = "]" if end_inclusive else "["
        self.set_text(
            session,
            f"{open_bracket}{self.format_literal(start)}..{self.format_literal(end)}{close_bracket}",
        )


class BooleanCellEditor(SimpleCellEditor):
    KEY = "boolean"
    TYPE_REFS = ("boolean",)
    COMPARISONS = False
    INTERVALS = False
    LISTS = False

    def parse_literal(self, text: str, column: Column) -> bool:
        return parse_boolean(text)

    def format_literal(self, value: Any) -> str:
        return "true" if value else "false"


class DateCellEditor(ComparableCellEditor):
    KEY = "date"
    TYPE_REFS = ("date",)
    LISTS = False

    def parse_literal(self, text: str, column: Column) -> date:
        return parse_date(text)

    def format_literal(self, value: Any) -> str:
        if isinstance(value, datetime):
            value = value.date()
        return f'date("{value.isoformat()}")'


class DateTimeCellEditor(ComparableCellEditor):
    KEY = "dateTime"
    TYPE_REFS = ("dateTime",)
    LISTS = False

    def parse_literal(self, text: str, column: Column) -> datetime:
        return parse_date_time(text)

    def format_literal(self, value: Any) -> str:
        return f'date and time("{value.isoformat()}")'


class DurationCellEditor(ComparableCellEditor):
    KEY = "duration"
    TYPE_REFS = ("duration", "dayTimeDuration", "yearMonthDuration")
    LISTS = False

    def parse_literal(self, text: str, column: Column) -> Duration:
        return parse_duration(text, column.type_ref)

    def format_literal(self, value: Any) -> str:
        if isinstance(value, timedelta):
            value = _duration_from_timedelta(value)
        if isinstance(value, Duration):
            value = value.to_iso()
        return f'duration("{value}")'


class NumberCellEditor(ComparableCellEditor):
    KEY = "number"
    TYPE_REFS = ("number", "integer", "long", "double")

    def parse_literal(self, text: str, column: Column) -> Decimal:
        value = parse_number(text)
        if column.type_ref in ("integer", "long") and value != value.to_integral_value():
            raise ValueError(f"'{text.strip()}' is not a whole number")
        return value

    def format_literal(self, value: Any) -> str:
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        return str(value)


class StringCellEditor(SimpleCellEditor):
    KEY = "string"
    TYPE_REFS = ("string",)
    COMPARISONS = False
    INTERVALS = False
    NEGATION = True

    def parse_literal(self, text: str, column: Column) -> str:
        return parse_string(text)

    def format_literal(self, value: Any) -> str:
        escaped = str(value).replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'

    def set_values(self, session: EditingSession, values: Sequence[str], negate: bool = False) -> None:
        """Input cells: match any of `values` (or none of them when negated)."""
        _require_input(session)
        text = ", ".join(self.format_literal(v) for v in values)
        if negate and text:
            text = f"not({text})"
        self.set_text(session, text)


class TimeCellEditor(ComparableCellEditor):
    KEY = "time"
    TYPE_REFS = ("time",)
    LISTS = False

    def parse_literal(self, text: str, column: Column) -> time:
        return parse_time(text)

    def format_literal(self, value: Any) -> str:
        return f'time("{value.isoformat()}")'


def default_editors(languages: ExpressionLanguages) -> list[CellEditor]:
    """Registration order used by the editor; the expression fallback is separate."""
    return [
        AnnotationCellEditor(languages),
        BooleanCellEditor(languages),
        DateCellEditor(languages),
        DateTimeCellEditor(languages),
        DurationCellEditor(languages),
        NumberCellEditor(languages),
        StringCellEditor(languages),
        TimeCellEditor(languages),
    ]


# -----------------------------------------------------------------------------
# Registry
# -----------------------------------------------------------------------------


class CellEditorRegistry:
    """
    Ordered editor variants plus the expression fallback.

    Also the table's CellValidator: validate() parses raw text with the
    type-specific variant regardless of simple mode, so a cell's validity
    does not depend on how it is being edited.
    """

    def __init__(
        self,
        editors: Optional[Sequence[CellEditor]] = None,
        languages: Optional[ExpressionLanguages] = None,
        simple_mode: bool = True,
        fallback: Optional[CellEditor] = None,
    ):
        self.languages = languages or ExpressionLanguages()
        self._editors = list(editors) if editors is not None else default_editors(self.languages)
        self.fallback = fallback or ExpressionCellEditor(self.languages)
        self.simple_mode = simple_mode

    @property
    def editors(self) -> tuple[CellEditor, ...]:
        return tuple(self._editors)

    def resolve(self, column: Column) -> CellEditor:
        """Editor used to edit cells of `column` in the current mode."""
        if not self.simple_mode:
            return self.fallback
        return self._claim(column)

    def get(self, key: str) -> CellEditor:
        for editor in (*self._editors, self.fallback):
            if editor.KEY == key:
                return editor
        raise KeyError(f"No editor registered for key '{key}'")

    # ---- editing contract ----

    def open(self, ref: CellRef, cell: Cell, column: Column) -> EditingSession:
        session = self.resolve(column).open(ref, cell, column)
        logger.debug("Opened %s editor for %s/%s", session.editor, ref.rule_id, ref.column_id)
        return session

    def commit(self, session: EditingSession) -> str:
        return self.get(session.editor).commit(session)

    def cancel(self, session: EditingSession) -> None:
        self.get(session.editor).cancel(session)

    # ---- CellValidator ----

    def validate(self, column: Column, raw: str) -> Cell:
        editor = self._claim(column)
        try:
            parsed = editor.parse(raw, column)
        except ValueError as e:
            return Cell(raw=raw, parsed=None, status=CellStatus.INVALID, reason=str(e))
        return Cell(raw=raw, parsed=parsed, status=CellStatus.VALID)

    def default_raw(self, column: Column) -> str:
        return self._claim(column).default_raw(column)

    def _claim(self, column: Column) -> CellEditor:
        for editor in self._editors:
            if editor.can_edit(column):
                return editor
        return self.fallback


def _require_open(session: EditingSession) -> None:
    if not session.is_open:
        raise EditSessionClosed(
            f"Editing session for {session.rule_id}/{session.column_id} is already {session.state.value}",
            rule_id=session.rule_id,
            column_id=session.column_id,
        )


def _require_input(session: EditingSession) -> None:
    if session.kind != ColumnKind.INPUT:
        raise ValueError("Comparisons, intervals and value lists are only allowed in input cells")


def _duration_from_timedelta(delta: timedelta) -> Duration:
    negative = delta < timedelta(0)
    delta = abs(delta)
    hours, remainder = divmod(delta.seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    return Duration(
        negative=negative,
        days=delta.days,
        hours=hours,
        minutes=minutes,
        seconds=Decimal(seconds) + Decimal(delta.microseconds) / Decimal(1_000_000),
    )
