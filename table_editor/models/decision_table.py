"""
Decision table data model (DMN decision table).

The DecisionTable owns the ordered columns and rules and is the single source
of truth for the editor. Columns, rules and cells are frozen Pydantic models:
mutations replace values instead of editing them in place, so everything a
query returns is a read-only snapshot.

Every mutation validates first and applies second; a rejected call leaves the
table exactly as it was. The mutations are the bodies of the commands in
table_editor.services.commands; UI code goes through the command engine.
"""

import logging
import uuid
from enum import Enum
from typing import Any, Iterable, Mapping, Optional, Protocol, Sequence

from pydantic import BaseModel, Field

from shared.schemas import (
    Aggregation,
    ColumnDocument,
    ColumnKind,
    DecisionTableDocument,
    HitPolicy,
    RuleDocument,
)
from table_editor.errors import (
    DuplicateIdentifier,
    IndexOutOfRange,
    InvalidTableProperty,
    StructuralMismatch,
    UnknownIdentifier,
)

logger = logging.getLogger(__name__)

COLUMN_ATTRIBUTES = ("label", "type_ref", "expression_language", "width")


def generate_id(prefix: str) -> str:
    """Short unique ID, e.g. 'rule-3f9a0c1b2d4e'."""
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


# -----------------------------------------------------------------------------
# Value objects
# -----------------------------------------------------------------------------


class CellStatus(str, Enum):
    """Validation status of a cell's raw text."""

    VALID = "valid"
    INVALID = "invalid"


class Column(BaseModel):
    """Input clause, output clause or annotation column."""

    id: str = Field(..., description="Stable unique column ID")
    kind: ColumnKind = Field(..., description="input, output or annotation")
    label: str = Field("", description="Display label")
    type_ref: Optional[str] = Field(None, description="Declared value type (e.g. 'number', 'date')")
    expression_language: Optional[str] = Field(
        None,
        description="Expression language; None means the default for the column kind",
    )
    width: Optional[int] = Field(None, ge=1, description="Width in pixels; None means automatic")

    model_config = {"frozen": True}


class Cell(BaseModel):
    """
    One rule entry. Identity is (rule id, column id) and is not stored here;
    the type comes from the owning column.
    """

    raw: str = Field("", description="Raw text exactly as entered")
    parsed: Any = Field(None, description="Cached parsed representation (type dependent)")
    status: CellStatus = Field(CellStatus.VALID, description="valid or invalid")
    reason: Optional[str] = Field(None, description="Why the raw text is invalid")

    model_config = {"frozen": True}

    @property
    def is_valid(self) -> bool:
        return self.status == CellStatus.VALID


class Rule(BaseModel):
    """A row of the table: one cell per column, in column order."""

    id: str = Field(..., description="Stable unique rule ID")
    cells: tuple[Cell, ...] = Field(default_factory=tuple, description="Cells in column order")

    model_config = {"frozen": True}

    @classmethod
    def from_values(cls, rule_id: str, values: Iterable[str]) -> "Rule":
        """Build a rule from raw text; the table validates the cells on insert."""
        return cls(id=rule_id, cells=tuple(Cell(raw=v) for v in values))

    def raw_values(self) -> list[str]:
        return [c.raw for c in self.cells]


class CellRef(BaseModel):
    """Coordinate of a cell by rule and column identity."""

    rule_id: str
    column_id: str

    model_config = {"frozen": True}


class TableProperties(BaseModel):
    """Table-level settings edited through the table head."""

    name: str = ""
    hit_policy: HitPolicy = HitPolicy.UNIQUE
    aggregation: Optional[Aggregation] = None

    model_config = {"frozen": True}


class RemovedColumn(BaseModel):
    """What remove_column excised; enough to put it back."""

    column: Column
    index: int
    cells: dict[str, Cell] = Field(default_factory=dict, description="rule_id -> excised cell")


class CellValidator(Protocol):
    """Validation hook used by the table (implemented by CellEditorRegistry)."""

    def validate(self, column: Column, raw: str) -> Cell: ...

    def default_raw(self, column: Column) -> str: ...


# -----------------------------------------------------------------------------
# DecisionTable
# -----------------------------------------------------------------------------


class DecisionTable:
    """
    Ordered columns and rules of one decision table.

    Invariant: len(rule.cells) == len(columns) for every rule, after every
    call. Unknown IDs raise UnknownIdentifier, bad indices raise
    IndexOutOfRange, cardinality violations raise StructuralMismatch.
    """

    def __init__(
        self,
        validator: Optional[CellValidator] = None,
        properties: Optional[TableProperties] = None,
        decision_id: str = "decision",
    ):
        if validator is None:
            from table_editor.services.cell_editors import CellEditorRegistry

            validator = CellEditorRegistry()
        self.decision_id = decision_id
        self._validator = validator
        self._properties = properties or TableProperties()
        self._columns: list[Column] = []
        self._rules: list[Rule] = []

    # ---- queries ----

    @property
    def validator(self) -> CellValidator:
        return self._validator

    @property
    def properties(self) -> TableProperties:
        return self._properties

    @property
    def column_count(self) -> int:
        return len(self._columns)

    @property
    def rule_count(self) -> int:
        return len(self._rules)

    def get_columns(self) -> tuple[Column, ...]:
        return tuple(self._columns)

    def get_rules(self) -> tuple[Rule, ...]:
        return tuple(self._rules)

    def get_column(self, column_id: str) -> Column:
        return self._columns[self.column_index(column_id)]

    def get_rule(self, rule_id: str) -> Rule:
        return self._rules[self.rule_index(rule_id)]

    def get_cell(self, rule_id: str, column_id: str) -> Cell:
        return self.get_rule(rule_id).cells[self.column_index(column_id)]

    def has_column(self, column_id: str) -> bool:
        return any(c.id == column_id for c in self._columns)

    def has_rule(self, rule_id: str) -> bool:
        return any(r.id == rule_id for r in self._rules)

    def column_index(self, column_id: str) -> int:
        for i, column in enumerate(self._columns):
            if column.id == column_id:
                return i
        raise UnknownIdentifier(f"Column '{column_id}' does not exist", column_id=column_id)

    def rule_index(self, rule_id: str) -> int:
        for i, rule in enumerate(self._rules):
            if rule.id == rule_id:
                return i
        raise UnknownIdentifier(f"Rule '{rule_id}' does not exist", rule_id=rule_id)

    def invalid_cells(self) -> list[tuple[str, str, Cell]]:
        """(rule_id, column_id, cell) for every cell whose status is invalid."""
        found = []
        for rule in self._rules:
            for column, cell in zip(self._columns, rule.cells):
                if not cell.is_valid:
                    found.append((rule.id, column.id, cell))
        return found

    # ---- column mutations ----

    def insert_column(
        self,
        column: Column,
        index: int,
        cells: Optional[Mapping[str, Cell]] = None,
    ) -> None:
        """
        Insert column at index; every rule gains a cell at the same position.
        `cells` (rule_id -> Cell) restores previously excised cells; rules not
        in the mapping get the column's default value.
        """
        if self.has_column(column.id):
            raise DuplicateIdentifier(f"Column '{column.id}' already exists", column_id=column.id)
        _check_index(index, len(self._columns), "column insert")
        cells = cells or {}
        default_raw = self._validator.default_raw(column)
        new_rules = []
        for rule in self._rules:
            raw = cells[rule.id].raw if rule.id in cells else default_raw
            cell = self._validator.validate(column, raw)
            new_cells = rule.cells[:index] + (cell,) + rule.cells[index:]
            new_rules.append(rule.model_copy(update={"cells": new_cells}))
        self._columns.insert(index, column)
        self._rules = new_rules

    def remove_column(self, column_id: str) -> RemovedColumn:
        """Remove column and excise its cell from every rule."""
        index = self.column_index(column_id)
        column = self._columns[index]
        excised = {rule.id: rule.cells[index] for rule in self._rules}
        self._rules = [
            rule.model_copy(update={"cells": rule.cells[:index] + rule.cells[index + 1:]})
            for rule in self._rules
        ]
        del self._columns[index]
        return RemovedColumn(column=column, index=index, cells=excised)

    def move_column(self, column_id: str, to_index: int) -> int:
        """Reorder column (and every rule's cell) in place. Returns the original index."""
        from_index = self.column_index(column_id)
        _check_index(to_index, len(self._columns) - 1, "column move")
        if from_index == to_index:
            return from_index
        self._columns.insert(to_index, self._columns.pop(from_index))
        new_rules = []
        for rule in self._rules:
            cells = list(rule.cells)
            cells.insert(to_index, cells.pop(from_index))
            new_rules.append(rule.model_copy(update={"cells": tuple(cells)}))
        self._rules = new_rules
        return from_index

    def update_column(self, column_id: str, **changes: Any) -> Column:
        """
        Change label, type_ref, expression_language or width. Cells of the
        column are revalidated when the type or the language changes.
        Returns the previous column.
        """
        unknown = set(changes) - set(COLUMN_ATTRIBUTES)
        if unknown:
            raise InvalidTableProperty(f"Unknown column attributes: {sorted(unknown)}", column_id=column_id)
        width = changes.get("width")
        if width is not None and width < 1:
            raise InvalidTableProperty("Column width must be positive", column_id=column_id, width=width)
        index = self.column_index(column_id)
        previous = self._columns[index]
        updated = previous.model_copy(update=changes)
        self._columns[index] = updated
        if (updated.type_ref, updated.expression_language) != (previous.type_ref, previous.expression_language):
            self._revalidate_column(index)
        return previous

    # ---- rule mutations ----

    def insert_rule(self, rule: Rule, index: int) -> Rule:
        """Insert rule at index. Its cell count must match the column count."""
        if len(rule.cells) != len(self._columns):
            raise StructuralMismatch(
                f"Rule '{rule.id}' has {len(rule.cells)} cells, table has {len(self._columns)} columns",
                rule_id=rule.id,
            )
        if self.has_rule(rule.id):
            raise DuplicateIdentifier(f"Rule '{rule.id}' already exists", rule_id=rule.id)
        _check_index(index, len(self._rules), "rule insert")
        validated = self._validated_rule(rule)
        self._rules.insert(index, validated)
        return validated

    def remove_rule(self, rule_id: str) -> tuple[Rule, int]:
        """Remove rule. Returns (rule, original index)."""
        index = self.rule_index(rule_id)
        return self._rules.pop(index), index

    def move_rule(self, rule_id: str, to_index: int) -> int:
        """Reorder rule in place. Returns the original index."""
        from_index = self.rule_index(rule_id)
        _check_index(to_index, len(self._rules) - 1, "rule move")
        if from_index != to_index:
            self._rules.insert(to_index, self._rules.pop(from_index))
        return from_index

    # ---- cell mutations ----

    def set_cell_value(self, rule_id: str, column_id: str, raw: str) -> str:
        """
        Store raw text and its validation result. Never raises on text that
        does not parse; the cell is marked invalid instead. Returns the
        previous raw text.
        """
        row = self.rule_index(rule_id)
        col = self.column_index(column_id)
        rule = self._rules[row]
        previous = rule.cells[col].raw
        cell = self._validator.validate(self._columns[col], raw)
        if not cell.is_valid:
            logger.debug("Invalid value for %s/%s: %s", rule_id, column_id, cell.reason)
        cells = rule.cells[:col] + (cell,) + rule.cells[col + 1:]
        self._rules[row] = rule.model_copy(update={"cells": cells})
        return previous

    # ---- table-level ----

    def set_properties(self, properties: TableProperties) -> TableProperties:
        """Replace table properties. Returns the previous properties."""
        if properties.aggregation is not None and properties.hit_policy != HitPolicy.COLLECT:
            raise InvalidTableProperty(
                f"Aggregation {properties.aggregation.value} requires hit policy COLLECT",
                hit_policy=properties.hit_policy.value,
            )
        previous = self._properties
        self._properties = properties
        return previous

    def load(
        self,
        columns: Sequence[Column],
        rules: Sequence[Rule],
        properties: Optional[TableProperties] = None,
    ) -> None:
        """Replace the whole table after checking IDs and cardinality."""
        column_ids = [c.id for c in columns]
        if len(set(column_ids)) != len(column_ids):
            raise DuplicateIdentifier("Duplicate column IDs in loaded table")
        rule_ids = [r.id for r in rules]
        if len(set(rule_ids)) != len(rule_ids):
            raise DuplicateIdentifier("Duplicate rule IDs in loaded table")
        for rule in rules:
            if len(rule.cells) != len(columns):
                raise StructuralMismatch(
                    f"Rule '{rule.id}' has {len(rule.cells)} cells, table has {len(columns)} columns",
                    rule_id=rule.id,
                )
        if properties is not None:
            self.set_properties(properties)
        self._columns = list(columns)
        self._rules = [self._validated_rule(r) for r in rules]
        logger.info("Loaded table: %d columns, %d rules", len(self._columns), len(self._rules))

    def clone(self) -> "DecisionTable":
        """Independent copy sharing the (stateless) validator; used for dry runs."""
        copy = DecisionTable(validator=self._validator, properties=self._properties, decision_id=self.decision_id)
        copy._columns = list(self._columns)
        copy._rules = list(self._rules)
        return copy

    def revalidate(self) -> None:
        """Re-run validation for every cell (e.g. after the validator's settings changed)."""
        for index in range(len(self._columns)):
            self._revalidate_column(index)

    # ---- documents ----

    def to_document(self) -> DecisionTableDocument:
        return DecisionTableDocument(
            id=self.decision_id,
            name=self._properties.name,
            hit_policy=self._properties.hit_policy,
            aggregation=self._properties.aggregation,
            columns=[ColumnDocument(**c.model_dump()) for c in self._columns],
            rules=[RuleDocument(id=r.id, values=r.raw_values()) for r in self._rules],
        )

    @classmethod
    def from_document(
        cls,
        document: DecisionTableDocument,
        validator: Optional[CellValidator] = None,
    ) -> "DecisionTable":
        table = cls(validator=validator, decision_id=document.id)
        table.load(*columns_and_rules_from_document(document))
        return table

    # ---- internals ----

    def _validated_rule(self, rule: Rule) -> Rule:
        cells = tuple(
            self._validator.validate(column, cell.raw) for column, cell in zip(self._columns, rule.cells)
        )
        return rule.model_copy(update={"cells": cells})

    def _revalidate_column(self, index: int) -> None:
        column = self._columns[index]
        new_rules = []
        for rule in self._rules:
            cell = self._validator.validate(column, rule.cells[index].raw)
            new_rules.append(rule.model_copy(update={"cells": rule.cells[:index] + (cell,) + rule.cells[index + 1:]}))
        self._rules = new_rules


def columns_and_rules_from_document(
    document: DecisionTableDocument,
) -> tuple[list[Column], list[Rule], TableProperties]:
    """Split a document into the arguments of DecisionTable.load."""
    columns = [Column(**c.model_dump()) for c in document.columns]
    rules = [Rule.from_values(r.id, r.values) for r in document.rules]
    properties = TableProperties(
        name=document.name,
        hit_policy=document.hit_policy,
        aggregation=document.aggregation,
    )
    return columns, rules, properties


def _check_index(index: int, upper: int, what: str) -> None:
    if not 0 <= index <= upper:
        raise IndexOutOfRange(f"Index {index} out of range [0, {upper}] for {what}", index=index, upper=upper)
