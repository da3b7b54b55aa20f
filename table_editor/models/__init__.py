"""
Decision table editing model.

The table structure (columns, rules, cells) and its validate-then-apply
mutations. For the serialized document contract, see shared.schemas.
"""

from table_editor.models.decision_table import (
    COLUMN_ATTRIBUTES,
    Cell,
    CellRef,
    CellStatus,
    CellValidator,
    Column,
    DecisionTable,
    RemovedColumn,
    Rule,
    TableProperties,
    columns_and_rules_from_document,
    generate_id,
)

__all__ = [
    "COLUMN_ATTRIBUTES",
    "Cell",
    "CellRef",
    "CellStatus",
    "CellValidator",
    "Column",
    "DecisionTable",
    "RemovedColumn",
    "Rule",
    "TableProperties",
    "columns_and_rules_from_document",
    "generate_id",
]
