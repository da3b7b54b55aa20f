"""Shared schemas and types for the decision table editor (core and HTTP contract)."""

from shared.schemas.decision_table import (
    Aggregation,
    ColumnDocument,
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
    RuleDocument,
    SetCellRequest,
    SetPropertiesRequest,
    UpdateColumnRequest,
)

__all__ = [
    "Aggregation",
    "ColumnDocument",
    "ColumnKind",
    "CommandRequest",
    "DecisionTableDocument",
    "HitPolicy",
    "InsertColumnRequest",
    "InsertRuleRequest",
    "MoveColumnRequest",
    "MoveRuleRequest",
    "RemoveColumnRequest",
    "RemoveRuleRequest",
    "ResizeColumnRequest",
    "RuleDocument",
    "SetCellRequest",
    "SetPropertiesRequest",
    "UpdateColumnRequest",
]
