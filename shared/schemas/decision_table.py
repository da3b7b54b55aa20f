"""
Decision table document schema and command contract (Pydantic models).

Used by the editing core (bulk load / export) and by the HTTP layer
(request and response bodies). Cell values are raw expression text.
"""

from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field


class ColumnKind(str, Enum):
    """Role of a column in the decision table."""

    INPUT = "input"
    OUTPUT = "output"
    ANNOTATION = "annotation"


class HitPolicy(str, Enum):
    """DMN hit policy of the table."""

    UNIQUE = "UNIQUE"
    FIRST = "FIRST"
    PRIORITY = "PRIORITY"
    ANY = "ANY"
    COLLECT = "COLLECT"
    RULE_ORDER = "RULE ORDER"
    OUTPUT_ORDER = "OUTPUT ORDER"


class Aggregation(str, Enum):
    """Aggregation applied by the COLLECT hit policy."""

    SUM = "SUM"
    MIN = "MIN"
    MAX = "MAX"
    COUNT = "COUNT"


class ColumnDocument(BaseModel):
    """Serialized column (input clause, output clause or annotation)."""

    id: str = Field(..., description="Unique column ID")
    kind: ColumnKind = Field(..., description="input, output or annotation")
    label: str = Field("", description="Display label")
    type_ref: Optional[str] = Field(None, description="Declared value type (e.g. 'number', 'date')")
    expression_language: Optional[str] = Field(
        None,
        description="Expression language; None means the default for the column kind",
    )
    width: Optional[int] = Field(None, ge=1, description="Column width in pixels; None means automatic")


class RuleDocument(BaseModel):
    """Serialized rule: one raw value per column, in column order."""

    id: str = Field(..., description="Unique rule ID")
    values: list[str] = Field(default_factory=list, description="Raw cell text, one entry per column")


class DecisionTableDocument(BaseModel):
    """Full decision table as handed over by the import/export layer."""

    id: str = Field(..., description="Decision ID")
    name: str = Field("", description="Decision name")
    hit_policy: HitPolicy = Field(HitPolicy.UNIQUE, description="Hit policy")
    aggregation: Optional[Aggregation] = Field(None, description="Aggregation (COLLECT only)")
    columns: list[ColumnDocument] = Field(default_factory=list, description="Ordered columns")
    rules: list[RuleDocument] = Field(default_factory=list, description="Ordered rules")

    model_config = {"extra": "allow"}


# -----------------------------------------------------------------------------
# Command requests (HTTP layer -> editor facade)
# -----------------------------------------------------------------------------


class InsertRuleRequest(BaseModel):
    op: Literal["insert_rule"] = "insert_rule"
    index: Optional[int] = Field(None, description="Target index; None appends")
    rule_id: Optional[str] = Field(None, description="Rule ID; generated when omitted")
    values: Optional[list[str]] = Field(None, description="Raw values in column order; defaults when omitted")


class RemoveRuleRequest(BaseModel):
    op: Literal["remove_rule"] = "remove_rule"
    rule_ids: list[str] = Field(..., min_length=1)


class InsertColumnRequest(BaseModel):
    op: Literal["insert_column"] = "insert_column"
    kind: ColumnKind = ColumnKind.INPUT
    index: Optional[int] = Field(None, description="Target index; None appends to the kind's block")
    column_id: Optional[str] = None
    label: str = ""
    type_ref: Optional[str] = None
    expression_language: Optional[str] = None


class RemoveColumnRequest(BaseModel):
    op: Literal["remove_column"] = "remove_column"
    column_id: str


class MoveRuleRequest(BaseModel):
    op: Literal["move_rule"] = "move_rule"
    source_index: int
    target_index: int


class MoveColumnRequest(BaseModel):
    op: Literal["move_column"] = "move_column"
    source_index: int
    target_index: int


class SetCellRequest(BaseModel):
    op: Literal["set_cell"] = "set_cell"
    rule_id: str
    column_id: str
    value: str


class UpdateColumnRequest(BaseModel):
    op: Literal["update_column"] = "update_column"
    column_id: str
    label: Optional[str] = None
    type_ref: Optional[str] = None
    expression_language: Optional[str] = None


class ResizeColumnRequest(BaseModel):
    op: Literal["resize_column"] = "resize_column"
    column_id: str
    width: int


class SetPropertiesRequest(BaseModel):
    op: Literal["set_properties"] = "set_properties"
    name: Optional[str] = None
    hit_policy: Optional[HitPolicy] = None
    aggregation: Optional[Aggregation] = None


CommandRequest = Annotated[
    Union[
        InsertRuleRequest,
        RemoveRuleRequest,
        InsertColumnRequest,
        RemoveColumnRequest,
        MoveRuleRequest,
        MoveColumnRequest,
        SetCellRequest,
        UpdateColumnRequest,
        ResizeColumnRequest,
        SetPropertiesRequest,
    ],
    Field(discriminator="op"),
]
