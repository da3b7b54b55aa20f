"""Result type returned by the editor facade."""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from table_editor.errors import ErrorKind, TableEditError


class ResultStatus(str, Enum):
    SUCCESS = "success"
    NOOP = "noop"
    FAILURE = "failure"


class Result(BaseModel):
    """Outcome of a facade operation: the core raises, the facade reports."""

    status: ResultStatus
    value: Any = Field(None, description="Operation result (event, session, id, ...)")
    error_kind: Optional[ErrorKind] = None
    detail: Optional[str] = Field(None, description="Human readable reason for NOOP or FAILURE")

    model_config = {"arbitrary_types_allowed": True}

    @property
    def ok(self) -> bool:
        return self.status != ResultStatus.FAILURE

    @classmethod
    def success(cls, value: Any = None) -> "Result":
        return cls(status=ResultStatus.SUCCESS, value=value)

    @classmethod
    def noop(cls, detail: str, error_kind: Optional[ErrorKind] = None) -> "Result":
        return cls(status=ResultStatus.NOOP, error_kind=error_kind, detail=detail)

    @classmethod
    def failure(cls, error: TableEditError) -> "Result":
        return cls(status=ResultStatus.FAILURE, error_kind=error.kind, detail=error.message)
