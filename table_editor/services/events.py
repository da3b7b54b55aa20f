"""Typed synchronous signals and the payloads they carry."""

import logging
from typing import Callable, Generic, Iterable, Optional, TypeVar

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Signal(Generic[T]):
    """
    One event per concern. Subscribers run synchronously, inside emit(), in
    registration order. An exception in a subscriber propagates to the emitter.
    """

    def __init__(self, name: str):
        self.name = name
        self._subscribers: list[Callable[[T], None]] = []

    def connect(self, callback: Callable[[T], None]) -> Callable[[], None]:
        """Subscribe; returns a callable that unsubscribes."""
        self._subscribers.append(callback)
        return lambda: self.disconnect(callback)

    def disconnect(self, callback: Callable[[T], None]) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def emit(self, payload: T) -> None:
        for callback in list(self._subscribers):
            callback(payload)

    def __len__(self) -> int:
        return len(self._subscribers)


class ChangeScope(BaseModel):
    """Rules and columns a command touched, and whether the shape changed."""

    rule_ids: tuple[str, ...] = ()
    column_ids: tuple[str, ...] = ()
    structural: bool = False

    model_config = {"frozen": True}

    @classmethod
    def of(
        cls,
        rule_ids: Iterable[str] = (),
        column_ids: Iterable[str] = (),
        structural: bool = False,
    ) -> "ChangeScope":
        return cls(rule_ids=tuple(rule_ids), column_ids=tuple(column_ids), structural=structural)

    def merge(self, other: "ChangeScope") -> "ChangeScope":
        return ChangeScope(
            rule_ids=_unique(self.rule_ids + other.rule_ids),
            column_ids=_unique(self.column_ids + other.column_ids),
            structural=self.structural or other.structural,
        )


class TableChanged(BaseModel):
    """Payload of CommandEngine.changed."""

    action: str = Field(..., description="execute, undo, redo or load")
    label: str = Field("", description="Label of the command involved")
    affected_rule_ids: tuple[str, ...] = ()
    affected_column_ids: tuple[str, ...] = ()
    structural: bool = Field(False, description="Rules or columns were added, removed or moved")

    model_config = {"frozen": True}

    @classmethod
    def from_scope(cls, action: str, label: str, scope: ChangeScope) -> "TableChanged":
        return cls(
            action=action,
            label=label,
            affected_rule_ids=scope.rule_ids,
            affected_column_ids=scope.column_ids,
            structural=scope.structural,
        )


class CommandStackState(BaseModel):
    """Payload of CommandEngine.stack_changed."""

    can_undo: bool = False
    can_redo: bool = False
    undo_label: Optional[str] = None
    redo_label: Optional[str] = None
    undo_depth: int = 0
    redo_depth: int = 0

    model_config = {"frozen": True}


def _unique(ids: tuple[str, ...]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(ids))
