"""Tests for commands, the command engine and undo/redo."""

import pytest

from shared.schemas import Aggregation, ColumnKind, HitPolicy
from table_editor.errors import DuplicateIdentifier, IndexOutOfRange, StructuralMismatch, UnknownIdentifier
from table_editor.models import Column, DecisionTable, Rule, TableProperties
from table_editor.services.command_engine import CommandEngine
from table_editor.services.commands import (
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


def state_of(table: DecisionTable):
    return (
        table.get_columns(),
        [(r.id, r.raw_values(), tuple(c.status for c in r.cells)) for r in table.get_rules()],
        table.properties,
    )


def sample_commands():
    return [
        InsertRuleCommand(Rule.from_values("r2", ["2", '"b"']), 1),
        InsertColumnCommand(Column(id="note", kind=ColumnKind.ANNOTATION, label="Note"), 2),
        SetCellValueCommand("r2", "note", "second"),
        SetCellValueCommand("r1", "in", "not a number"),
        MoveRuleCommand("r2", 0),
        UpdateColumnCommand("out", label="Result", width=200),
        MoveColumnCommand("in", 1),
        SetTablePropertiesCommand(TableProperties(name="T", hit_policy=HitPolicy.COLLECT, aggregation=Aggregation.COUNT)),
        RemoveColumnCommand("note"),
        RemoveRuleCommand("r1"),
    ]


def test_scenario_insert_undo_redo(engine, table):
    engine.execute(InsertRuleCommand(Rule.from_values("r2", ["2", '"b"']), 1))
    after_insert = state_of(table)
    assert [r.raw_values() for r in table.get_rules()] == [["1", '"a"'], ["2", '"b"']]

    engine.undo()
    assert [r.raw_values() for r in table.get_rules()] == [["1", '"a"']]

    engine.redo()
    assert state_of(table) == after_insert


def test_undo_all_restores_original(engine, table):
    original = state_of(table)
    commands = sample_commands()
    for command in commands:
        engine.execute(command)
    for _ in commands:
        assert engine.undo() is not None
    assert state_of(table) == original
    assert engine.undo() is None


@pytest.mark.parametrize("count", range(1, len(sample_commands()) + 1))
def test_undo_then_redo_restores_post_command_state(engine, table, count):
    for command in sample_commands()[:count]:
        engine.execute(command)
        after = state_of(table)
        engine.undo()
        engine.redo()
        assert state_of(table) == after


def test_redo_all_after_undo_all(engine, table):
    for command in sample_commands():
        engine.execute(command)
    final = state_of(table)
    while engine.can_undo():
        engine.undo()
    while engine.can_redo():
        engine.redo()
    assert state_of(table) == final


def test_cardinality_invariant_after_every_step(engine, table):
    def check(_event):
        for rule in table.get_rules():
            assert len(rule.cells) == table.column_count

    engine.changed.connect(check)
    for command in sample_commands():
        engine.execute(command)
    while engine.undo():
        pass


def test_execute_clears_redo_stack(engine):
    engine.execute(SetCellValueCommand("r1", "in", "5"))
    engine.undo()
    assert engine.can_redo()
    engine.execute(SetCellValueCommand("r1", "in", "6"))
    assert not engine.can_redo()
    assert engine.redo() is None


def test_failed_command_leaves_everything_untouched(engine, table):
    engine.execute(SetCellValueCommand("r1", "in", "5"))
    engine.undo()
    before = state_of(table)
    stack = engine.state()
    events = []
    engine.changed.connect(events.append)

    with pytest.raises(StructuralMismatch):
        engine.execute(InsertRuleCommand(Rule.from_values("bad", ["only one"]), 0))
    with pytest.raises(UnknownIdentifier):
        engine.execute(SetCellValueCommand("missing", "in", "1"))
    with pytest.raises(IndexOutOfRange):
        engine.execute(MoveRuleCommand("r1", 4))

    assert state_of(table) == before
    assert engine.state() == stack
    assert events == []


def test_changed_event_carries_affected_ids(engine):
    events = []
    engine.changed.connect(events.append)
    event = engine.execute(SetCellValueCommand("r1", "out", '"z"'))
    assert events == [event]
    assert event.action == "execute"
    assert event.affected_rule_ids == ("r1",)
    assert event.affected_column_ids == ("out",)
    assert not event.structural

    undo_event = engine.undo()
    assert undo_event.action == "undo"
    assert undo_event.affected_rule_ids == ("r1",)


def test_subscribers_called_in_registration_order(engine):
    calls = []
    engine.changed.connect(lambda e: calls.append("first"))
    engine.changed.connect(lambda e: calls.append("second"))
    engine.stack_changed.connect(lambda s: calls.append("stack"))
    engine.execute(SetCellValueCommand("r1", "in", "3"))
    assert calls == ["first", "second", "stack"]


def test_unsubscribe(engine):
    calls = []
    unsubscribe = engine.changed.connect(calls.append)
    unsubscribe()
    engine.execute(SetCellValueCommand("r1", "in", "3"))
    assert calls == []


def test_stack_state(engine):
    assert engine.state().can_undo is False
    engine.execute(UpdateColumnCommand("in", width=300))
    state = engine.state()
    assert state.can_undo and not state.can_redo
    assert state.undo_label == "resize column"
    engine.undo()
    assert engine.state().redo_label == "resize column"


def test_undo_limit_drops_oldest(table):
    engine = CommandEngine(table, undo_limit=2)
    for value in ("2", "3", "4"):
        engine.execute(SetCellValueCommand("r1", "in", value))
    assert engine.undo() is not None
    assert engine.undo() is not None
    assert engine.undo() is None
    assert table.get_cell("r1", "in").raw == "2"


def test_load_table_clears_stacks(engine, table):
    engine.execute(SetCellValueCommand("r1", "in", "9"))
    events = []
    engine.changed.connect(events.append)
    engine.load_table([Column(id="x", kind=ColumnKind.INPUT)], [Rule.from_values("a", ["1"])])
    assert not engine.can_undo() and not engine.can_redo()
    assert events[0].action == "load"
    assert [c.id for c in table.get_columns()] == ["x"]


def test_macro_is_one_undo_step(engine, table):
    original = state_of(table)
    macro = MacroCommand(
        [
            InsertRuleCommand(Rule.from_values("r2", ["2", '"b"']), 1),
            InsertRuleCommand(Rule.from_values("r3", ["3", '"c"']), 2),
            RemoveRuleCommand("r1"),
        ],
        label="batch",
    )
    event = engine.execute(macro)
    assert set(event.affected_rule_ids) == {"r1", "r2", "r3"}
    assert [r.id for r in table.get_rules()] == ["r2", "r3"]
    engine.undo()
    assert state_of(table) == original


def test_macro_rejected_before_any_step_runs(engine, table):
    before = state_of(table)
    events = []
    engine.changed.connect(events.append)
    macro = MacroCommand(
        [
            InsertRuleCommand(Rule.from_values("r2", ["2", '"b"']), 1),
            InsertRuleCommand(Rule.from_values("r2", ["3", '"c"']), 2),
        ]
    )
    with pytest.raises(DuplicateIdentifier):
        engine.execute(macro)
    assert state_of(table) == before
    assert not engine.can_undo()
    assert events == []


def test_macro_rolls_back_prefix_when_execution_fails(table):
    """A failure the dry run cannot see still leaves the table unchanged."""

    class Flaky(SetCellValueCommand):
        def validate(self, table):
            pass

        def execute(self, table):
            if not getattr(table, "is_scratch", False):
                raise RuntimeError("boom")
            return super().execute(table)

    original_clone = table.clone

    def scratch_clone():
        copy = original_clone()
        copy.is_scratch = True
        return copy

    table.clone = scratch_clone
    engine = CommandEngine(table)
    before = state_of(table)
    macro = MacroCommand(
        [
            SetCellValueCommand("r1", "in", "7"),
            InsertRuleCommand(Rule.from_values("r2", ["2", '"b"']), 1),
            Flaky("r1", "out", '"x"'),
        ]
    )
    with pytest.raises(RuntimeError):
        engine.execute(macro)
    assert state_of(table) == before
    assert not engine.can_undo()


def test_remove_column_undo_restores_cells_and_position(engine, table):
    engine.execute(SetCellValueCommand("r1", "out", "invalid text"))
    before = state_of(table)
    engine.execute(RemoveColumnCommand("out"))
    engine.execute(InsertRuleCommand(Rule.from_values("r2", ["2"]), 1))
    engine.undo()
    engine.undo()
    assert state_of(table) == before
