"""Unit tests for the DecisionTable model."""

import pytest

from shared.schemas import Aggregation, ColumnKind, HitPolicy
from table_editor.errors import (
    DuplicateIdentifier,
    IndexOutOfRange,
    InvalidTableProperty,
    StructuralMismatch,
    UnknownIdentifier,
)
from table_editor.models import CellStatus, Column, DecisionTable, Rule, TableProperties


def snapshot(table: DecisionTable):
    return (
        table.get_columns(),
        [(r.id, r.raw_values()) for r in table.get_rules()],
        table.properties,
    )


def test_queries(table):
    assert [c.id for c in table.get_columns()] == ["in", "out"]
    assert table.get_rule("r1").raw_values() == ["1", '"a"']
    assert table.get_cell("r1", "in").parsed == 1
    assert table.get_cell("r1", "out").parsed == "a"
    assert table.column_index("out") == 1
    assert table.rule_index("r1") == 0


def test_unknown_ids_raise(table):
    with pytest.raises(UnknownIdentifier):
        table.get_rule("nope")
    with pytest.raises(UnknownIdentifier):
        table.get_cell("r1", "nope")
    with pytest.raises(UnknownIdentifier):
        table.remove_column("nope")


def test_query_results_are_immutable(table):
    rule = table.get_rule("r1")
    with pytest.raises(Exception):
        rule.id = "changed"
    assert isinstance(table.get_rules(), tuple)


def test_insert_column_adds_default_cell_to_every_rule(table):
    table.insert_column(Column(id="note", kind=ColumnKind.ANNOTATION), 2)
    assert table.column_count == 3
    assert table.get_cell("r1", "note").raw == ""
    assert all(len(r.cells) == table.column_count for r in table.get_rules())


def test_insert_column_rejects_duplicate_and_bad_index(table):
    before = snapshot(table)
    with pytest.raises(DuplicateIdentifier):
        table.insert_column(Column(id="in", kind=ColumnKind.INPUT), 0)
    with pytest.raises(IndexOutOfRange):
        table.insert_column(Column(id="x", kind=ColumnKind.INPUT), 3)
    with pytest.raises(IndexOutOfRange):
        table.insert_column(Column(id="x", kind=ColumnKind.INPUT), -1)
    assert snapshot(table) == before


def test_insert_then_remove_column_is_identity(five_rule_table):
    before = snapshot(five_rule_table)
    five_rule_table.insert_column(Column(id="x", kind=ColumnKind.INPUT, type_ref="number"), 1)
    removed = five_rule_table.remove_column(five_rule_table.get_columns()[1].id)
    assert removed.index == 1
    assert snapshot(five_rule_table) == before


def test_remove_column_returns_excised_cells(table):
    removed = table.remove_column("out")
    assert removed.column.id == "out"
    assert removed.cells["r1"].raw == '"a"'
    assert table.get_rule("r1").raw_values() == ["1"]
    table.insert_column(removed.column, removed.index, cells=removed.cells)
    assert table.get_rule("r1").raw_values() == ["1", '"a"']


def test_insert_rule_cardinality_checked_before_mutation(table):
    with pytest.raises(StructuralMismatch):
        table.insert_rule(Rule.from_values("r2", ["2"]), 1)
    assert table.rule_count == 1


def test_insert_rule_duplicate_and_range(table):
    with pytest.raises(DuplicateIdentifier):
        table.insert_rule(Rule.from_values("r1", ["2", '"b"']), 0)
    with pytest.raises(IndexOutOfRange):
        table.insert_rule(Rule.from_values("r2", ["2", '"b"']), 2)
    table.insert_rule(Rule.from_values("r2", ["2", '"b"']), 1)
    assert [r.id for r in table.get_rules()] == ["r1", "r2"]


def test_move_rule_preserves_cells(five_rule_table):
    cells_before = {r.id: r.cells for r in five_rule_table.get_rules()}
    from_index = five_rule_table.move_rule("r2", 0)
    assert from_index == 2
    assert [r.id for r in five_rule_table.get_rules()] == ["r2", "r0", "r1", "r3", "r4"]
    for rule in five_rule_table.get_rules():
        assert rule.cells == cells_before[rule.id]


def test_move_out_of_range(five_rule_table):
    with pytest.raises(IndexOutOfRange):
        five_rule_table.move_rule("r0", 5)
    with pytest.raises(IndexOutOfRange):
        five_rule_table.move_column("in", 2)


def test_move_column_reorders_cells(table):
    table.move_column("out", 0)
    assert [c.id for c in table.get_columns()] == ["out", "in"]
    assert table.get_rule("r1").raw_values() == ['"a"', "1"]
    assert table.get_cell("r1", "in").raw == "1"


def test_set_cell_value_never_raises_on_invalid_text(registry):
    table = DecisionTable(validator=registry)
    table.load([Column(id="d", kind=ColumnKind.INPUT, type_ref="date")], [Rule.from_values("r", [""])])
    previous = table.set_cell_value("r", "d", 'date("31.12.2020")')
    assert previous == ""
    cell = table.get_cell("r", "d")
    assert cell.status == CellStatus.INVALID
    assert cell.raw == 'date("31.12.2020")'
    assert cell.reason


def test_update_column_type_revalidates(table):
    table.set_cell_value("r1", "in", '"abc"')
    assert not table.get_cell("r1", "in").is_valid
    previous = table.update_column("in", type_ref="string", label="Name")
    assert previous.type_ref == "number"
    assert table.get_cell("r1", "in").parsed == "abc"
    table.update_column("in", type_ref="boolean")
    assert table.get_cell("r1", "in").status == CellStatus.INVALID
    table.update_column("in", expression_language="juel")
    assert table.get_cell("r1", "in").is_valid


def test_update_column_rejects_unknown_attribute_and_bad_width(table):
    with pytest.raises(InvalidTableProperty):
        table.update_column("in", kind=ColumnKind.OUTPUT)
    with pytest.raises(InvalidTableProperty):
        table.update_column("in", width=0)


def test_aggregation_requires_collect(table):
    with pytest.raises(InvalidTableProperty):
        table.set_properties(TableProperties(hit_policy=HitPolicy.UNIQUE, aggregation=Aggregation.SUM))
    previous = table.set_properties(TableProperties(hit_policy=HitPolicy.COLLECT, aggregation=Aggregation.SUM))
    assert previous.hit_policy == HitPolicy.UNIQUE
    assert table.properties.aggregation == Aggregation.SUM


def test_load_rejects_mismatch_and_duplicates(table):
    before = snapshot(table)
    columns = [Column(id="a", kind=ColumnKind.INPUT)]
    with pytest.raises(StructuralMismatch):
        table.load(columns, [Rule.from_values("x", ["1", "2"])])
    with pytest.raises(DuplicateIdentifier):
        table.load(columns, [Rule.from_values("x", ["1"]), Rule.from_values("x", ["2"])])
    with pytest.raises(DuplicateIdentifier):
        table.load(columns + columns, [])
    assert snapshot(table) == before


def test_clone_is_independent(table):
    copy = table.clone()
    copy.remove_rule("r1")
    assert table.rule_count == 1
    assert copy.rule_count == 0


def test_document_round_trip(table):
    document = table.to_document()
    assert document.rules[0].values == ["1", '"a"']
    restored = DecisionTable.from_document(document, validator=table.validator)
    assert snapshot(restored) == snapshot(table)


def test_invalid_cells_listed(table):
    table.set_cell_value("r1", "out", "42")
    invalid = table.invalid_cells()
    assert [(rule_id, column_id) for rule_id, column_id, _ in invalid] == [("r1", "out")]
