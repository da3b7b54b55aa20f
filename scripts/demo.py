#!/usr/bin/env python3
"""
Walk through a short editing session on a two-column decision table.

Usage (from project root):
  python scripts/demo.py

Output: the table after each step, plus undo/redo state.
"""
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def print_table(editor, title: str) -> None:
    columns = editor.viewer.get_columns()
    rules = editor.viewer.get_rules()
    widths = [max(12, len(c.label) + 2) for c in columns]
    print(f"== {title}")
    print("  # | " + " | ".join(f"{c.label:<{w}}" for c, w in zip(columns, widths)))
    print("----+-" + "-+-".join("-" * w for w in widths))
    for i, rule in enumerate(rules, 1):
        cells = []
        for cell, w in zip(rule.cells, widths):
            text = cell.raw if cell.is_valid else f"{cell.raw} (!)"
            cells.append(f"{text:<{w}}")
        print(f"{i:>3} | " + " | ".join(cells))
    state = editor.engine.state()
    print(f"    undo: {state.undo_label or '-'}  redo: {state.redo_label or '-'}")
    active = editor.selection.get_active_cell()
    if active:
        print(f"    selected: {active.rule_id}/{active.column_id}")
    print()


def main() -> None:
    from shared.schemas import ColumnDocument, ColumnKind, DecisionTableDocument, HitPolicy, RuleDocument
    from table_editor.services.editor import create_editor

    document = DecisionTableDocument(
        id="discount",
        name="Discount",
        hit_policy=HitPolicy.UNIQUE,
        columns=[
            ColumnDocument(id="age", kind=ColumnKind.INPUT, label="Age", type_ref="number"),
            ColumnDocument(id="discount", kind=ColumnKind.OUTPUT, label="Discount", type_ref="string"),
        ],
        rules=[
            RuleDocument(id="r1", values=["< 18", '"junior"']),
            RuleDocument(id="r2", values=[">= 65", '"senior"']),
        ],
    )
    editor = create_editor(document=document)
    print_table(editor, "Loaded")

    editor.add_rule(index=1, values=["[18..64]", '"none"'], rule_id="r3")
    print_table(editor, "Inserted rule at index 1")

    editor.set_cell("r3", "discount", "0")
    print_table(editor, "Number in a string column is kept but marked invalid")

    editor.undo()
    print_table(editor, "Undo")

    editor.undo()
    print_table(editor, "Undo again")

    editor.redo()
    print_table(editor, "Redo")

    editor.selection.move_to("r3", "age")
    editor.remove_rules(["r3"])
    print_table(editor, "Removed the selected rule")

    result = editor.add_rule(values=["1"])
    print(f"Rule with one value for two columns: {result.status.value} ({result.detail})")


if __name__ == "__main__":
    main()
