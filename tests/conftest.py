"""
Pytest fixtures for table editor tests.

The API client gets a fresh in-memory session store per test through
app.dependency_overrides.
"""

import pytest
from fastapi.testclient import TestClient

from shared.schemas import ColumnKind
from table_editor.main import app
from table_editor.models import Column, DecisionTable, Rule
from table_editor.services.cell_editors import CellEditorRegistry
from table_editor.services.command_engine import CommandEngine
from table_editor.services.editor import create_editor
from table_editor.services.selection import Selection
from table_editor.services.session_store import EditorSessionStore, get_session_store
from table_editor.config import EditorSettings


@pytest.fixture
def registry():
    return CellEditorRegistry()


@pytest.fixture
def table(registry):
    """Columns [in:number, out:string] with one rule {in: 1, out: "a"}."""
    t = DecisionTable(validator=registry)
    t.load(
        [
            Column(id="in", kind=ColumnKind.INPUT, label="In", type_ref="number"),
            Column(id="out", kind=ColumnKind.OUTPUT, label="Out", type_ref="string"),
        ],
        [Rule.from_values("r1", ["1", '"a"'])],
    )
    return t


@pytest.fixture
def engine(table):
    return CommandEngine(table)


@pytest.fixture
def five_rule_table(registry):
    t = DecisionTable(validator=registry)
    t.load(
        [
            Column(id="in", kind=ColumnKind.INPUT, type_ref="number"),
            Column(id="out", kind=ColumnKind.OUTPUT, type_ref="string"),
        ],
        [Rule.from_values(f"r{i}", [str(i), f'"v{i}"']) for i in range(5)],
    )
    return t


@pytest.fixture
def grid(registry):
    """3 rules x 3 columns with a wired selection: (table, engine, selection)."""
    t = DecisionTable(validator=registry)
    t.load(
        [
            Column(id="a", kind=ColumnKind.INPUT, type_ref="number"),
            Column(id="b", kind=ColumnKind.INPUT, type_ref="number"),
            Column(id="c", kind=ColumnKind.OUTPUT, type_ref="string"),
        ],
        [Rule.from_values(f"r{i}", [str(i), str(i * 10), f'"{i}"']) for i in range(3)],
    )
    e = CommandEngine(t)
    s = Selection(t)
    e.changed.connect(s.on_table_changed)
    return t, e, s


@pytest.fixture
def editor(scenario_document):
    return create_editor(EditorSettings(), document=scenario_document)


@pytest.fixture
def scenario_document():
    from shared.schemas import ColumnDocument, DecisionTableDocument, RuleDocument

    return DecisionTableDocument(
        id="scenario",
        name="Scenario",
        columns=[
            ColumnDocument(id="in", kind=ColumnKind.INPUT, label="In", type_ref="number"),
            ColumnDocument(id="out", kind=ColumnKind.OUTPUT, label="Out", type_ref="string"),
        ],
        rules=[RuleDocument(id="r1", values=["1", '"a"'])],
    )


@pytest.fixture
def client():
    """FastAPI TestClient with an isolated session store."""
    store = EditorSessionStore(EditorSettings())
    app.dependency_overrides[get_session_store] = lambda: store
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
