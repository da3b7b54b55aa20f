"""
In-memory editing sessions for the HTTP layer: one TableEditor per open table.

Nothing is persisted; a restart drops every session. Sync routes run in a
threadpool, so each table has its own lock and every request that touches an
editor holds it (see editing()).
"""

import logging
import threading
from collections import Counter
from contextlib import contextmanager
from typing import Iterator, Optional

from shared.schemas import DecisionTableDocument
from table_editor.config import EditorSettings
from table_editor.errors import DuplicateIdentifier, UnknownIdentifier
from table_editor.services.editor import TableEditor, create_editor
from table_editor.services.results import Result

logger = logging.getLogger(__name__)


class EditorSessionStore:
    def __init__(self, settings: Optional[EditorSettings] = None):
        self.settings = settings or EditorSettings.from_env()
        self._editors: dict[str, TableEditor] = {}
        self._locks: dict[str, threading.RLock] = {}
        # guards the two dicts and the counters, never held while editing
        self._lock = threading.Lock()
        self.counters: Counter[str] = Counter()

    def __len__(self) -> int:
        return len(self._editors)

    def ids(self) -> list[str]:
        with self._lock:
            return list(self._editors)

    def open(self, document: DecisionTableDocument) -> TableEditor:
        editor = create_editor(self.settings)
        editor.load(document)
        with self._lock:
            if document.id in self._editors:
                raise DuplicateIdentifier(f"Table '{document.id}' is already open", table_id=document.id)
            self._editors[document.id] = editor
            self._locks[document.id] = threading.RLock()
            self.counters["tables_opened"] += 1
        logger.info("Opened table %s (%d rules)", document.id, len(document.rules))
        return editor

    def get(self, table_id: str) -> TableEditor:
        with self._lock:
            editor = self._editors.get(table_id)
        if editor is None:
            raise UnknownIdentifier(f"Table '{table_id}' is not open", table_id=table_id)
        return editor

    @contextmanager
    def editing(self, table_id: str) -> Iterator[TableEditor]:
        """Hold the table's lock for the duration of the block."""
        with self._lock:
            lock = self._locks.get(table_id)
        if lock is None:
            raise UnknownIdentifier(f"Table '{table_id}' is not open", table_id=table_id)
        with lock:
            # closed while this request waited for the lock
            yield self.get(table_id)

    def close(self, table_id: str) -> DecisionTableDocument:
        with self.editing(table_id) as editor:
            document = editor.viewer.to_document()
            with self._lock:
                del self._editors[table_id]
                del self._locks[table_id]
                self.counters["tables_closed"] += 1
        return document

    def record(self, result: Result) -> Result:
        """Count a facade result by status (for /api/metrics)."""
        with self._lock:
            self.counters[f"results_{result.status.value}"] += 1
        return result

    def clear(self) -> None:
        with self._lock:
            self._editors.clear()
            self._locks.clear()
            self.counters.clear()


_store: Optional[EditorSessionStore] = None
_store_lock = threading.Lock()


def get_session_store() -> EditorSessionStore:
    """FastAPI dependency: process-wide session store."""
    global _store
    if _store is None:
        with _store_lock:
            if _store is None:
                _store = EditorSessionStore()
    return _store
