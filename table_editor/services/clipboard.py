"""Copy, cut and paste of whole rules."""

import logging
from typing import Optional, Sequence

from table_editor.errors import UnknownIdentifier
from table_editor.models import Rule, generate_id
from table_editor.services.command_engine import CommandEngine
from table_editor.services.commands import InsertRuleCommand, MacroCommand, RemoveRuleCommand
from table_editor.services.events import TableChanged

logger = logging.getLogger(__name__)


class RuleClipboard:
    """
    Holds copied rules as column id -> raw value mappings, so a paste still
    lines up after columns were added, removed or reordered. Columns missing
    from a copied rule get their default value.
    """

    def __init__(self, engine: CommandEngine):
        self.engine = engine
        self._entries: list[dict[str, str]] = []

    @property
    def is_empty(self) -> bool:
        return not self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def copy(self, rule_ids: Sequence[str]) -> int:
        table = self.engine.table
        columns = table.get_columns()
        entries = []
        for rule_id in rule_ids:
            rule = table.get_rule(rule_id)
            entries.append({c.id: cell.raw for c, cell in zip(columns, rule.cells)})
        self._entries = entries
        logger.debug("Copied %d rule(s)", len(entries))
        return len(entries)

    def cut(self, rule_ids: Sequence[str]) -> TableChanged:
        """Copy, then remove the rules as one undo step."""
        for rule_id in rule_ids:
            if not self.engine.table.has_rule(rule_id):
                raise UnknownIdentifier(f"Rule '{rule_id}' does not exist", rule_id=rule_id)
        self.copy(rule_ids)
        return self.engine.execute(
            MacroCommand([RemoveRuleCommand(r) for r in rule_ids], label="cut rules")
        )

    def paste(self, index: Optional[int] = None) -> Optional[TableChanged]:
        """Insert fresh copies (new IDs) at index, default at the end. None when empty."""
        if not self._entries:
            return None
        table = self.engine.table
        index = table.rule_count if index is None else index
        columns = table.get_columns()
        commands = []
        for offset, entry in enumerate(self._entries):
            values = [entry.get(c.id, table.validator.default_raw(c)) for c in columns]
            rule = Rule.from_values(generate_id("rule"), values)
            commands.append(InsertRuleCommand(rule, index + offset))
        return self.engine.execute(MacroCommand(commands, label="paste rules"))
