"""
Expression languages available to the editor and their defaults.

Defaults are resolved per component ('editor', 'inputCell', 'outputCell'):
the structured `defaults` mapping wins, the legacy
default_input/default_output settings are the fallback, FEEL is last.
"""

import logging
from typing import Optional

from shared.schemas import ColumnKind
from table_editor.config import (
    DEFAULT_OPTIONS,
    FEEL,
    ExpressionLanguage,
    ExpressionLanguagesConfig,
)

logger = logging.getLogger(__name__)

COMPONENT_EDITOR = "editor"
COMPONENT_INPUT_CELL = "inputCell"
COMPONENT_OUTPUT_CELL = "outputCell"


class ExpressionLanguages:
    """Lookup of expression language options and defaults."""

    def __init__(
        self,
        config: Optional[ExpressionLanguagesConfig] = None,
        default_input_expression_language: Optional[str] = None,
        default_output_expression_language: Optional[str] = None,
    ):
        config = config or ExpressionLanguagesConfig()
        self._options = list(config.options) or list(DEFAULT_OPTIONS)
        self._defaults = dict(config.defaults)
        self._legacy_defaults = {
            COMPONENT_INPUT_CELL: default_input_expression_language,
            COMPONENT_OUTPUT_CELL: default_output_expression_language,
        }
        if any(self._legacy_defaults.values()):
            logger.debug("Using legacy expression language defaults: %s", self._legacy_defaults)

    def get_all(self) -> list[ExpressionLanguage]:
        return list(self._options)

    def get_label(self, value: str) -> str:
        for option in self._options:
            if option.value == value:
                return option.label
        return value

    def get_default(self, component: str = COMPONENT_EDITOR) -> ExpressionLanguage:
        value = self._defaults.get(component) or self._legacy_defaults.get(component) or FEEL
        return ExpressionLanguage(value=value, label=self.get_label(value))

    def default_for_kind(self, kind: ColumnKind) -> str:
        if kind == ColumnKind.INPUT:
            return self.get_default(COMPONENT_INPUT_CELL).value
        if kind == ColumnKind.OUTPUT:
            return self.get_default(COMPONENT_OUTPUT_CELL).value
        return self.get_default(COMPONENT_EDITOR).value

    def effective_language(self, expression_language: Optional[str], kind: ColumnKind) -> str:
        """Language a column's cells are written in."""
        return (expression_language or self.default_for_kind(kind)).lower()
