"""
Editor configuration.

Environment variables (all optional):
- TABLE_EDITOR_UNDO_LIMIT: max undo depth (empty or 0 = unbounded)
- TABLE_EDITOR_MIN_COLUMN_WIDTH: minimum column width in pixels (default 125)
- TABLE_EDITOR_SIMPLE_MODE: 1/0, typed simple editors on or off (default 1)
- TABLE_EDITOR_DEFAULT_INPUT_LANGUAGE / TABLE_EDITOR_DEFAULT_OUTPUT_LANGUAGE:
  legacy expression language defaults for input/output cells
- TABLE_EDITOR_LOG_LEVEL: see table_editor.utils.logging
"""

import os
from typing import Optional

from pydantic import BaseModel, Field

DEFAULT_MIN_COLUMN_WIDTH = 125
FEEL = "feel"


class ExpressionLanguage(BaseModel):
    """Selectable expression language option."""

    value: str = Field(..., description="Language identifier stored on the column (e.g. 'feel')")
    label: str = Field(..., description="Display label (e.g. 'FEEL')")

    model_config = {"frozen": True}


DEFAULT_OPTIONS = [ExpressionLanguage(value=FEEL, label="FEEL")]


class ExpressionLanguagesConfig(BaseModel):
    """Structured configuration: available options and per-component defaults."""

    options: list[ExpressionLanguage] = Field(default_factory=lambda: list(DEFAULT_OPTIONS))
    defaults: dict[str, str] = Field(
        default_factory=dict,
        description="component -> language value, e.g. {'inputCell': 'feel'}",
    )


class EditorSettings(BaseModel):
    """Options for one editor instance."""

    undo_limit: Optional[int] = Field(None, ge=1, description="Max undo depth; None = unbounded")
    min_column_width: int = Field(DEFAULT_MIN_COLUMN_WIDTH, ge=1, description="Resize clamps widths to at least this")
    simple_mode: bool = Field(True, description="Use typed simple editors where a column type allows")
    expression_languages: ExpressionLanguagesConfig = Field(default_factory=ExpressionLanguagesConfig)
    default_input_expression_language: Optional[str] = Field(
        None, description="Legacy default for input cells; structured defaults win"
    )
    default_output_expression_language: Optional[str] = Field(
        None, description="Legacy default for output cells; structured defaults win"
    )

    @classmethod
    def from_env(cls) -> "EditorSettings":
        return cls(
            undo_limit=int(os.getenv("TABLE_EDITOR_UNDO_LIMIT", "0") or 0) or None,
            min_column_width=int(os.getenv("TABLE_EDITOR_MIN_COLUMN_WIDTH", str(DEFAULT_MIN_COLUMN_WIDTH))),
            simple_mode=os.getenv("TABLE_EDITOR_SIMPLE_MODE", "1").lower() in ("1", "true", "yes"),
            default_input_expression_language=os.getenv("TABLE_EDITOR_DEFAULT_INPUT_LANGUAGE") or None,
            default_output_expression_language=os.getenv("TABLE_EDITOR_DEFAULT_OUTPUT_LANGUAGE") or None,
        )
