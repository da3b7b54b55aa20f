"""
Cell text checks for FEEL columns.

Syntax is checked with the pySFeel lexer. On top of its tokens the simple-mode
shapes are recognised: input cells hold unary tests (literal, comparison,
interval, list, not(...)), output cells hold a single literal. Valid FEEL
outside those shapes is kept as an Expression. Every parser raises
ValueError with a readable message; the registry turns that into an invalid
cell, never an exception.
"""

import re
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Optional

import pySFeel
from pydantic import BaseModel

ANY_INPUT = ("", "-")
COMPARISON_OPERATORS = ("<=", ">=", "<", ">", "=")

_NUMBER_RE = re.compile(r"^-?(?:\d+(?:\.\d*)?|\.\d+)$")
_STRING_RE = re.compile(r'^"((?:[^"\\]|\\.)*)"$')
_TYPED_LITERAL_RE = re.compile(r'^(?:date and time|date|time|duration)\s*\(\s*"[^"]*"\s*\)$')
_COMPARISON_RE = re.compile(r"^(<=|>=|<|>|=)\s*(.+)$")
_INTERVAL_RE = re.compile(r"^([\[\](])\s*(.+?)\s*\.\.\s*(.+?)\s*([\[\])])$")
_NOT_RE = re.compile(r"^not\s*\((.*)\)$", re.DOTALL)
# ISO-8601 duration, e.g. P1Y2M, P3DT4H5M6.5S; T must be followed by a component
_DURATION_RE = re.compile(
    r"^(-)?P(?!$)(?:(\d+)Y)?(?:(\d+)M)?(?:(\d+)D)?(?:T(?=\d)(?:(\d+)H)?(?:(\d+)M)?(?:(\d+(?:\.\d+)?)S)?)?$"
)

LiteralParser = Callable[[str], Any]


class FeelSyntaxError(ValueError):
    """Text that is not S-FEEL at all."""


# -----------------------------------------------------------------------------
# Parsed shapes
# -----------------------------------------------------------------------------


class Comparison(BaseModel):
    """`< 10`, `>= date("2020-01-01")`."""

    operator: str
    value: Any

    model_config = {"frozen": True}


class Interval(BaseModel):
    """`[1..10]`, `]1..10[`; brackets pointing inwards are inclusive."""

    start: Any
    end: Any
    start_inclusive: bool = True
    end_inclusive: bool = True

    model_config = {"frozen": True}


class Disjunction(BaseModel):
    """Comma separated tests; any of them may match."""

    tests: tuple[Any, ...]

    model_config = {"frozen": True}


class Negation(BaseModel):
    """`not(...)` around a test or a list of tests."""

    test: Any

    model_config = {"frozen": True}


class Expression(BaseModel):
    """FEEL text outside the simple-mode shapes, kept as written."""

    text: str

    model_config = {"frozen": True}


class Duration(BaseModel):
    """ISO-8601 duration split into its components."""

    negative: bool = False
    years: int = 0
    months: int = 0
    days: int = 0
    hours: int = 0
    minutes: int = 0
    seconds: Decimal = Decimal(0)

    model_config = {"frozen": True}

    @property
    def is_year_month(self) -> bool:
        return not (self.days or self.hours or self.minutes or self.seconds)

    def to_iso(self) -> str:
        date_part = "".join(
            f"{v}{u}" for v, u in ((self.years, "Y"), (self.months, "M"), (self.days, "D")) if v
        )
        time_part = "".join(
            f"{v}{u}" for v, u in ((self.hours, "H"), (self.minutes, "M"), (self.seconds, "S")) if v
        )
        if not date_part and not time_part:
            time_part = "0S"
        text = "P" + date_part + (f"T{time_part}" if time_part else "")
        return f"-{text}" if self.negative else text


# -----------------------------------------------------------------------------
# Literals
# -----------------------------------------------------------------------------


def parse_number(text: str) -> Decimal:
    text = text.strip()
    if not _NUMBER_RE.match(text):
        raise ValueError(f"'{text}' is not a number")
    try:
        return Decimal(text)
    except InvalidOperation as e:
        raise ValueError(f"'{text}' is not a number") from e


def parse_string(text: str) -> str:
    match = _STRING_RE.match(text.strip())
    if not match:
        raise ValueError(f"{text.strip()} is not a quoted string")
    return re.sub(r"\\(.)", r"\1", match.group(1))


def parse_boolean(text: str) -> bool:
    text = text.strip()
    if text == "true":
        return True
    if text == "false":
        return False
    raise ValueError(f"'{text}' is not a boolean (true or false)")


def _function_argument(text: str, name: str) -> str:
    match = re.match(rf'^{re.escape(name)}\s*\(\s*"([^"]*)"\s*\)$', text.strip())
    if not match:
        raise ValueError(f'{text.strip()!r} is not of the form {name}("...")')
    return match.group(1)


def _iso_zone(value: str) -> str:
    # fromisoformat before Python 3.11 does not accept a trailing Z
    return value[:-1] + "+00:00" if value.endswith("Z") else value


def parse_date(text: str) -> date:
    value = _function_argument(text, "date")
    if not re.match(r"^\d{4}-\d{2}-\d{2}$", value):
        raise ValueError(f"'{value}' is not a date (YYYY-MM-DD)")
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise ValueError(f"'{value}' is not a valid date: {e}") from e


def parse_time(text: str) -> time:
    value = _function_argument(text, "time")
    try:
        return time.fromisoformat(_iso_zone(value))
    except ValueError as e:
        raise ValueError(f"'{value}' is not a valid time (hh:mm:ss): {e}") from e


def parse_date_time(text: str) -> datetime:
    value = _function_argument(text, "date and time")
    if "T" not in value:
        raise ValueError(f"'{value}' is not a date and time (YYYY-MM-DDThh:mm:ss)")
    try:
        return datetime.fromisoformat(_iso_zone(value))
    except ValueError as e:
        raise ValueError(f"'{value}' is not a valid date and time: {e}") from e


def parse_duration(text: str, type_ref: Optional[str] = None) -> Duration:
    """`duration("P1DT2H")`; type_ref narrows to day-time or year-month durations."""
    value = _function_argument(text, "duration")
    match = _DURATION_RE.match(value)
    if not match:
        raise ValueError(f"'{value}' is not an ISO-8601 duration (e.g. P1DT2H)")
    sign, years, months, days, hours, minutes, seconds = match.groups()
    duration = Duration(
        negative=bool(sign),
        years=int(years or 0),
        months=int(months or 0),
        days=int(days or 0),
        hours=int(hours or 0),
        minutes=int(minutes or 0),
        seconds=Decimal(seconds or 0),
    )
    if type_ref == "yearMonthDuration" and not duration.is_year_month:
        raise ValueError(f"'{value}' is not a years and months duration")
    if type_ref == "dayTimeDuration" and (duration.years or duration.months):
        raise ValueError(f"'{value}' is not a days and time duration")
    return duration


# -----------------------------------------------------------------------------
# Tokens (pySFeel)
# -----------------------------------------------------------------------------


def _is_call(text: str, token: Any) -> bool:
    # "name(" opens a call, a bare "(" after an operator or comma may open an interval
    if token.value == "(":
        before = text[: token.index].rstrip()
        return bool(before) and (before[-1].isalnum() or before[-1] == "_")
    return token.type != "STRING" and len(token.value) > 1 and token.value.endswith("(")


def _with_call_depth(text: str, tokens: list[Any]) -> list[tuple[Any, int]]:
    """Pair each token with the number of function calls open before it."""
    stack: list[bool] = []
    paired = []
    for token in tokens:
        paired.append((token, sum(stack)))
        if token.type == "STRING":
            continue
        if token.value.endswith("("):
            stack.append(_is_call(text, token))
        elif token.value == ")" and stack:
            stack.pop()
    if any(stack):
        raise FeelSyntaxError(f"Unclosed '(' in '{text.strip()}'")
    return paired


def tokenize(text: str) -> list[Any]:
    """
    pySFeel tokens for `text`.

    Raises FeelSyntaxError on the first ERROR token or on a function call
    that is never closed.
    """
    # the lexer keeps per-run state, so each call gets its own
    tokens = list(pySFeel.SFeelLexer().tokenize(text))
    for token in tokens:
        if token.type == "ERROR":
            raise FeelSyntaxError(f"S-FEEL syntax error in '{text.strip()}' at '{token.value}'")
    _with_call_depth(text, tokens)
    return tokens


def split_top_level(text: str) -> list[str]:
    """Split on commas outside strings and function calls."""
    parts: list[str] = []
    start = 0
    for token, depth in _with_call_depth(text, tokenize(text)):
        if token.type == "COMMA" and depth == 0:
            parts.append(text[start:token.index].strip())
            start = token.index + 1
    parts.append(text[start:].strip())
    return parts


def is_literal(text: str) -> bool:
    """Number, string, boolean or date/time/duration constructor literal."""
    text = text.strip()
    return bool(
        text in ("true", "false")
        or _NUMBER_RE.match(text)
        or _STRING_RE.match(text)
        or _TYPED_LITERAL_RE.match(text)
    )


def entry_operands(text: str, input_entry: bool = True) -> list[str]:
    """
    Operand texts of an entry with the unary test structure peeled off:
    not(...), comma lists, interval bounds and comparison operators.
    Output entries are a single operand.
    """
    text = text.strip()
    if not input_entry:
        return [text] if text else []
    if text in ANY_INPUT:
        return []
    parts = split_top_level(text)
    match = _NOT_RE.match(text) if len(parts) == 1 else None
    if match:
        return entry_operands(match.group(1))
    operands: list[str] = []
    for part in parts:
        interval = _INTERVAL_RE.match(part)
        comparison = _COMPARISON_RE.match(part)
        if interval:
            operands.extend((interval.group(2), interval.group(3)))
        elif comparison:
            operands.append(comparison.group(2).strip())
        else:
            operands.append(part)
    return operands


# -----------------------------------------------------------------------------
# Unary tests (input cells) and output entries
# -----------------------------------------------------------------------------


def parse_input_entry(
    text: str,
    literal: LiteralParser,
    *,
    comparisons: bool = True,
    intervals: bool = True,
    lists: bool = True,
    negation: bool = False,
) -> Any:
    """
    Parse an input entry. Returns None for "any" ('' or '-'), otherwise the
    literal, Comparison, Interval, Disjunction or Negation.
    """
    text = text.strip()
    if text in ANY_INPUT:
        return None
    parts = split_top_level(text)
    if negation and len(parts) == 1:
        match = _NOT_RE.match(text)
        if match:
            inner = parse_input_entry(
                match.group(1), literal, comparisons=comparisons, intervals=intervals, lists=lists
            )
            if inner is None:
                raise ValueError("not() needs at least one value")
            return Negation(test=inner)
    if len(parts) > 1:
        if not lists:
            raise ValueError("a list of values is not allowed here")
        return Disjunction(
            tests=tuple(_parse_test(p, literal, comparisons=comparisons, intervals=intervals) for p in parts)
        )
    return _parse_test(text, literal, comparisons=comparisons, intervals=intervals)


def parse_output_entry(text: str, literal: LiteralParser) -> Any:
    """Output entries hold a single literal; empty text means no output."""
    text = text.strip()
    if not text:
        return None
    return literal(text)


def _parse_test(text: str, literal: LiteralParser, *, comparisons: bool, intervals: bool) -> Any:
    if not text:
        raise ValueError("empty value in list")
    if intervals:
        match = _INTERVAL_RE.match(text)
        if match:
            open_bracket, start, end, close_bracket = match.groups()
            interval = Interval(
                start=literal(start),
                end=literal(end),
                start_inclusive=open_bracket == "[",
                end_inclusive=close_bracket == "]",
            )
            try:
                if interval.start > interval.end:
                    raise ValueError(f"interval start {start} is greater than end {end}")
            except TypeError:
                pass  # not orderable (e.g. durations); accept as written
            return interval
    if comparisons:
        match = _COMPARISON_RE.match(text)
        if match:
            return Comparison(operator=match.group(1), value=literal(match.group(2)))
    return literal(text)
