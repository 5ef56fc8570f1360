"""JSON text helpers: numeric rounding and the column-aligned action layout."""

from __future__ import annotations

import json
import math
import re
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

DEFAULT_LINE_LENGTH = 100
DEFAULT_MAX_PRECISION = 1

_ONE_LINE_OBJECT_RE = re.compile(r'\{\s*"(?:at|time|startTime)":[^{}]+\}')
_NEWLINE_RUN_RE = re.compile(r" *\n\s*")
_IN_ARRAY_RE = re.compile(r"(?<=\[)([^\[\]]+)(?=\])")
_AT_OR_POS_RE = re.compile(r'("(?:at|pos)":\s*)(-?\d+\.?\d*)')
_AT_RE = re.compile(r'("at":\s*)(-?\d+\.?\d*)')
_POS_RE = re.compile(r'("pos":\s*)(-?\d+\.?\d*)')
_ROW_BREAK_RE = re.compile(r"\n(?!\s*\Z)\s*")

# Width of one formatted action without its number padding.
_ACTION_TEMPLATE_LENGTH = len('{ "at": , "pos": 100 },')
_MAX_ACTIONS_PER_LINE = 10


def to_fixed(value: float, digits: int) -> str:
    """Fixed-point text of *value*, rounding its exact binary value half-up."""
    quantum = Decimal(1).scaleb(-digits)
    return str(Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP))


def _trim_zeros(text: str) -> str:
    if "." not in text:
        return text
    return text.rstrip("0").rstrip(".")


def round_number(value: float, digits: int) -> Any:
    """
    Round *value* to at most *digits* decimals for JSON output.

    Integral results come back as ``int`` so they print without ``.0``;
    non-finite values pass through unchanged.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return value
    if isinstance(value, float) and not math.isfinite(value):
        return value
    number = float(to_fixed(value, digits))
    if number.is_integer():
        return int(number)
    return number


def dumps(payload: Any, *, pretty: bool = True) -> str:
    if not pretty:
        return json.dumps(payload, ensure_ascii=False, separators=(",", ":"))
    return json.dumps(payload, indent=2, ensure_ascii=False)


def _format_array(body: str, line_length: int, max_precision: int) -> str:
    body = _AT_OR_POS_RE.sub(
        lambda m: m.group(1) + _trim_zeros(to_fixed(float(m.group(2)), max_precision)),
        body,
    )

    at_values = [m.group(2) for m in _AT_RE.finditer(body)]
    if not at_values:
        return body
    at_width = max(len(v) for v in at_values)
    body = _AT_RE.sub(lambda m: m.group(1) + m.group(2).rjust(at_width), body)

    pos_values = [m.group(2) for m in _POS_RE.finditer(body)]
    decimals = [len(v.split(".")[1]) + 1 for v in pos_values if "." in v and v.split(".")[1]]
    pos_dot = max(decimals, default=0)

    def _pad_pos(m: re.Match) -> str:
        text = m.group(2)
        if "." not in text:
            return m.group(1) + text.rjust(3) + " " * pos_dot
        whole, frac = text.split(".")
        return f"{m.group(1)}{whole.rjust(3)}.{frac.ljust(pos_dot - 1)}"

    body = _POS_RE.sub(_pad_pos, body)

    action_length = _ACTION_TEMPLATE_LENGTH + at_width + pos_dot
    per_line = _MAX_ACTIONS_PER_LINE
    while per_line > 1 and 6 + (action_length + 1) * per_line - 1 > line_length:
        per_line -= 1

    counter = 0

    def _break(m: re.Match) -> str:
        nonlocal counter
        keep = counter % per_line == 0
        counter += 1
        return m.group(0) if keep else " "

    return _ROW_BREAK_RE.sub(_break, body)


def format_json(
    text: str,
    *,
    line_length: int = DEFAULT_LINE_LENGTH,
    max_precision: int = DEFAULT_MAX_PRECISION,
) -> str:
    """
    Reflow indented JSON so action arrays read as aligned columns.

    Each ``{at, pos}`` (and chapter/bookmark) object is put on one line,
    ``at`` values are right-aligned to the widest in their array, ``pos``
    values share a decimal column, and as many actions as fit in
    *line_length* are placed on each row.
    """
    text = _ONE_LINE_OBJECT_RE.sub(lambda m: _NEWLINE_RUN_RE.sub(" ", m.group(0)), text)
    return _IN_ARRAY_RE.sub(lambda m: _format_array(m.group(1), line_length, max_precision), text)


__all__ = ["DEFAULT_LINE_LENGTH", "DEFAULT_MAX_PRECISION", "dumps", "format_json", "round_number", "to_fixed"]
