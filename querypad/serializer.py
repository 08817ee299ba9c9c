"""Rendering of result cursors into the line-oriented table payload.

A table payload is the ``%table`` marker line, a tab-separated header, then
one tab-separated line per row, every line newline-terminated. Plain-text
responses (EXPLAIN output) use the same layout without the marker and without
escaping cell text.
"""

from __future__ import annotations

from typing import Iterable

from .drivers import ResultCursor
from .models import ResultTable

TABLE_MAGIC_TAG = "%table "
UPDATE_COUNT_HEADER = "Update Count"
EMPTY_COLUMN_VALUE = ""

TAB = "\t"
NEWLINE = "\n"
WHITESPACE = " "


def render_cell(is_table: bool, value: object) -> str:
    """Stringify one cell; table cells lose their tabs and newlines."""

    if value is None:
        return EMPTY_COLUMN_VALUE
    text = value if isinstance(value, str) else str(value)
    if not is_table:
        return text
    return text.replace(TAB, WHITESPACE).replace(NEWLINE, WHITESPACE)


def render_line(is_table: bool, values: Iterable[object]) -> str:
    return TAB.join(render_cell(is_table, value) for value in values) + NEWLINE


def render_result(cursor: ResultCursor, *, is_table: bool, max_rows: int) -> str:
    """Render ``cursor`` as header + at most ``max_rows`` lines.

    Rows beyond the cap are dropped without any truncation notice.
    """

    parts: list[str] = [TABLE_MAGIC_TAG + NEWLINE] if is_table else []
    parts.append(render_line(is_table, cursor.columns()))
    for count, row in enumerate(cursor):
        if max_rows and count >= max_rows:
            break
        parts.append(render_line(is_table, row))
    return "".join(parts)


def render_update_count(count: int) -> str:
    return f"{UPDATE_COUNT_HEADER}{NEWLINE}{count}{NEWLINE}"


def is_table_payload(payload: str) -> bool:
    return payload.startswith(TABLE_MAGIC_TAG)


def parse_table(payload: str) -> ResultTable:
    """Split a payload back into columns and rows.

    The marker line is optional, so plain-text and update-count payloads
    parse too.
    """

    lines = payload.split(NEWLINE)
    if lines and lines[0].startswith(TABLE_MAGIC_TAG.rstrip()):
        lines = lines[1:]
    if lines and lines[-1] == "":
        lines = lines[:-1]
    if not lines:
        return ResultTable(columns=())
    columns = tuple(lines[0].split(TAB))
    rows = tuple(tuple(line.split(TAB)) for line in lines[1:])
    return ResultTable(columns=columns, rows=rows)


__all__ = [
    "EMPTY_COLUMN_VALUE",
    "TABLE_MAGIC_TAG",
    "UPDATE_COUNT_HEADER",
    "is_table_payload",
    "parse_table",
    "render_cell",
    "render_line",
    "render_result",
    "render_update_count",
]
