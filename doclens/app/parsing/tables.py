"""
Markdown table recovery.

A table is a `|` header row immediately followed by a separator row,
then every following row that contains a `|`, up to a blank line, a
line without `|`, or the end of the text.
"""

from __future__ import annotations

import re
from typing import List, Optional

from doclens.app.schemas.comparison import ComparisonTable, DEFAULT_TABLE_TITLE


_SEPARATOR_RE = re.compile(r"^[\s|:\-]*-[\s|:\-]*$")
_HEADING_RE = re.compile(r"^\s*#{2,3}\s+(.+?)\s*#*\s*$")


def is_separator_row(line: str) -> bool:
    return bool(_SEPARATOR_RE.match(line))


def split_cells(line: str) -> List[str]:
    """
    Split a table row into stripped cells, dropping the empty edge cells
    produced by leading and trailing pipes.
    """
    cells = line.strip().split("|")
    if len(cells) > 1 and not cells[0].strip():
        cells = cells[1:]
    if len(cells) > 1 and not cells[-1].strip():
        cells = cells[:-1]
    return [c.strip() for c in cells]


def _title_before(lines: List[str], index: int) -> str:
    for line in reversed(lines[:index]):
        match = _HEADING_RE.match(line)
        if match:
            return match.group(1)
    return DEFAULT_TABLE_TITLE


def _table_at(lines: List[str], index: int) -> Optional[tuple[ComparisonTable, int]]:
    """
    Try to read a table whose header row is lines[index].

    Returns the table (None when it has no data rows) and the index of
    the first line after it, or None when lines[index] does not start a
    table.
    """
    if index + 1 >= len(lines):
        return None
    header_line = lines[index]
    if "|" not in header_line or not is_separator_row(lines[index + 1]):
        return None

    rows: List[List[str]] = []
    cursor = index + 2
    while cursor < len(lines):
        line = lines[cursor]
        if not line.strip() or "|" not in line:
            break
        rows.append(split_cells(line))
        cursor += 1

    table = ComparisonTable(
        title=_title_before(lines, index),
        headers=split_cells(header_line),
        rows=rows,
    )
    return table, cursor


def parse_tables(text: str) -> List[ComparisonTable]:
    """
    Return every table with at least one data row, in encounter order.
    """
    lines = text.splitlines()
    tables: List[ComparisonTable] = []

    index = 0
    while index < len(lines):
        found = _table_at(lines, index)
        if found is None:
            index += 1
            continue
        table, index = found
        if table.rows:
            tables.append(table)

    return tables
