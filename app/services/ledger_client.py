from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from typing import Protocol

RANGE_ROW_RE = re.compile(r'![A-Z]+(\d+)(?::[A-Z]+\d+)?$')
COLUMN_SPAN_RE = re.compile(r'^([A-Z]+)(?:\d+)?(?::([A-Z]+)(?:\d+)?)?$')

LedgerRows = list[tuple[int, list[str]]]


class LedgerClient(Protocol):
    """Row store behind the accounting ledger. Rows are 1-based positions in one tab."""

    tab: str
    column_count: int

    def append(self, values: Sequence[str]) -> int | None: ...

    def read_range(self, columns: str) -> LedgerRows: ...

    def update_range(self, row: int, values: Sequence[str]) -> None: ...

    def delete_rows(self, row_indices: Iterable[int]) -> int: ...

    def resolve_tab_id(self, tab_title: str) -> int: ...


def parse_row_number(updated_range: str | None) -> int | None:
    """Row of an A1 range such as ``Учёт!A12:G12``."""
    if not updated_range:
        return None
    match = RANGE_ROW_RE.search(updated_range.strip())
    if not match:
        return None
    return int(match.group(1))


def column_letter(index: int) -> str:
    if index < 1:
        raise ValueError('Column index is 1-based')
    letters = ''
    while index:
        index, remainder = divmod(index - 1, 26)
        letters = chr(ord('A') + remainder) + letters
    return letters


def column_index(letters: str) -> int:
    value = 0
    for char in letters:
        value = value * 26 + (ord(char) - ord('A') + 1)
    return value


def column_bounds(columns: str) -> tuple[int, int]:
    """0-based [start, end) column slice for a span like ``A:G`` or ``A:A``."""
    match = COLUMN_SPAN_RE.match(columns.strip().upper())
    if not match:
        raise ValueError(f'Invalid column span: {columns}')
    first = column_index(match.group(1))
    last = column_index(match.group(2) or match.group(1))
    if last < first:
        raise ValueError(f'Invalid column span: {columns}')
    return first - 1, last


def full_span(column_count: int) -> str:
    return f'A:{column_letter(column_count)}'


def descending_row_order(row_indices: Iterable[int]) -> list[int]:
    """Order rows for structural deletion.

    Deleting row n shifts every row below it up by one, so a batch must be
    applied bottom-up or later indices point at the wrong rows.
    """
    rows = {int(row) for row in row_indices}
    if any(row < 1 for row in rows):
        raise ValueError('Ledger rows are 1-based')
    return sorted(rows, reverse=True)
