from __future__ import annotations

from collections.abc import Iterable, Sequence

from app.errors import TabNotFound
from app.services.ledger_client import LedgerRows, column_bounds, descending_row_order

DEFAULT_HEADER = ('Номер заявки', 'Дата', 'Класс', 'Тип', 'Email', 'ФИО', 'Статус')


class InMemoryLedgerClient:
    """Local stand-in for the spreadsheet ledger.

    Keeps 1-based row positions, a header row and the index shift caused by
    structural deletes, so callers see the same arithmetic as the live tab.
    """

    def __init__(
        self,
        *,
        tab: str = 'Учёт',
        column_count: int = 7,
        header: Sequence[str] | None = DEFAULT_HEADER,
    ) -> None:
        self.tab = tab
        self.column_count = column_count
        self.tab_ids = {tab: 0}
        self.rows: list[list[str]] = []
        if header:
            self.rows.append([str(cell) for cell in header][:column_count])

    def append(self, values: Sequence[str]) -> int | None:
        self.rows.append([str(value) for value in values])
        return len(self.rows)

    def read_range(self, columns: str) -> LedgerRows:
        start, end = column_bounds(columns)
        result: LedgerRows = []
        for index, row in enumerate(self.rows, start=1):
            cells = row[start:end]
            while cells and cells[-1] == '':
                cells.pop()
            result.append((index, cells))
        while result and not result[-1][1]:
            result.pop()
        return result

    def update_range(self, row: int, values: Sequence[str]) -> None:
        if row < 1:
            raise ValueError('Ledger rows are 1-based')
        while len(self.rows) < row:
            self.rows.append([])
        self.rows[row - 1] = [str(value) for value in values]

    def delete_rows(self, row_indices: Iterable[int]) -> int:
        rows = descending_row_order(row_indices)
        if not rows:
            return 0
        self.resolve_tab_id(self.tab)
        deleted = 0
        for row in rows:
            if row <= len(self.rows):
                del self.rows[row - 1]
                deleted += 1
        return deleted

    def resolve_tab_id(self, tab_title: str) -> int:
        if tab_title not in self.tab_ids:
            raise TabNotFound(f'Ledger tab not found: {tab_title}')
        return self.tab_ids[tab_title]

    def keys(self) -> list[str]:
        return [row[0] if row else '' for row in self.rows]
