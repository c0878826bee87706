from __future__ import annotations

import logging
from dataclasses import dataclass

from app.services.ledger_client import LedgerClient, full_span

logger = logging.getLogger(__name__)

KEY_COLUMN = 'A:A'


@dataclass(frozen=True)
class LedgerRowRef:
    row: int
    values: list[str]


class LedgerRowResolver:
    """Locates ledger rows by business key.

    The ledger has no uniqueness constraint and row positions move under
    deletes, so every lookup scans the tab afresh. Nothing here is cached
    between calls. All scan-then-decide callers go through this class.
    """

    def __init__(self, client: LedgerClient, *, key_prefix: str = 'PR-') -> None:
        self.client = client
        self.key_prefix = key_prefix

    def is_business_key(self, value: str) -> bool:
        return bool(value) and value.startswith(self.key_prefix)

    def build_index(self) -> dict[str, LedgerRowRef]:
        index: dict[str, LedgerRowRef] = {}
        for row, values in self.client.read_range(full_span(self.client.column_count)):
            key = values[0].strip() if values else ''
            if not self.is_business_key(key):
                continue
            if key in index:
                logger.warning(
                    'Duplicate ledger key %s at rows %s and %s; using the later row',
                    key,
                    index[key].row,
                    row,
                )
            index[key] = LedgerRowRef(row=row, values=[cell.strip() for cell in values])
        return index

    def find(self, request_number: str) -> LedgerRowRef | None:
        return self.build_index().get(request_number.strip())

    def key_rows(self) -> dict[str, int]:
        """Every non-empty value in the key column mapped to its last row."""
        rows: dict[str, int] = {}
        for row, values in self.client.read_range(KEY_COLUMN):
            key = values[0].strip() if values else ''
            if key:
                rows[key] = row
        return rows
