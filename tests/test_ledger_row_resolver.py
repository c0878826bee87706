from __future__ import annotations

import unittest

from app.services.ledger_row_resolver import LedgerRowResolver
from app.services.memory_ledger_client import InMemoryLedgerClient


class LedgerRowResolverTests(unittest.TestCase):
    def setUp(self) -> None:
        self.ledger = InMemoryLedgerClient()
        self.ledger.append(['PR-1', 'a'])
        self.ledger.append(['итого', '42'])
        self.ledger.append([])
        self.ledger.append([' PR-2 ', 'b'])
        self.resolver = LedgerRowResolver(self.ledger, key_prefix='PR-')

    def test_index_skips_header_and_stray_rows(self) -> None:
        index = self.resolver.build_index()

        self.assertEqual(set(index), {'PR-1', 'PR-2'})
        self.assertEqual(index['PR-1'].row, 2)
        self.assertEqual(index['PR-2'].row, 5)
        self.assertEqual(index['PR-2'].values, ['PR-2', 'b'])

    def test_duplicate_key_keeps_last_row(self) -> None:
        self.ledger.append(['PR-1', 'later'])

        with self.assertLogs('app.services.ledger_row_resolver', level='WARNING'):
            index = self.resolver.build_index()

        self.assertEqual(index['PR-1'].row, 6)
        self.assertEqual(index['PR-1'].values[1], 'later')

    def test_find_reads_the_current_position(self) -> None:
        self.assertEqual(self.resolver.find('PR-2').row, 5)
        self.ledger.delete_rows([2])
        self.assertEqual(self.resolver.find('PR-2').row, 4)
        self.assertIsNone(self.resolver.find('PR-1'))

    def test_key_rows_maps_key_column_to_rows(self) -> None:
        rows = self.resolver.key_rows()
        self.assertEqual(rows['PR-1'], 2)
        self.assertEqual(rows['PR-2'], 5)
        self.assertEqual(rows['итого'], 3)
        self.assertNotIn('', rows)


if __name__ == '__main__':
    unittest.main()
