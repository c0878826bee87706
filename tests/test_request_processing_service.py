from __future__ import annotations

import unittest
from unittest.mock import patch

from sqlalchemy import select

from app.errors import ValidationError
from app.models import PurchaseRequest, TextbookAccess
from app.services.access_grant_service import grant_for_request
from app.services.request_processing_service import list_requests_for_admin, set_requests_processed

from ledger_fixtures import add_profile, add_request, add_textbook, make_session


class SetRequestsProcessedTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_session()
        self.owner = add_profile(self.db)
        self.admin = add_profile(self.db, email='admin@example.com', full_name='Admin', is_admin=True)
        add_textbook(self.db, title='Алгебра', class_level=['5-6'])
        add_textbook(self.db, title='Геометрия', class_level=['5-6'])

    def tearDown(self) -> None:
        self.db.close()

    def _grant_count(self) -> int:
        return len(self.db.execute(select(TextbookAccess)).scalars().all())

    def test_processing_grants_and_unprocessing_revokes(self) -> None:
        request = add_request(self.db, user_id=self.owner.id, request_number='PR-1001')

        results = set_requests_processed(self.db, request_ids=[request.id], is_processed=True, admin_id=self.admin.id)

        self.assertTrue(results[request.id]['ok'])
        self.assertEqual(sorted(results[request.id]['granted']), ['📚 Алгебра', '📚 Геометрия'])
        self.assertEqual(self._grant_count(), 2)
        self.db.refresh(request)
        self.assertTrue(request.is_processed)
        self.assertIsNotNone(request.processed_at)

        results = set_requests_processed(self.db, request_ids=[request.id], is_processed=False, admin_id=self.admin.id)

        self.assertEqual(results[request.id], {'ok': True, 'granted': [], 'revoked': 2})
        self.assertEqual(self._grant_count(), 0)
        self.db.refresh(request)
        self.assertFalse(request.is_processed)
        self.assertIsNone(request.processed_at)

    def test_processing_twice_creates_no_duplicates(self) -> None:
        request = add_request(self.db, user_id=self.owner.id, request_number='PR-1001')

        set_requests_processed(self.db, request_ids=[request.id], is_processed=True, admin_id=self.admin.id)
        results = set_requests_processed(self.db, request_ids=[request.id], is_processed=True, admin_id=self.admin.id)

        self.assertEqual(len(results[request.id]['granted']), 2)
        self.assertEqual(self._grant_count(), 2)

    def test_one_failure_does_not_block_the_batch(self) -> None:
        first = add_request(self.db, user_id=self.owner.id, request_number='PR-1')
        second = add_request(self.db, user_id=self.owner.id, request_number='PR-2', minutes=1)

        def failing_grant(db, request, *, admin_id):
            if request.request_number == 'PR-1':
                raise RuntimeError('constraint violated')
            return grant_for_request(db, request, admin_id=admin_id)

        with patch('app.services.request_processing_service.grant_for_request', side_effect=failing_grant):
            with self.assertLogs('app.services.request_processing_service', level='ERROR'):
                results = set_requests_processed(
                    self.db,
                    request_ids=[first.id, second.id, 9999],
                    is_processed=True,
                    admin_id=self.admin.id,
                )

        self.assertEqual(results[first.id], {'ok': False, 'error': 'constraint violated'})
        self.assertTrue(results[second.id]['ok'])
        self.assertEqual(results[9999], {'ok': False, 'error': 'Request not found'})
        rows = {row.request_number: row for row in self.db.execute(select(PurchaseRequest)).scalars().all()}
        self.assertFalse(rows['PR-1'].is_processed)
        self.assertTrue(rows['PR-2'].is_processed)

    def test_empty_ids_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            set_requests_processed(self.db, request_ids=[], is_processed=True, admin_id=self.admin.id)


class ListRequestsForAdminTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_session()
        self.owner = add_profile(self.db)
        self.admin = add_profile(self.db, email='admin@example.com', full_name='Admin', is_admin=True)
        add_textbook(self.db, title='Алгебра', class_level=['5-6'])
        self.pending = add_request(self.db, user_id=self.owner.id, request_number='PR-1')
        self.done = add_request(self.db, user_id=self.owner.id, request_number='PR-2', minutes=5)
        set_requests_processed(self.db, request_ids=[self.done.id], is_processed=True, admin_id=self.admin.id)

    def tearDown(self) -> None:
        self.db.close()

    def test_status_filter(self) -> None:
        everything = list_requests_for_admin(self.db)
        pending = list_requests_for_admin(self.db, status='pending')
        processed = list_requests_for_admin(self.db, status='processed')

        self.assertEqual([row['request_number'] for row in everything['requests']], ['PR-2', 'PR-1'])
        self.assertEqual([row['request_number'] for row in pending['requests']], ['PR-1'])
        self.assertEqual([row['request_number'] for row in processed['requests']], ['PR-2'])

    def test_include_materials(self) -> None:
        data = list_requests_for_admin(self.db, include_materials=True)
        self.assertEqual(data['materials_by_request'][self.done.id], ['📚 Алгебра'])
        self.assertEqual(data['materials_by_request'][self.pending.id], [])

    def test_unknown_status_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            list_requests_for_admin(self.db, status='archived')


if __name__ == '__main__':
    unittest.main()
