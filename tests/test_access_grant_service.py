from __future__ import annotations

import unittest

from sqlalchemy import select

from app.errors import NotFoundError
from app.models import CrosswordAccess, MaterialKind, PurchaseRequestGrant, TextbookAccess
from app.services.access_grant_service import (
    grant_for_request,
    granted_materials_by_request,
    requested_kinds,
    revoke_for_request,
    set_user_access,
    upsert_grant,
)

from ledger_fixtures import add_crossword, add_profile, add_request, add_textbook, make_session


class AccessGrantServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_session()
        self.owner = add_profile(self.db)
        self.admin = add_profile(self.db, email='admin@example.com', full_name='Admin', is_admin=True)
        self.other_admin = add_profile(self.db, email='boss@example.com', full_name='Boss', is_admin=True)
        self.algebra = add_textbook(self.db, title='Алгебра', class_level=['5-6'])
        self.geometry = add_textbook(self.db, title='Геометрия', class_level=['5-6', '7'])
        self.physics = add_textbook(self.db, title='Физика', class_level=['8-9'])
        self.archived = add_textbook(self.db, title='Архив', class_level=['5-6'], is_active=False)
        self.puzzle = add_crossword(self.db, title='Кроссворд 5-6', class_level=['5-6'])

    def tearDown(self) -> None:
        self.db.close()

    def _textbook_ids(self) -> set[int]:
        return set(
            self.db.execute(select(TextbookAccess.textbook_id).where(TextbookAccess.user_id == self.owner.id))
            .scalars()
            .all()
        )

    def test_requested_kinds_accepts_both_spellings(self) -> None:
        self.assertEqual(requested_kinds(['Учебник']), [MaterialKind.TEXTBOOK])
        self.assertEqual(requested_kinds(['crossword', 'textbook']), [MaterialKind.TEXTBOOK, MaterialKind.CROSSWORD])
        self.assertEqual(requested_kinds(['poster']), [])
        self.assertEqual(requested_kinds(None), [])

    def test_grant_matches_active_materials_by_class_level(self) -> None:
        request = add_request(self.db, user_id=self.owner.id, request_number='PR-1')

        result = grant_for_request(self.db, request, admin_id=self.admin.id)
        self.db.commit()

        self.assertEqual(result.created, 2)
        self.assertEqual(result.labels, ['📚 Алгебра', '📚 Геометрия'])
        self.assertEqual(self._textbook_ids(), {self.algebra.id, self.geometry.id})

    def test_grant_covers_every_requested_kind(self) -> None:
        request = add_request(
            self.db,
            user_id=self.owner.id,
            request_number='PR-1',
            textbook_types=['Учебник', 'crossword'],
        )

        result = grant_for_request(self.db, request, admin_id=self.admin.id)

        self.assertEqual(result.labels, ['📚 Алгебра', '📚 Геометрия', '🧩 Кроссворд 5-6'])

    def test_class_level_is_matched_as_one_tag(self) -> None:
        request = add_request(self.db, user_id=self.owner.id, request_number='PR-1', class_level='7')

        result = grant_for_request(self.db, request, admin_id=self.admin.id)

        self.assertEqual(result.labels, ['📚 Геометрия'])
        self.assertEqual(self._textbook_ids(), {self.geometry.id})

    def test_grant_twice_is_idempotent(self) -> None:
        request = add_request(
            self.db,
            user_id=self.owner.id,
            request_number='PR-1',
            textbook_types=['учебник', 'кроссворд'],
        )

        first = grant_for_request(self.db, request, admin_id=self.admin.id)
        second = grant_for_request(self.db, request, admin_id=self.admin.id)
        self.db.commit()

        self.assertEqual(first.created, 3)
        self.assertEqual(second.created, 0)
        self.assertEqual(first.labels, second.labels)
        self.assertEqual(len(self._textbook_ids()), 2)
        history = self.db.execute(select(PurchaseRequestGrant)).scalars().all()
        self.assertEqual(len(history), 3)

    def test_unknown_type_grants_nothing(self) -> None:
        request = add_request(self.db, user_id=self.owner.id, request_number='PR-1', textbook_types=['poster'])

        result = grant_for_request(self.db, request, admin_id=self.admin.id)

        self.assertEqual(result.labels, [])
        self.assertEqual(self._textbook_ids(), set())

    def test_revoke_removes_grants_from_the_same_admin(self) -> None:
        request = add_request(self.db, user_id=self.owner.id, request_number='PR-1')
        grant_for_request(self.db, request, admin_id=self.admin.id)
        self.db.commit()

        removed = revoke_for_request(self.db, request, admin_id=self.admin.id)
        self.db.commit()

        self.assertEqual(removed, 2)
        self.assertEqual(self._textbook_ids(), set())
        self.assertEqual(self.db.execute(select(PurchaseRequestGrant)).scalars().all(), [])

    def test_revoke_keeps_grants_from_another_admin(self) -> None:
        upsert_grant(
            self.db,
            kind=MaterialKind.TEXTBOOK,
            user_id=self.owner.id,
            material_id=self.algebra.id,
            granted_by=self.other_admin.id,
        )
        request = add_request(self.db, user_id=self.owner.id, request_number='PR-1')
        result = grant_for_request(self.db, request, admin_id=self.admin.id)
        self.db.commit()
        self.assertEqual(result.created, 1)
        self.assertIn('📚 Алгебра', result.labels)

        revoke_for_request(self.db, request, admin_id=self.admin.id)
        self.db.commit()

        self.assertEqual(self._textbook_ids(), {self.algebra.id})

    def test_upsert_does_not_take_over_existing_grant(self) -> None:
        kwargs = {'kind': MaterialKind.TEXTBOOK, 'user_id': self.owner.id, 'material_id': self.algebra.id}
        self.assertTrue(upsert_grant(self.db, granted_by=self.other_admin.id, **kwargs))
        self.assertFalse(upsert_grant(self.db, granted_by=self.admin.id, **kwargs))

        grant = self.db.execute(select(TextbookAccess)).scalar_one()
        self.assertEqual(grant.granted_by, self.other_admin.id)

    def test_set_user_access_replaces_grants(self) -> None:
        upsert_grant(
            self.db,
            kind=MaterialKind.TEXTBOOK,
            user_id=self.owner.id,
            material_id=self.algebra.id,
            granted_by=self.admin.id,
        )

        result = set_user_access(
            self.db,
            user_id=self.owner.id,
            textbook_ids=[self.physics.id],
            crossword_ids=[self.puzzle.id],
            admin_id=self.admin.id,
        )
        self.db.commit()

        self.assertEqual(result, {'granted': 2, 'revoked': 1})
        self.assertEqual(self._textbook_ids(), {self.physics.id})
        crosswords = self.db.execute(select(CrosswordAccess.crossword_id)).scalars().all()
        self.assertEqual(crosswords, [self.puzzle.id])

    def test_set_user_access_rejects_unknown_ids(self) -> None:
        with self.assertRaises(NotFoundError):
            set_user_access(self.db, user_id=9999, textbook_ids=[], crossword_ids=[], admin_id=self.admin.id)
        with self.assertRaises(NotFoundError):
            set_user_access(
                self.db,
                user_id=self.owner.id,
                textbook_ids=[9999],
                crossword_ids=[],
                admin_id=self.admin.id,
            )

    def test_granted_materials_by_request(self) -> None:
        first = add_request(self.db, user_id=self.owner.id, request_number='PR-1')
        second = add_request(self.db, user_id=self.owner.id, request_number='PR-2', class_level='8-9')
        grant_for_request(self.db, first, admin_id=self.admin.id)
        self.db.commit()

        labels = granted_materials_by_request(self.db, [first.id, second.id])

        self.assertEqual(labels[first.id], ['📚 Алгебра', '📚 Геометрия'])
        self.assertEqual(labels[second.id], [])


if __name__ == '__main__':
    unittest.main()
