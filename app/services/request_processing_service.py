from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.errors import ValidationError
from app.models import PurchaseRequest
from app.services.access_grant_service import (
    grant_for_request,
    granted_materials_by_request,
    revoke_for_request,
)
from app.services.purchase_request_service import serialize_request

logger = logging.getLogger(__name__)

STATUS_FILTERS = {'all', 'pending', 'processed'}


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def list_requests_for_admin(
    db: Session,
    *,
    status: str = 'all',
    name: str | None = None,
    email: str | None = None,
    include_materials: bool = False,
) -> dict:
    status = (status or 'all').strip().lower()
    if status not in STATUS_FILTERS:
        raise ValidationError('Status must be one of: all, pending, processed')

    query = select(PurchaseRequest)
    if status == 'pending':
        query = query.where(PurchaseRequest.is_processed.is_(False)).order_by(PurchaseRequest.created_at.desc())
    elif status == 'processed':
        query = query.where(PurchaseRequest.is_processed.is_(True)).order_by(
            PurchaseRequest.processed_at.desc(),
            PurchaseRequest.created_at.desc(),
        )
    else:
        query = query.order_by(PurchaseRequest.created_at.desc())
    if name and name.strip():
        query = query.where(PurchaseRequest.full_name.ilike(f'%{name.strip()}%'))
    if email and email.strip():
        query = query.where(PurchaseRequest.email.ilike(f'%{email.strip()}%'))

    rows = db.execute(query.order_by(PurchaseRequest.id.desc())).scalars().all()
    materials: dict[int, list[str]] = {}
    if include_materials and rows:
        materials = granted_materials_by_request(db, [row.id for row in rows])
    return {
        'requests': [serialize_request(row) for row in rows],
        'materials_by_request': materials,
    }


def set_requests_processed(
    db: Session,
    *,
    request_ids: list[int],
    is_processed: bool,
    admin_id: int,
) -> dict[int, dict]:
    """Grant or revoke access for each request, then flip its processed flag.

    Requests are handled one at a time, each in its own transaction; a
    failure is reported for that id and the remaining ids still run.
    """
    ids = list(dict.fromkeys(int(value) for value in request_ids))
    if not ids:
        raise ValidationError('ids required')

    by_id = {
        row.id: row
        for row in db.execute(select(PurchaseRequest).where(PurchaseRequest.id.in_(ids))).scalars().all()
    }

    results: dict[int, dict] = {}
    for request_id in ids:
        row = by_id.get(request_id)
        if row is None:
            results[request_id] = {'ok': False, 'error': 'Request not found'}
            continue
        try:
            granted: list[str] = []
            revoked = 0
            if is_processed:
                granted = grant_for_request(db, row, admin_id=admin_id).labels
            else:
                revoked = revoke_for_request(db, row, admin_id=admin_id)
            row.is_processed = is_processed
            row.processed_at = _now() if is_processed else None
            db.commit()
        except Exception as exc:
            db.rollback()
            logger.exception('Processing toggle failed for request %s', request_id)
            results[request_id] = {'ok': False, 'error': str(exc) or exc.__class__.__name__}
            continue
        results[request_id] = {'ok': True, 'granted': granted, 'revoked': revoked}
    return results
