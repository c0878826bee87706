from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.auth import Principal
from app.errors import AuthoritativeStoreError, LedgerError, LockedError, NotFoundError, ValidationError
from app.models import PurchaseRequest
from app.services.ledger_sync_service import LedgerMirror, LedgerOutcome, mirror_request

logger = logging.getLogger(__name__)


def _clean_types(textbook_types: list[str] | None) -> list[str]:
    return [str(value).strip() for value in (textbook_types or []) if str(value).strip()]


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _contact(principal: Principal, email: str | None, full_name: str | None) -> tuple[str, str]:
    resolved_email = (principal.email or email or '').strip()
    resolved_name = (principal.full_name or full_name or '').strip()
    if not resolved_email or not resolved_name:
        raise ValidationError('Missing profile data (email/full_name)', code='PROFILE_MISSING')
    return resolved_email, resolved_name


def _commit(db: Session) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise AuthoritativeStoreError(str(exc.__cause__ or exc)) from exc


def _get_owned(db: Session, *, request_id: int, user_id: int) -> PurchaseRequest:
    row = db.execute(
        select(PurchaseRequest).where(PurchaseRequest.id == request_id, PurchaseRequest.user_id == user_id)
    ).scalar_one_or_none()
    if not row:
        raise NotFoundError('Request not found')
    return row


def serialize_request(row: PurchaseRequest) -> dict:
    return {
        'id': row.id,
        'user_id': row.user_id,
        'request_number': row.request_number,
        'class_level': row.class_level,
        'textbook_types': list(row.textbook_types or []),
        'email': row.email,
        'full_name': row.full_name,
        'is_processed': row.is_processed,
        'processed_at': row.processed_at,
        'created_at': row.created_at,
        'sheet_synced_at': row.sheet_synced_at,
        'sheet_row': row.sheet_row,
        'sheet_sync_error': row.sheet_sync_error,
    }


def list_own_requests(db: Session, *, principal: Principal) -> list[PurchaseRequest]:
    return db.execute(
        select(PurchaseRequest)
        .where(PurchaseRequest.user_id == principal.id)
        .order_by(PurchaseRequest.created_at.desc(), PurchaseRequest.id.desc())
    ).scalars().all()


def create_request(
    db: Session,
    mirror: LedgerMirror,
    *,
    principal: Principal,
    request_number: str,
    class_level: str,
    textbook_types: list[str],
    email: str | None = None,
    full_name: str | None = None,
    created_at: datetime | None = None,
) -> tuple[PurchaseRequest, LedgerOutcome]:
    request_number = (request_number or '').strip()
    class_level = (class_level or '').strip()
    types = _clean_types(textbook_types)
    if not request_number or not class_level or not types:
        raise ValidationError('Missing fields')
    if not request_number.startswith(mirror.key_prefix):
        raise ValidationError(f'Request number must start with {mirror.key_prefix}')
    contact_email, contact_name = _contact(principal, email, full_name)

    duplicate = db.execute(
        select(PurchaseRequest.id).where(PurchaseRequest.request_number == request_number).limit(1)
    ).first()
    if duplicate:
        raise ValidationError('Request number already exists', code='DUPLICATE')

    row = PurchaseRequest(
        user_id=principal.id,
        request_number=request_number,
        class_level=class_level,
        textbook_types=types,
        email=contact_email,
        full_name=contact_name,
        is_processed=False,
        processed_at=None,
    )
    if created_at is not None:
        row.created_at = _as_utc(created_at)
    db.add(row)
    _commit(db)
    db.refresh(row)

    return row, mirror_request(db, mirror, row, mirror.append)


def update_request(
    db: Session,
    mirror: LedgerMirror,
    *,
    principal: Principal,
    request_id: int,
    class_level: str,
    textbook_types: list[str],
    request_number: str | None = None,
    email: str | None = None,
    full_name: str | None = None,
    created_at: datetime | None = None,
) -> tuple[PurchaseRequest, LedgerOutcome]:
    class_level = (class_level or '').strip()
    types = _clean_types(textbook_types)
    if not class_level or not types:
        raise ValidationError('Missing fields')
    contact_email, contact_name = _contact(principal, email, full_name)

    row = _get_owned(db, request_id=request_id, user_id=principal.id)
    if request_number is not None and request_number.strip() != row.request_number:
        raise ValidationError('Request number cannot be changed')
    if row.is_processed:
        raise LockedError("Processed request can't be edited")

    values: dict = {
        'class_level': class_level,
        'textbook_types': types,
        'email': contact_email,
        'full_name': contact_name,
    }
    if created_at is not None:
        values['created_at'] = _as_utc(created_at)

    result = db.execute(
        update(PurchaseRequest)
        .where(
            PurchaseRequest.id == row.id,
            PurchaseRequest.user_id == principal.id,
            PurchaseRequest.is_processed.is_(False),
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        db.rollback()
        raise LockedError("Processed request can't be edited")
    _commit(db)
    db.refresh(row)

    return row, mirror_request(db, mirror, row, mirror.upsert)


def delete_request(
    db: Session,
    mirror: LedgerMirror,
    *,
    principal: Principal,
    request_id: int,
) -> tuple[str, LedgerOutcome]:
    row = _get_owned(db, request_id=request_id, user_id=principal.id)
    if row.is_processed:
        raise LockedError("Processed request can't be deleted")
    request_number = (row.request_number or '').strip()

    # Conditioned on state so a concurrent admin "processed" mark wins.
    result = db.execute(
        delete(PurchaseRequest)
        .where(
            PurchaseRequest.id == row.id,
            PurchaseRequest.user_id == principal.id,
            PurchaseRequest.is_processed.is_(False),
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        db.rollback()
        raise LockedError("Processed request can't be deleted")
    _commit(db)
    db.expunge(row)

    if not request_number:
        return request_number, LedgerOutcome(ok=True, deleted_rows=0)
    try:
        ledger_row, deleted = mirror.remove(request_number)
    except LedgerError as exc:
        message = mirror.error_message(exc)
        logger.warning('Ledger row removal failed for %s: %s', request_number, message)
        return request_number, LedgerOutcome(ok=False, error=message, deleted_rows=0)
    return request_number, LedgerOutcome(ok=True, row=ledger_row, deleted_rows=deleted)
