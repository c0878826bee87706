from __future__ import annotations

import logging
from dataclasses import asdict, dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.errors import LedgerError, ValidationError
from app.models import PurchaseRequest
from app.services.ledger_client import descending_row_order
from app.services.ledger_sync_service import LedgerMirror, mark_sync_failed, mark_synced

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationResult:
    limit: int
    synced: int = 0
    skipped: int = 0
    failed: int = 0
    deleted: int = 0
    prune_error: str | None = None

    def as_dict(self) -> dict:
        return asdict(self)


def resolve_limit(limit: int | None, *, default: int, maximum: int) -> int:
    if limit is None:
        return default
    if limit < 1:
        raise ValidationError('Limit must be at least 1')
    return min(limit, maximum)


def reconcile_ledger(
    db: Session,
    mirror: LedgerMirror,
    *,
    limit: int,
    prune_orphans: bool = False,
) -> ReconciliationResult:
    """Append every authoritative request missing from the ledger, oldest first.

    Stops after ``limit`` successful appends; the rest wait for the next run.
    A failed append is recorded on the request and the run moves on. Reading
    the key column up front is the only ledger failure that aborts the run.
    """
    result = ReconciliationResult(limit=limit)
    existing = mirror.resolver.key_rows()

    records = db.execute(
        select(PurchaseRequest).order_by(PurchaseRequest.created_at.asc(), PurchaseRequest.id.asc())
    ).scalars().all()

    for record in records:
        if result.synced >= limit:
            break

        key = (record.request_number or '').strip()
        if not key:
            result.skipped += 1
            continue

        if key in existing:
            if record.sheet_synced_at is None or record.sheet_sync_error:
                mark_synced(record, existing[key])
                db.commit()
            result.skipped += 1
            continue

        try:
            row = mirror.append(record)
        except LedgerError as exc:
            message = mirror.error_message(exc)
            logger.warning('Reconciliation append failed for %s: %s', key, message)
            mark_sync_failed(record, message)
            db.commit()
            result.failed += 1
            continue

        mark_synced(record, row)
        db.commit()
        existing[key] = row
        result.synced += 1

    if prune_orphans and result.synced < limit:
        known_keys = {(record.request_number or '').strip() for record in records}
        _prune_orphans(mirror, known_keys, budget=limit - result.synced, result=result)

    logger.info(
        'Ledger reconciliation: synced=%s skipped=%s failed=%s deleted=%s limit=%s',
        result.synced,
        result.skipped,
        result.failed,
        result.deleted,
        limit,
    )
    return result


def _prune_orphans(mirror: LedgerMirror, known_keys: set[str], *, budget: int, result: ReconciliationResult) -> None:
    try:
        index = mirror.resolver.build_index()
        orphan_rows = descending_row_order(ref.row for key, ref in index.items() if key not in known_keys)
        if orphan_rows[:budget]:
            result.deleted = mirror.client.delete_rows(orphan_rows[:budget])
    except LedgerError as exc:
        result.prune_error = mirror.error_message(exc)
        logger.warning('Ledger orphan pruning failed: %s', result.prune_error)
