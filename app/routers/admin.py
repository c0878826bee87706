from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.auth import Principal
from app.db import get_db
from app.dependencies import get_client_ip, get_ledger_mirror, require_admin
from app.errors import LedgerError, ServiceError
from app.schemas import SetProcessedBody, UserAccessBody
from app.services.access_grant_service import set_user_access
from app.services.audit_service import (
    LEDGER_RECONCILED,
    REQUESTS_PROCESSED,
    REQUESTS_UNPROCESSED,
    USER_ACCESS_UPDATED,
    log_audit,
)
from app.services.ledger_reconciliation_service import reconcile_ledger, resolve_limit
from app.services.ledger_sync_service import LedgerMirror
from app.services.request_processing_service import list_requests_for_admin, set_requests_processed

router = APIRouter(prefix='/api/admin', tags=['admin'])


@router.get('/requests')
def list_requests(
    status: str = 'all',
    name: str | None = None,
    email: str | None = None,
    include_materials: bool = False,
    _: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    data = list_requests_for_admin(
        db,
        status=status,
        name=name,
        email=email,
        include_materials=include_materials,
    )
    return {'ok': True, **data}


@router.patch('/requests')
def set_processed(
    body: SetProcessedBody,
    request: Request,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    results = set_requests_processed(
        db,
        request_ids=body.ids,
        is_processed=body.is_processed,
        admin_id=principal.id,
    )

    log_audit(
        db,
        actor_principal_id=principal.id,
        action=REQUESTS_PROCESSED if body.is_processed else REQUESTS_UNPROCESSED,
        ip=get_client_ip(request),
        metadata={
            'ids': body.ids,
            'failed': [request_id for request_id, result in results.items() if not result['ok']],
        },
    )
    db.commit()
    return {'ok': True, 'updated': True, 'results': results}


@router.post('/requests/sync-sheet')
def sync_sheet(
    request: Request,
    limit: int | None = None,
    prune_orphans: bool = False,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
    mirror: LedgerMirror = Depends(get_ledger_mirror),
):
    config = request.app.state.settings
    effective_limit = resolve_limit(
        limit,
        default=config.reconcile_default_limit,
        maximum=config.reconcile_max_limit,
    )
    try:
        result = reconcile_ledger(db, mirror, limit=effective_limit, prune_orphans=prune_orphans)
    except LedgerError as exc:
        raise ServiceError(mirror.error_message(exc), code='LEDGER_UNAVAILABLE', status_code=502) from exc

    log_audit(
        db,
        actor_principal_id=principal.id,
        action=LEDGER_RECONCILED,
        ip=get_client_ip(request),
        metadata=result.as_dict(),
    )
    db.commit()
    return {'ok': True, **result.as_dict()}


@router.post('/users/access')
def update_user_access(
    body: UserAccessBody,
    request: Request,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    changes = set_user_access(
        db,
        user_id=body.user_id,
        textbook_ids=body.textbook_ids,
        crossword_ids=body.crossword_ids,
        admin_id=principal.id,
    )

    log_audit(
        db,
        actor_principal_id=principal.id,
        action=USER_ACCESS_UPDATED,
        ip=get_client_ip(request),
        metadata={'user_id': body.user_id, **changes},
    )
    db.commit()
    return {'ok': True, 'saved': True, **changes}
