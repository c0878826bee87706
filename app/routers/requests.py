from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.auth import Principal
from app.db import get_db
from app.dependencies import get_current_principal, get_ledger_mirror
from app.schemas import CreateRequestBody, DeleteRequestBody, UpdateRequestBody
from app.services.ledger_sync_service import LedgerMirror
from app.services.purchase_request_service import (
    create_request,
    delete_request,
    list_own_requests,
    serialize_request,
    update_request,
)

router = APIRouter(prefix='/api/requests', tags=['requests'])


@router.get('')
def list_requests(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    rows = list_own_requests(db, principal=principal)
    return {'ok': True, 'requests': [serialize_request(row) for row in rows]}


@router.post('/create')
def create(
    body: CreateRequestBody,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    mirror: LedgerMirror = Depends(get_ledger_mirror),
):
    row, sheet = create_request(
        db,
        mirror,
        principal=principal,
        request_number=body.request_number,
        class_level=body.class_level,
        textbook_types=body.textbook_types,
        email=body.email,
        full_name=body.full_name,
        created_at=body.created_at,
    )
    return {'ok': True, 'request': serialize_request(row), 'sheet': sheet.as_dict()}


@router.post('/update')
def update(
    body: UpdateRequestBody,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    mirror: LedgerMirror = Depends(get_ledger_mirror),
):
    row, sheet = update_request(
        db,
        mirror,
        principal=principal,
        request_id=body.id,
        request_number=body.request_number,
        class_level=body.class_level,
        textbook_types=body.textbook_types,
        email=body.email,
        full_name=body.full_name,
        created_at=body.created_at,
    )
    return {'ok': True, 'request': serialize_request(row), 'sheet': sheet.as_dict()}


@router.post('/delete')
def delete(
    body: DeleteRequestBody,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    mirror: LedgerMirror = Depends(get_ledger_mirror),
):
    request_number, sheet = delete_request(db, mirror, principal=principal, request_id=body.id)
    return {'ok': True, 'deleted': True, 'request_number': request_number, 'sheet': sheet.as_dict()}
