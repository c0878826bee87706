from __future__ import annotations

from sqlalchemy.orm import Session

from app.models import AuditLog

REQUESTS_PROCESSED = 'PURCHASE_REQUESTS_PROCESSED'
REQUESTS_UNPROCESSED = 'PURCHASE_REQUESTS_UNPROCESSED'
LEDGER_RECONCILED = 'LEDGER_RECONCILED'
USER_ACCESS_UPDATED = 'USER_ACCESS_UPDATED'


def log_audit(
    db: Session,
    *,
    actor_principal_id: int | None,
    action: str,
    ip: str | None,
    metadata: dict | None = None,
) -> None:
    """Queue an admin action record; the caller owns the commit."""
    db.add(
        AuditLog(
            actor_principal_id=actor_principal_id,
            action=action,
            ip=ip,
            meta=metadata or {},
        )
    )
