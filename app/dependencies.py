from collections.abc import Callable

from fastapi import Depends, Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.auth import Principal, principal_from_profile
from app.config import settings
from app.db import get_db
from app.errors import AuthorizationError, forbidden
from app.models import Profile
from app.services.ledger_sync_service import LedgerMirror

IdentityResolver = Callable[[Request, Session], Principal | None]


def get_ledger_mirror(request: Request) -> LedgerMirror:
    return request.app.state.ledger_mirror


def get_client_ip(request: Request) -> str | None:
    forwarded_for = request.headers.get('x-forwarded-for')
    if forwarded_for:
        return forwarded_for.split(',')[0].strip()
    if request.client:
        return request.client.host
    return None


def resolve_from_proxy_header(request: Request, db: Session) -> Principal | None:
    config = getattr(request.app.state, 'settings', settings)
    # The proxy must strip this header from client requests; off unless enabled.
    if not config.trust_identity_header:
        return None
    raw = (request.headers.get(config.identity_header) or '').strip()
    if not raw.isdigit():
        return None
    profile = db.execute(select(Profile).where(Profile.id == int(raw))).scalar_one_or_none()
    if not profile:
        return None
    return principal_from_profile(profile)


def get_current_principal(request: Request, db: Session = Depends(get_db)) -> Principal:
    resolver: IdentityResolver = getattr(request.app.state, 'identity_resolver', resolve_from_proxy_header)
    principal = resolver(request, db)
    if not principal:
        raise AuthorizationError('Unauthorized')
    if not principal.active:
        raise forbidden()
    return principal


def require_admin(principal: Principal = Depends(get_current_principal)) -> Principal:
    if not principal.is_admin:
        raise forbidden()
    return principal
