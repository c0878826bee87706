from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

from app.config import Settings, settings
from app.dependencies import IdentityResolver, resolve_from_proxy_header
from app.errors import install_error_handlers
from app.routers import admin, requests
from app.security.headers import install_security_headers
from app.services.ledger_client import LedgerClient
from app.services.ledger_factory import build_ledger_client
from app.services.ledger_sync_service import LedgerMirror


def create_app(
    config: Settings = settings,
    *,
    ledger_client: LedgerClient | None = None,
    identity_resolver: IdentityResolver = resolve_from_proxy_header,
) -> FastAPI:
    logging.basicConfig(level=config.log_level.upper())

    app = FastAPI(title='Purchase Request Ledger')
    app.state.ledger_mirror = LedgerMirror.from_settings(ledger_client or build_ledger_client(config), config)
    app.state.identity_resolver = identity_resolver
    app.state.settings = config

    install_security_headers(app)
    install_error_handlers(app)

    app.include_router(requests.router)
    app.include_router(admin.router)

    @app.get('/robots.txt', response_class=PlainTextResponse)
    def robots_txt() -> str:
        return 'User-agent: *\nDisallow: /\n'

    return app


app = create_app()
