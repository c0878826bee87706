from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    status_code = 500
    code = 'SERVER_ERROR'

    def __init__(self, message: str, *, code: str | None = None, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code


class ValidationError(ServiceError):
    status_code = 400
    code = 'VALIDATION'


class AuthorizationError(ServiceError):
    status_code = 401
    code = 'UNAUTHORIZED'


class NotFoundError(ServiceError):
    status_code = 404
    code = 'NOT_FOUND'


class LockedError(ServiceError):
    status_code = 403
    code = 'LOCKED'


class AuthoritativeStoreError(ServiceError):
    status_code = 500
    code = 'DB_ERROR'


class LedgerError(Exception):
    """Failure talking to the external ledger. Never fatal to an authoritative write."""


class LedgerUnavailable(LedgerError):
    pass


class TabNotFound(LedgerError):
    pass


def forbidden(message: str = 'Forbidden') -> AuthorizationError:
    return AuthorizationError(message, code='FORBIDDEN', status_code=403)


def error_body(message: str, code: str | None = None) -> dict:
    body = {'ok': False, 'error': message}
    if code:
        body['code'] = code
    return body


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError):
        return JSONResponse(error_body(exc.message, exc.code), status_code=exc.status_code)

    @app.exception_handler(SQLAlchemyError)
    async def store_error_handler(request: Request, exc: SQLAlchemyError):
        logger.exception('Authoritative store failure on %s', request.url.path)
        return JSONResponse(error_body(str(exc.__cause__ or exc), AuthoritativeStoreError.code), status_code=500)

    @app.exception_handler(RequestValidationError)
    async def bad_body_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(error_body('Bad request body', 'BAD_JSON'), status_code=400)
