from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from app.config import Settings
from app.errors import LedgerError
from app.models import PurchaseRequest
from app.services.ledger_client import LedgerClient
from app.services.ledger_formatter import DEFAULT_TIMEZONE, format_ledger_row
from app.services.ledger_row_resolver import LedgerRowResolver

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


@dataclass
class LedgerOutcome:
    ok: bool
    row: int | None = None
    error: str | None = None
    deleted_rows: int | None = None

    def as_dict(self) -> dict:
        result: dict = {'ok': self.ok, 'row': self.row}
        if self.deleted_rows is not None:
            result['deleted_rows'] = self.deleted_rows
        if self.error:
            result['error'] = self.error
        return result


class LedgerMirror:
    """Formatter, resolver and client wired together for one ledger tab."""

    def __init__(
        self,
        client: LedgerClient,
        *,
        key_prefix: str = 'PR-',
        include_status: bool = True,
        tz_name: str = DEFAULT_TIMEZONE,
        error_max_length: int = 500,
    ) -> None:
        self.client = client
        self.resolver = LedgerRowResolver(client, key_prefix=key_prefix)
        self.include_status = include_status
        self.tz_name = tz_name
        self.error_max_length = error_max_length

    @classmethod
    def from_settings(cls, client: LedgerClient, config: Settings) -> LedgerMirror:
        return cls(
            client,
            key_prefix=config.request_number_prefix,
            include_status=config.ledger_include_status,
            tz_name=config.display_timezone,
            error_max_length=config.sync_error_max_length,
        )

    @property
    def key_prefix(self) -> str:
        return self.resolver.key_prefix

    def row_values(self, request: PurchaseRequest) -> list[str]:
        return format_ledger_row(request, include_status=self.include_status, tz_name=self.tz_name)

    def append(self, request: PurchaseRequest) -> int | None:
        return self.client.append(self.row_values(request))

    def upsert(self, request: PurchaseRequest) -> int | None:
        values = self.row_values(request)
        found = self.resolver.find(request.request_number)
        if found is None:
            # Never synced or removed by hand from the tab.
            return self.client.append(values)
        # Last write wins; the current row content is not compared first.
        self.client.update_range(found.row, values)
        return found.row

    def remove(self, request_number: str) -> tuple[int | None, int]:
        found = self.resolver.find(request_number)
        if found is None:
            return None, 0
        return found.row, self.client.delete_rows({found.row})

    def error_message(self, exc: BaseException) -> str:
        message = str(exc).strip() or exc.__class__.__name__
        return message[: self.error_max_length]


def mark_synced(request: PurchaseRequest, row: int | None) -> None:
    request.sheet_synced_at = _now()
    request.sheet_row = row
    request.sheet_sync_error = None


def mark_sync_failed(request: PurchaseRequest, message: str) -> None:
    request.sheet_synced_at = None
    request.sheet_row = None
    request.sheet_sync_error = message


def mirror_request(
    db: Session,
    mirror: LedgerMirror,
    request: PurchaseRequest,
    write: Callable[[PurchaseRequest], int | None],
) -> LedgerOutcome:
    """Run one ledger write for an already committed request and stamp the result."""
    try:
        row = write(request)
    except LedgerError as exc:
        message = mirror.error_message(exc)
        logger.warning('Ledger sync failed for %s: %s', request.request_number, message)
        mark_sync_failed(request, message)
        db.commit()
        return LedgerOutcome(ok=False, error=message)

    mark_synced(request, row)
    db.commit()
    return LedgerOutcome(ok=True, row=row)
