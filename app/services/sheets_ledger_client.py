from __future__ import annotations

import json
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from urllib.error import HTTPError, URLError
from urllib.parse import quote, urlencode
from urllib.request import Request, urlopen

from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request as GoogleAuthRequest
from google.oauth2 import service_account

from app.errors import LedgerError, LedgerUnavailable, TabNotFound
from app.services.ledger_client import (
    LedgerRows,
    column_letter,
    descending_row_order,
    full_span,
    parse_row_number,
)

SHEETS_SCOPES = ['https://www.googleapis.com/auth/spreadsheets']


def static_token_provider(token: str | None) -> Callable[[], str]:
    def _token() -> str:
        if not token:
            raise LedgerUnavailable('LEDGER_ACCESS_TOKEN or LEDGER_SERVICE_ACCOUNT_FILE is required')
        return token

    return _token


class ServiceAccountTokenProvider:
    def __init__(self, path: str) -> None:
        self.path = path
        self._credentials = None

    def __call__(self) -> str:
        try:
            if self._credentials is None:
                self._credentials = service_account.Credentials.from_service_account_file(
                    self.path,
                    scopes=SHEETS_SCOPES,
                )
            if not self._credentials.valid:
                self._credentials.refresh(GoogleAuthRequest())
        except (GoogleAuthError, OSError, ValueError) as exc:
            raise LedgerUnavailable(f'Ledger credentials error: {exc}') from exc
        return self._credentials.token


@dataclass
class SheetsTransport:
    base_url: str
    spreadsheet_id: str | None
    token_provider: Callable[[], str]
    timeout_seconds: int

    def request(self, method: str, path: str, *, params: dict | None = None, payload: dict | None = None) -> dict:
        if not self.spreadsheet_id:
            raise LedgerUnavailable('LEDGER_SPREADSHEET_ID is not configured')

        url = f"{self.base_url.rstrip('/')}/v4/spreadsheets/{quote(self.spreadsheet_id, safe='')}{path}"
        if params:
            url = f'{url}?{urlencode(params)}'
        headers = {
            'Authorization': f'Bearer {self.token_provider()}',
            'Content-Type': 'application/json',
        }
        req = Request(
            url=url,
            data=json.dumps(payload).encode('utf-8') if payload is not None else None,
            headers=headers,
            method=method,
        )
        try:
            with urlopen(req, timeout=self.timeout_seconds) as response:
                raw = response.read().decode('utf-8')
        except HTTPError as exc:
            body = exc.read().decode('utf-8', errors='ignore') if exc.fp else ''
            raise LedgerUnavailable(f'Ledger API error {exc.code} on {method} {path}: {body}') from exc
        except URLError as exc:
            raise LedgerUnavailable(f'Ledger API network error on {method} {path}: {exc.reason}') from exc
        except OSError as exc:
            # Socket timeouts while reading surface here rather than as URLError.
            raise LedgerUnavailable(f'Ledger API network error on {method} {path}: {exc}') from exc

        if not raw:
            return {}
        try:
            return json.loads(raw)
        except ValueError as exc:
            raise LedgerError(f'Ledger API returned invalid JSON on {method} {path}') from exc


def quote_tab(tab: str) -> str:
    return "'" + tab.replace("'", "''") + "'"


class SheetsLedgerClient:
    def __init__(self, transport: SheetsTransport, *, tab: str, column_count: int = 7) -> None:
        self.transport = transport
        self.tab = tab
        self.column_count = column_count

    def _range(self, cells: str) -> str:
        return f'{quote_tab(self.tab)}!{cells}'

    def _values_path(self, a1_range: str, suffix: str = '') -> str:
        return f"/values/{quote(a1_range, safe='')}{suffix}"

    def append(self, values: Sequence[str]) -> int | None:
        response = self.transport.request(
            'POST',
            self._values_path(self._range(full_span(self.column_count)), ':append'),
            params={'valueInputOption': 'USER_ENTERED', 'insertDataOption': 'INSERT_ROWS'},
            payload={'values': [list(values)]},
        )
        updated_range = (response.get('updates') or {}).get('updatedRange')
        return parse_row_number(updated_range)

    def read_range(self, columns: str) -> LedgerRows:
        a1_range = self._range(columns)
        response = self.transport.request('GET', self._values_path(a1_range))
        start_row = _first_row(response.get('range')) or 1
        return [
            (start_row + offset, [str(cell) for cell in (row or [])])
            for offset, row in enumerate(response.get('values') or [])
        ]

    def update_range(self, row: int, values: Sequence[str]) -> None:
        if row < 1:
            raise ValueError('Ledger rows are 1-based')
        a1_range = self._range(f'A{row}:{column_letter(self.column_count)}{row}')
        self.transport.request(
            'PUT',
            self._values_path(a1_range),
            params={'valueInputOption': 'USER_ENTERED'},
            payload={'range': a1_range, 'majorDimension': 'ROWS', 'values': [list(values)]},
        )

    def delete_rows(self, row_indices: Iterable[int]) -> int:
        rows = descending_row_order(row_indices)
        if not rows:
            return 0
        sheet_id = self.resolve_tab_id(self.tab)
        requests = [
            {
                'deleteDimension': {
                    'range': {
                        'sheetId': sheet_id,
                        'dimension': 'ROWS',
                        'startIndex': row - 1,
                        'endIndex': row,
                    }
                }
            }
            for row in rows
        ]
        self.transport.request('POST', ':batchUpdate', payload={'requests': requests})
        return len(rows)

    def resolve_tab_id(self, tab_title: str) -> int:
        response = self.transport.request('GET', '', params={'fields': 'sheets.properties(sheetId,title)'})
        for sheet in response.get('sheets', []):
            properties = sheet.get('properties') or {}
            if properties.get('title') == tab_title:
                return int(properties.get('sheetId', 0))
        raise TabNotFound(f'Ledger tab not found: {tab_title}')


def _first_row(a1_range: str | None) -> int | None:
    if not a1_range or '!' not in a1_range:
        return None
    cells = a1_range.rsplit('!', 1)[1].split(':', 1)[0]
    digits = ''.join(char for char in cells if char.isdigit())
    return int(digits) if digits else None
