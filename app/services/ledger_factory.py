from __future__ import annotations

from app.config import Settings
from app.services.ledger_client import LedgerClient
from app.services.memory_ledger_client import InMemoryLedgerClient
from app.services.sheets_ledger_client import (
    ServiceAccountTokenProvider,
    SheetsLedgerClient,
    SheetsTransport,
    static_token_provider,
)


def build_ledger_client(config: Settings) -> LedgerClient:
    backend = config.ledger_backend.strip().lower()
    if backend == 'memory':
        return InMemoryLedgerClient(tab=config.ledger_tab, column_count=config.ledger_column_count)

    if config.ledger_service_account_file:
        token_provider = ServiceAccountTokenProvider(config.ledger_service_account_file)
    else:
        token_provider = static_token_provider(config.ledger_access_token)
    transport = SheetsTransport(
        base_url=config.ledger_api_base_url,
        spreadsheet_id=config.ledger_spreadsheet_id,
        token_provider=token_provider,
        timeout_seconds=config.ledger_timeout_seconds,
    )
    return SheetsLedgerClient(transport, tab=config.ledger_tab, column_count=config.ledger_column_count)
