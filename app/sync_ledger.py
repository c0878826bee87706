from __future__ import annotations

import argparse
import logging

from app.config import settings
from app.db import SessionLocal
from app.services.ledger_factory import build_ledger_client
from app.services.ledger_reconciliation_service import reconcile_ledger, resolve_limit
from app.services.ledger_sync_service import LedgerMirror


def sync_ledger(*, limit: int | None = None, prune_orphans: bool = False) -> dict:
    mirror = LedgerMirror.from_settings(build_ledger_client(settings), settings)
    effective_limit = resolve_limit(
        limit,
        default=settings.reconcile_default_limit,
        maximum=settings.reconcile_max_limit,
    )
    with SessionLocal() as db:
        result = reconcile_ledger(db, mirror, limit=effective_limit, prune_orphans=prune_orphans)
    return result.as_dict()


def main() -> None:
    parser = argparse.ArgumentParser(description='Append purchase requests missing from the accounting ledger.')
    parser.add_argument('--limit', type=int, default=None, help='Maximum number of rows to append in this run.')
    parser.add_argument(
        '--prune-orphans',
        action='store_true',
        help='Delete ledger rows whose request number no longer exists in the database.',
    )
    args = parser.parse_args()

    logging.basicConfig(level=settings.log_level.upper())
    result = sync_ledger(limit=args.limit, prune_orphans=args.prune_orphans)
    print(
        'Ledger sync complete: '
        f"synced={result['synced']}, skipped={result['skipped']}, "
        f"failed={result['failed']}, deleted={result['deleted']}"
    )


if __name__ == '__main__':
    main()
