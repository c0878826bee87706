from __future__ import annotations

from datetime import datetime, timedelta, timezone

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.auth import Principal, principal_from_profile
from app.models import Base, Crossword, Profile, PurchaseRequest, Textbook
from app.services.ledger_sync_service import LedgerMirror
from app.services.memory_ledger_client import InMemoryLedgerClient

BASE_TIME = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


def make_session() -> Session:
    engine = create_engine(
        'sqlite+pysqlite:///:memory:',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)()


def make_mirror(ledger: InMemoryLedgerClient | None = None) -> tuple[LedgerMirror, InMemoryLedgerClient]:
    ledger = ledger or InMemoryLedgerClient()
    return LedgerMirror(ledger), ledger


def add_profile(
    db: Session,
    *,
    email: str | None = 'student@example.com',
    full_name: str | None = 'Иван Петров',
    is_admin: bool = False,
) -> Principal:
    profile = Profile(email=email, full_name=full_name, is_admin=is_admin, active=True)
    db.add(profile)
    db.commit()
    return principal_from_profile(profile)


def add_request(
    db: Session,
    *,
    user_id: int,
    request_number: str,
    class_level: str = '5-6',
    textbook_types: list[str] | None = None,
    minutes: int = 0,
) -> PurchaseRequest:
    row = PurchaseRequest(
        user_id=user_id,
        request_number=request_number,
        class_level=class_level,
        textbook_types=textbook_types if textbook_types is not None else ['учебник'],
        email='student@example.com',
        full_name='Иван Петров',
        is_processed=False,
        created_at=BASE_TIME + timedelta(minutes=minutes),
    )
    db.add(row)
    db.commit()
    return row


def add_textbook(db: Session, *, title: str, class_level: list[str], is_active: bool = True) -> Textbook:
    row = Textbook(title=title, class_level=class_level, is_active=is_active)
    db.add(row)
    db.commit()
    return row


def add_crossword(db: Session, *, title: str, class_level: list[str], is_active: bool = True) -> Crossword:
    row = Crossword(title=title, class_level=class_level, is_active=is_active)
    db.add(row)
    db.commit()
    return row


def fill_ledger(ledger: InMemoryLedgerClient, count: int, *, prefix: str = 'PR-9') -> None:
    for index in range(count):
        ledger.append([f'{prefix}{index:03d}', '', '', '', '', '', ''])
