from __future__ import annotations

from collections.abc import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from app.config import settings


def make_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


engine = create_engine(settings.database_url_normalized, pool_pre_ping=True)
SessionLocal = make_session_factory(engine)


def get_db() -> Iterator[Session]:
    with SessionLocal() as db:
        yield db
