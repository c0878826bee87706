from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# SQLite only autoincrements INTEGER primary keys.
BigIntPK = BigInteger().with_variant(Integer, 'sqlite')


class Base(DeclarativeBase):
    pass


class MaterialKind(str, Enum):
    TEXTBOOK = 'textbook'
    CROSSWORD = 'crossword'


class Profile(Base):
    __tablename__ = 'profiles'

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    email: Mapped[str | None] = mapped_column(Text)
    full_name: Mapped[str | None] = mapped_column(Text)
    is_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default='false')
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default='true')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class PurchaseRequest(Base):
    __tablename__ = 'purchase_requests'
    __table_args__ = (
        CheckConstraint(
            '(is_processed AND processed_at IS NOT NULL) OR (NOT is_processed AND processed_at IS NULL)',
            name='purchase_requests_processed_at_check',
        ),
        Index('purchase_requests_created_at_idx', 'created_at'),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False)
    request_number: Mapped[str] = mapped_column(String(64), nullable=False)
    class_level: Mapped[str] = mapped_column(Text, nullable=False)
    textbook_types: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    email: Mapped[str] = mapped_column(Text, nullable=False)
    full_name: Mapped[str] = mapped_column(Text, nullable=False)
    is_processed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default='false')
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    sheet_synced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    sheet_row: Mapped[int | None] = mapped_column(Integer)
    sheet_sync_error: Mapped[str | None] = mapped_column(Text)


class Textbook(Base):
    __tablename__ = 'textbooks'

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    class_level: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default='true')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Crossword(Base):
    __tablename__ = 'crosswords'

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    class_level: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default='true')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class TextbookAccess(Base):
    __tablename__ = 'textbook_access'
    __table_args__ = (UniqueConstraint('user_id', 'textbook_id', name='textbook_access_user_textbook_uniq'),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False)
    textbook_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('textbooks.id', ondelete='CASCADE'), nullable=False)
    granted_by: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('profiles.id', ondelete='SET NULL'))
    granted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class CrosswordAccess(Base):
    __tablename__ = 'crossword_access'
    __table_args__ = (UniqueConstraint('user_id', 'crossword_id', name='crossword_access_user_crossword_uniq'),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False)
    crossword_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('crosswords.id', ondelete='CASCADE'), nullable=False)
    granted_by: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('profiles.id', ondelete='SET NULL'))
    granted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class PurchaseRequestGrant(Base):
    __tablename__ = 'purchase_request_grants'

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    request_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey('purchase_requests.id', ondelete='CASCADE'), nullable=False
    )
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False)
    kind: Mapped[str] = mapped_column(String(16), nullable=False)
    item_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    granted_by: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('profiles.id', ondelete='SET NULL'))
    granted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class AuditLog(Base):
    __tablename__ = 'audit_logs'

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    actor_principal_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('profiles.id', ondelete='SET NULL'))
    action: Mapped[str] = mapped_column(String(64), nullable=False)
    ip: Mapped[str | None] = mapped_column(Text)
    meta: Mapped[dict] = mapped_column('metadata', JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
