from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from app.errors import NotFoundError
from app.models import (
    Crossword,
    CrosswordAccess,
    MaterialKind,
    Profile,
    PurchaseRequest,
    PurchaseRequestGrant,
    Textbook,
    TextbookAccess,
)
from app.services.ledger_formatter import as_list

# Unrecognized type strings match no kind and are ignored.
KIND_ALIASES = {
    MaterialKind.TEXTBOOK: frozenset({'учебник', 'textbook'}),
    MaterialKind.CROSSWORD: frozenset({'кроссворд', 'crossword'}),
}

KIND_MARKERS = {
    MaterialKind.TEXTBOOK: '📚',
    MaterialKind.CROSSWORD: '🧩',
}


@dataclass(frozen=True)
class _KindTables:
    material: type
    access: type
    material_column: str


_TABLES = {
    MaterialKind.TEXTBOOK: _KindTables(Textbook, TextbookAccess, 'textbook_id'),
    MaterialKind.CROSSWORD: _KindTables(Crossword, CrosswordAccess, 'crossword_id'),
}


@dataclass
class GrantResult:
    labels: list[str] = field(default_factory=list)
    created: int = 0


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def material_label(kind: MaterialKind, title: str) -> str:
    return f'{KIND_MARKERS[kind]} {title}'


def requested_class_levels(request: PurchaseRequest) -> list[str]:
    return [level.strip() for level in as_list(request.class_level) if level.strip()]


def requested_kinds(textbook_types: Iterable[str] | str | None) -> list[MaterialKind]:
    tokens = {value.strip().lower() for value in as_list(textbook_types)}
    return [kind for kind, aliases in KIND_ALIASES.items() if tokens & aliases]


def matching_materials(db: Session, *, kind: MaterialKind, class_levels: Iterable[str]) -> list:
    model = _TABLES[kind].material
    wanted = set(class_levels)
    if not wanted:
        return []
    candidates = db.execute(select(model).where(model.is_active.is_(True)).order_by(model.id.asc())).scalars().all()
    return [material for material in candidates if wanted.intersection(as_list(material.class_level))]


def upsert_grant(
    db: Session,
    *,
    kind: MaterialKind,
    user_id: int,
    material_id: int,
    granted_by: int | None,
    granted_at: datetime | None = None,
) -> bool:
    """Grant one material. An existing grant is left as is, whoever created it."""
    tables = _TABLES[kind]
    column = getattr(tables.access, tables.material_column)
    existing = db.execute(
        select(tables.access.id).where(tables.access.user_id == user_id, column == material_id)
    ).first()
    if existing:
        return False
    db.add(
        tables.access(
            user_id=user_id,
            granted_by=granted_by,
            granted_at=granted_at or _now(),
            **{tables.material_column: material_id},
        )
    )
    db.flush()
    return True


def delete_grants(
    db: Session,
    *,
    kind: MaterialKind,
    user_id: int,
    material_ids: Iterable[int] | None = None,
    granted_by: int | None = None,
) -> int:
    tables = _TABLES[kind]
    stmt = delete(tables.access).where(tables.access.user_id == user_id)
    if granted_by is not None:
        stmt = stmt.where(tables.access.granted_by == granted_by)
    if material_ids is not None:
        ids = list(material_ids)
        if not ids:
            return 0
        stmt = stmt.where(getattr(tables.access, tables.material_column).in_(ids))
    result = db.execute(stmt.execution_options(synchronize_session=False))
    return result.rowcount or 0


def grant_for_request(db: Session, request: PurchaseRequest, *, admin_id: int) -> GrantResult:
    result = GrantResult()
    levels = requested_class_levels(request)
    history: list[PurchaseRequestGrant] = []
    granted_at = _now()

    for kind in requested_kinds(request.textbook_types):
        for material in matching_materials(db, kind=kind, class_levels=levels):
            if upsert_grant(
                db,
                kind=kind,
                user_id=request.user_id,
                material_id=material.id,
                granted_by=admin_id,
                granted_at=granted_at,
            ):
                result.created += 1
            label = material_label(kind, material.title)
            if label not in result.labels:
                result.labels.append(label)
            history.append(
                PurchaseRequestGrant(
                    request_id=request.id,
                    user_id=request.user_id,
                    kind=kind.value,
                    item_id=material.id,
                    title=material.title,
                    granted_by=admin_id,
                    granted_at=granted_at,
                )
            )

    db.execute(delete(PurchaseRequestGrant).where(PurchaseRequestGrant.request_id == request.id))
    db.add_all(history)
    db.flush()
    return result


def revoke_for_request(db: Session, request: PurchaseRequest, *, admin_id: int) -> int:
    """Remove every grant this admin gave the request's user. No prior state is restored."""
    removed = 0
    for kind in MaterialKind:
        removed += delete_grants(db, kind=kind, user_id=request.user_id, granted_by=admin_id)
    db.execute(delete(PurchaseRequestGrant).where(PurchaseRequestGrant.request_id == request.id))
    db.flush()
    return removed


def set_user_access(
    db: Session,
    *,
    user_id: int,
    textbook_ids: Iterable[int],
    crossword_ids: Iterable[int],
    admin_id: int,
) -> dict:
    if not db.execute(select(Profile.id).where(Profile.id == user_id)).first():
        raise NotFoundError('User not found')

    granted = 0
    revoked = 0
    for kind, ids in ((MaterialKind.TEXTBOOK, textbook_ids), (MaterialKind.CROSSWORD, crossword_ids)):
        tables = _TABLES[kind]
        wanted = {int(value) for value in ids}
        if wanted:
            found = set(db.execute(select(tables.material.id).where(tables.material.id.in_(wanted))).scalars().all())
            if found != wanted:
                raise NotFoundError(f'{kind.value.capitalize()} not found: {sorted(wanted - found)[0]}')

        column = getattr(tables.access, tables.material_column)
        current = set(db.execute(select(column).where(tables.access.user_id == user_id)).scalars().all())
        revoked += delete_grants(db, kind=kind, user_id=user_id, material_ids=current - wanted)
        for material_id in sorted(wanted - current):
            if upsert_grant(db, kind=kind, user_id=user_id, material_id=material_id, granted_by=admin_id):
                granted += 1

    db.flush()
    return {'granted': granted, 'revoked': revoked}


def granted_materials_by_request(db: Session, request_ids: list[int]) -> dict[int, list[str]]:
    labels: dict[int, list[str]] = {request_id: [] for request_id in request_ids}
    if not request_ids:
        return labels
    rows = db.execute(
        select(PurchaseRequestGrant.request_id, PurchaseRequestGrant.kind, PurchaseRequestGrant.title)
        .where(PurchaseRequestGrant.request_id.in_(request_ids))
        .order_by(PurchaseRequestGrant.id.asc())
    ).all()
    for row in rows:
        try:
            kind = MaterialKind(row.kind)
        except ValueError:
            continue
        label = material_label(kind, row.title)
        if label not in labels[row.request_id]:
            labels[row.request_id].append(label)
    return labels
