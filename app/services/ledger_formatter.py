"""Human-readable ledger columns for a purchase request.

The ledger copy is display-only. Every function here is pure and never
raises on unknown codes: unmapped values pass through verbatim.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any
from zoneinfo import ZoneInfo

CLASS_LEVEL_LABELS = {
    '1-2': '1-2 класс',
    '3-4': '3-4 класс',
    '5-6': '5-6 класс',
    '7': '7 класс',
    '8-9': '8-9 класс',
    '10-11': '10-11 класс (Техникум, колледж - 1й курс)',
    '12': '12 класс (Техникум, колледж)',
}

TYPE_LABELS = {
    'учебник': '📚 Учебник',
    'кроссворд': '🧩 Кроссворд',
}

TYPE_SEPARATOR = ', '
STATUS_PENDING = '⏳ Ожидает'
STATUS_PROCESSED = '✅ Обработана'
DEFAULT_TIMEZONE = 'Europe/Moscow'


def as_list(value: Any) -> list[str]:
    if value is None or value == '':
        return []
    if isinstance(value, (list, tuple, set, frozenset)):
        return [str(item) for item in value]
    return [str(value)]


def format_class_level(class_level: Any) -> str:
    parts = [part.strip() for part in ','.join(as_list(class_level)).split(',') if part.strip()]
    return ', '.join(CLASS_LEVEL_LABELS.get(part, part) for part in parts)


def format_types(types: Iterable[str] | str | None) -> str:
    return TYPE_SEPARATOR.join(TYPE_LABELS.get(str(value).strip().lower(), str(value)) for value in as_list(types))


def format_datetime(value: datetime | None, tz_name: str = DEFAULT_TIMEZONE) -> str:
    if value is None:
        return ''
    # Naive values come back from SQLite and are stored as UTC.
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(ZoneInfo(tz_name)).strftime('%d.%m.%Y, %H:%M')


def format_status(is_processed: bool, processed_at: datetime | None, tz_name: str = DEFAULT_TIMEZONE) -> str:
    if not is_processed:
        return STATUS_PENDING
    if processed_at is not None:
        return f'{STATUS_PROCESSED} · {format_datetime(processed_at, tz_name)}'
    return STATUS_PROCESSED


def format_ledger_row(request, *, include_status: bool = True, tz_name: str = DEFAULT_TIMEZONE) -> list[str]:
    row = [
        str(request.request_number or '').strip(),
        format_datetime(request.created_at, tz_name),
        format_class_level(request.class_level),
        format_types(request.textbook_types),
        str(request.email or ''),
        str(request.full_name or ''),
    ]
    if include_status:
        row.append(format_status(bool(request.is_processed), request.processed_at, tz_name))
    return row
