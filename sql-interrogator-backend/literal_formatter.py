"""
Literal Formatter - SQL Text Literals for Generated WHERE Clauses
=================================================================

Renders a Python value as literal SQL text for direct embedding in a
generated statement. This is a text renderer, NOT a parameter binding
mechanism: the only escaping performed is doubling single quotes inside
strings.

Every value is first classified into a closed set of literal kinds, and
each kind has exactly one rendering rule:

    TEXT      str                    'text' with ' doubled
    BOOLEAN   bool                   1 / 0
    DATETIME  datetime, date         'yyyy-MM-dd HH:mm:ss'
    NUMERIC   int, float, Decimal    str(value), unquoted
    NULL      None                   NULL
    FALLBACK  anything else (UUID)   str(value), unquoted

bool is checked before NUMERIC because bool is a subclass of int.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

SQL_DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"


class LiteralKind(Enum):
    TEXT = "text"
    BOOLEAN = "boolean"
    DATETIME = "datetime"
    NUMERIC = "numeric"
    NULL = "null"
    FALLBACK = "fallback"


def classify_literal(value: Any) -> LiteralKind:
    """Map a runtime value onto its LiteralKind."""
    if value is None:
        return LiteralKind.NULL
    if isinstance(value, str):
        return LiteralKind.TEXT
    if isinstance(value, bool):
        return LiteralKind.BOOLEAN
    if isinstance(value, (datetime, date)):
        return LiteralKind.DATETIME
    if isinstance(value, (int, float, Decimal)):
        return LiteralKind.NUMERIC
    return LiteralKind.FALLBACK


def quote_text(text: str) -> str:
    return "'" + text.replace("'", "''") + "'"


def format_datetime(value: date) -> str:
    """Seconds precision, 24-hour clock; a bare date renders at midnight."""
    if not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day)
    return "'" + value.strftime(SQL_DATETIME_FORMAT) + "'"


def format_literal(value: Any) -> str:
    """
    Render value as SQL literal text.

    Callers building predicates should emit `IS NULL` for None themselves;
    NULL is rendered here only so the mapping stays total.
    """
    kind = classify_literal(value)

    if kind is LiteralKind.TEXT:
        return quote_text(value)
    if kind is LiteralKind.BOOLEAN:
        return "1" if value else "0"
    if kind is LiteralKind.DATETIME:
        return format_datetime(value)
    if kind is LiteralKind.NULL:
        return "NULL"
    # NUMERIC and FALLBACK: default textual representation, unquoted
    return str(value)
