"""
Parameter Inference - Typed Query Parameters from Raw Strings
=============================================================

Reverse of the WHERE clause generation in sql_generator.py.

Given generated SQL text and a {field_name: raw_string} map (for example
values typed into a form), this module:

    1. Counts the WHERE conditions of the statement
    2. Checks that the supplied fields are exactly the fields the
       conditions filter on (case-insensitive, leading @ ignored)
    3. Converts every raw string to the first type it parses as

PARSE CASCADE (first success wins):
    INTEGER   32-bit signed integer                  "42"
    DECIMAL   fixed-point, no exponent               "99.99", "1,000.5"
    FLOAT     exponent forms, NaN, Infinity          "1e5", "NaN"
    DATETIME  ISO 8601 and common US/long forms      "2023-10-01T12:00:00"
    BOOLEAN   true / false (any case)                "True"
    GUID      D, N, B and P forms                    "550e8400-e29b-..."
    TEXT      single-quoted, '' unescaped            "'O''Reilly'"
    NULL      the token NULL (any case)              "null"
    RAW       anything else, verbatim                "Value1"

The ordering is greedy: "30" is always an INTEGER even if the
column holds text. Callers depend on this precedence.

Limitations:
    - Conditions are split on the literal " AND "; a string literal that
      contains " AND " is counted as two conditions.
    - Python has one binary float type, so single and double precision
      parsing are the same step.
"""

import logging
import re
import uuid
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, List, Mapping, NamedTuple, Optional

import sqlparse

logger = logging.getLogger(__name__)

INT32_MIN = -(2 ** 31)
INT32_MAX = 2 ** 31 - 1
DECIMAL_MAX = Decimal("79228162514264337593543950335")

_WHERE_KEYWORD = "WHERE "
_CONDITION_SEPARATOR = " AND "

_INTEGER_RE = re.compile(r"^\s*[+-]?\d+\s*$")
# Digits with optional thousands separators and an optional fractional part
_DECIMAL_RE = re.compile(r"^\s*[+-]?(?:\d[\d,]*(?:\.\d*)?|\.\d+)\s*$")
_FLOAT_RE = re.compile(r"^\s*[+-]?(?:\d[\d,]*(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?\s*$")
_FLOAT_SYMBOL_RE = re.compile(r"^\s*(?:[+-]?(?:infinity|∞)|nan)\s*$", re.IGNORECASE)
_GUID_RE = re.compile(
    r"^(?:"
    r"[0-9a-fA-F]{32}"
    r"|[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}"
    r"|\{[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}\}"
    r"|\([0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}\)"
    r")$"
)

# [schema_or_table].[column] on the left-hand side of a condition
_QUALIFIED_FIELD_RE = re.compile(r"^\s*\[([^\]]*)\]\s*\.\s*\[([^\]]*)\]")
# Bare left-hand token: a single bracketed identifier or a plain word
_BARE_FIELD_RE = re.compile(r"^\s*(?:\[([^\]]*)\]|([^\s=<>!]+))")

# Tried after datetime.fromisoformat()
_DATETIME_FORMATS = (
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %I:%M:%S %p",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y",
    "%Y/%m/%d %H:%M:%S",
    "%Y/%m/%d",
    "%d %B %Y",
    "%B %d, %Y",
    "%d %b %Y",
    "%b %d, %Y",
)


class ValueKind(Enum):
    INTEGER = "integer"
    DECIMAL = "decimal"
    FLOAT = "float"
    DATETIME = "datetime"
    BOOLEAN = "boolean"
    GUID = "guid"
    TEXT = "text"
    NULL = "null"
    RAW = "raw"


class InferredValue(NamedTuple):
    kind: ValueKind
    value: Any


# =============================================================================
# PARSERS (each returns None when the string does not parse)
# =============================================================================

def _parse_int32(raw: str) -> Optional[int]:
    if not _INTEGER_RE.match(raw):
        return None
    value = int(raw.strip())
    if INT32_MIN <= value <= INT32_MAX:
        return value
    return None


def _parse_decimal(raw: str) -> Optional[Decimal]:
    if not _DECIMAL_RE.match(raw):
        return None
    try:
        value = Decimal(raw.strip().replace(",", ""))
    except InvalidOperation:
        return None
    if abs(value) > DECIMAL_MAX:
        return None
    return value


def _parse_float(raw: str) -> Optional[float]:
    if _FLOAT_SYMBOL_RE.match(raw):
        text = raw.strip().lower().replace("∞", "infinity")
        return float(text)
    if not _FLOAT_RE.match(raw):
        return None
    return float(raw.strip().replace(",", ""))


def _parse_datetime(raw: str) -> Optional[datetime]:
    text = raw.strip()
    if not text:
        return None
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        pass
    for fmt in _DATETIME_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def _parse_bool(raw: str) -> Optional[bool]:
    text = raw.strip().lower()
    if text == "true":
        return True
    if text == "false":
        return False
    return None


def _parse_guid(raw: str) -> Optional[uuid.UUID]:
    text = raw.strip()
    if not _GUID_RE.match(text):
        return None
    return uuid.UUID(text.strip("{}()"))


def _parse_quoted(raw: str) -> Optional[str]:
    if len(raw) >= 2 and raw.startswith("'") and raw.endswith("'"):
        return raw[1:-1].replace("''", "'")
    return None


def infer_value(raw: str) -> InferredValue:
    """Run the parse cascade on one raw string."""
    parsed = _parse_int32(raw)
    if parsed is not None:
        return InferredValue(ValueKind.INTEGER, parsed)

    parsed = _parse_decimal(raw)
    if parsed is not None:
        return InferredValue(ValueKind.DECIMAL, parsed)

    parsed = _parse_float(raw)
    if parsed is not None:
        return InferredValue(ValueKind.FLOAT, parsed)

    parsed = _parse_datetime(raw)
    if parsed is not None:
        return InferredValue(ValueKind.DATETIME, parsed)

    parsed = _parse_bool(raw)
    if parsed is not None:
        return InferredValue(ValueKind.BOOLEAN, parsed)

    parsed = _parse_guid(raw)
    if parsed is not None:
        return InferredValue(ValueKind.GUID, parsed)

    parsed = _parse_quoted(raw)
    if parsed is not None:
        return InferredValue(ValueKind.TEXT, parsed)

    if raw.strip().upper() == "NULL":
        return InferredValue(ValueKind.NULL, None)

    return InferredValue(ValueKind.RAW, raw)


# =============================================================================
# WHERE CLAUSE ANALYSIS
# =============================================================================

def extract_where_conditions(sql: str) -> List[str]:
    """
    Ordered WHERE conditions of the first statement in sql that has any.

    Generated scripts start with `USE [db];` and may be followed by a
    comment or a batch separator, so the text is split into statements and
    the first one carrying a WHERE clause is searched.
    """
    for statement in sqlparse.split(sql):
        position = statement.upper().find(_WHERE_KEYWORD)
        if position >= 0:
            break
    else:
        return []

    where_text = statement[position + len(_WHERE_KEYWORD):]
    where_text = where_text.strip().rstrip(";")
    return [c.strip() for c in where_text.split(_CONDITION_SEPARATOR) if c.strip()]


def extract_field_name(condition: str) -> str:
    """
    Field a condition filters on.

    [Table].[Column] = ...  -> Column
    [Column] = ...          -> Column
    Column = @Column        -> Column
    """
    match = _QUALIFIED_FIELD_RE.match(condition)
    if match:
        return match.group(2)

    match = _BARE_FIELD_RE.match(condition)
    if match:
        return match.group(1) if match.group(1) is not None else match.group(2)
    return condition.strip()


def _strip_marker(name: str) -> str:
    return name[1:] if name.startswith("@") else name


# =============================================================================
# PUBLIC API
# =============================================================================

def generate_parameters(sql: Optional[str], raw_values: Optional[Mapping[str, str]]) -> Dict[str, Any]:
    """
    Typed parameters for the WHERE clause of sql.

    Args:
        sql: Statement text, typically from generate_select_statement()
        raw_values: {field_name: raw_string}; keys may carry a leading @

    Returns:
        {"@" + field_name: typed_value}, in the order of raw_values.
        Empty if sql is blank or raw_values is empty.

    Raises:
        ValueError: the number of values differs from the number of
            conditions, or the field names differ from the condition fields
    """
    if not sql or not sql.strip() or not raw_values:
        return {}

    conditions = extract_where_conditions(sql)
    if len(raw_values) != len(conditions):
        raise ValueError(
            f"Parameter count mismatch: the statement has {len(conditions)} WHERE "
            f"condition(s) but {len(raw_values)} value(s) were supplied."
        )

    sql_fields = {extract_field_name(c).lower(): extract_field_name(c) for c in conditions}
    supplied_fields = {_strip_marker(k).lower(): _strip_marker(k) for k in raw_values}

    missing = [sql_fields[k] for k in sql_fields if k not in supplied_fields]
    extra = [supplied_fields[k] for k in supplied_fields if k not in sql_fields]
    if missing or extra:
        problems = []
        if missing:
            problems.append(f"Missing fields: {', '.join(missing)}")
        if extra:
            problems.append(f"Extra fields: {', '.join(extra)}")
        raise ValueError(
            "Parameters do not match the WHERE clause fields. " + "; ".join(problems)
        )

    result: Dict[str, Any] = {}
    for key, raw in raw_values.items():
        inferred = infer_value(raw)
        name = "@" + _strip_marker(key)
        result[name] = inferred.value
        logger.debug(f"  {name} <- {raw!r} ({inferred.kind.value})")

    logger.info(f"Inferred {len(result)} parameter(s) from WHERE clause")
    return result


def describe_parameters(raw_values: Mapping[str, str]) -> Dict[str, str]:
    """{"@" + field_name: kind name}, for reporting what each raw value became."""
    return {
        "@" + _strip_marker(key): infer_value(raw).kind.value
        for key, raw in raw_values.items()
    }
