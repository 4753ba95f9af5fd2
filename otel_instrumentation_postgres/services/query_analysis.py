"""Lexical classification of SQL statements.

The analysis is a heuristic over the raw text, not a parser: clause
keywords are detected by substring presence, so a ``WHERE`` inside a string
literal still counts as a WHERE clause.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any


class Operation(str, Enum):
    SELECT = "SELECT"
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    CREATE = "CREATE"
    ALTER = "ALTER"
    DROP = "DROP"
    UNKNOWN = "UNKNOWN"


class Complexity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class QueryType(str, Enum):
    READ = "read"
    WRITE = "write"
    SCHEMA = "schema"
    UNKNOWN = "unknown"


_QUERY_TYPES = {
    Operation.SELECT: QueryType.READ,
    Operation.INSERT: QueryType.WRITE,
    Operation.UPDATE: QueryType.WRITE,
    Operation.DELETE: QueryType.WRITE,
    Operation.CREATE: QueryType.SCHEMA,
    Operation.ALTER: QueryType.SCHEMA,
    Operation.DROP: QueryType.SCHEMA,
}

_KEYWORDS = "|".join(op.value for op in Operation if op is not Operation.UNKNOWN)
_OPERATION_PATTERN = re.compile(rf"(?:{_KEYWORDS})\b", re.IGNORECASE)
_LINE_COMMENT_PATTERN = re.compile(r"--.*$", re.MULTILINE)
_WHITESPACE_PATTERN = re.compile(r"\s+")
_TABLE_PATTERNS = (
    re.compile(r"FROM\s+[\"`]?(\w+)[\"`]?", re.IGNORECASE),
    re.compile(r"INTO\s+[\"`]?(\w+)[\"`]?", re.IGNORECASE),
    re.compile(r"UPDATE\s+[\"`]?(\w+)[\"`]?", re.IGNORECASE),
)
_PASSWORD_PATTERN = re.compile(r"password\s*=\s*['\"][^'\"]*['\"]", re.IGNORECASE)

_MEDIUM_PARAMETER_THRESHOLD = 5


@dataclass(slots=True, frozen=True)
class QueryShape:
    """Heuristic description of a statement."""

    operation: Operation = Operation.UNKNOWN
    table: str | None = None
    has_where: bool = False
    has_join: bool = False
    has_order_by: bool = False
    has_limit: bool = False
    parameter_count: int = 0
    complexity: Complexity = Complexity.LOW

    @property
    def query_type(self) -> QueryType:
        return query_type(self.operation)


def _normalise(statement: str) -> str:
    without_comments = _LINE_COMMENT_PATTERN.sub("", statement)
    return _WHITESPACE_PATTERN.sub(" ", without_comments).strip()


def _strip_leading_comments(text: str) -> str:
    remaining = text.lstrip()
    while True:
        if remaining.startswith("--"):
            _, _, remaining = remaining.partition("\n")
        elif remaining.startswith("/*"):
            end = remaining.find("*/")
            if end == -1:
                return ""
            remaining = remaining[end + 2 :]
        else:
            return remaining
        remaining = remaining.lstrip()


def looks_like_query(value: Any) -> bool:
    """Return ``True`` when ``value`` is a string starting with a known SQL keyword."""
    if not isinstance(value, str) or not value:
        return False
    return _OPERATION_PATTERN.match(_strip_leading_comments(value)) is not None


def analyze_query(statement: str) -> QueryShape:
    """Classify ``statement``; never raises."""
    if not isinstance(statement, str) or not statement:
        return QueryShape()

    clean = _normalise(statement)
    upper = clean.upper()

    keyword = _OPERATION_PATTERN.match(clean)
    operation = Operation(keyword.group(0).upper()) if keyword else Operation.UNKNOWN

    table = None
    for pattern in _TABLE_PATTERNS:
        match = pattern.search(clean)
        if match:
            table = match.group(1)
            break

    has_where = "WHERE" in upper
    has_join = "JOIN" in upper
    has_order_by = "ORDER BY" in upper
    has_limit = "LIMIT" in upper
    parameter_count = statement.count("?")

    complexity = Complexity.LOW
    if has_join or has_order_by or parameter_count > _MEDIUM_PARAMETER_THRESHOLD:
        complexity = Complexity.MEDIUM
    if has_join and has_order_by and has_where:
        complexity = Complexity.HIGH

    return QueryShape(
        operation=operation,
        table=table,
        has_where=has_where,
        has_join=has_join,
        has_order_by=has_order_by,
        has_limit=has_limit,
        parameter_count=parameter_count,
        complexity=complexity,
    )


def query_type(operation: Operation | str) -> QueryType:
    """Map an operation onto read/write/schema."""
    try:
        return _QUERY_TYPES.get(Operation(operation.upper()), QueryType.UNKNOWN)
    except (AttributeError, ValueError):
        return QueryType.UNKNOWN


def sanitize_statement(statement: str) -> str:
    """Mask inline ``password = '...'`` literals."""
    return _PASSWORD_PATTERN.sub("password=***", statement)


__all__ = [
    "Complexity",
    "Operation",
    "QueryShape",
    "QueryType",
    "analyze_query",
    "looks_like_query",
    "query_type",
    "sanitize_statement",
]
