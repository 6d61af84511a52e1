"""
SQL Generator - SELECT Statement Assembly from a Schema Snapshot
================================================================

Given a list of columns (possibly spread over several tables) and a schema
snapshot, writes a SQL Server SELECT statement that:

    1. Selects every requested column, in order, duplicates included
    2. Anchors FROM on the table of the first column (the root table)
    3. LEFT JOINs every table needed to reach the other requested tables,
       including intermediate hops whose columns were not requested
    4. Optionally appends one WHERE line built from (table, column, value)
       parameters, rendered as text literals

Output shape (one clause per line, each line ends with a newline):

    USE [Db];
    SELECT [T1].[C1] AS [T1.C1], [T2].[C2] AS [T2.C2]
    FROM [Db].[dbo].[T1] AS [T1]
    LEFT JOIN [Db].[dbo].[T2] AS [T2]
        ON [T1].[Key] = [T2].[ForeignKey]
    WHERE [T1].[C1] = 'x' AND [T2].[C2] IS NULL

Identifiers are wrapped in brackets as-is; no further escaping is applied.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence

from join_path_inference import describe_join_path
from literal_formatter import format_literal
from schema_model import ColumnInfo, DatabaseInfo, KeyInfo, TableInfo

logger = logging.getLogger(__name__)

JOIN_SCHEMA = "dbo"
ON_INDENT = "    "


class TableNotFoundError(LookupError):
    """A column, key or parameter names a table missing from the snapshot."""


class ColumnNotFoundError(LookupError):
    """A foreign key used in a join names a column missing from its referenced table."""


class JoinPathNotFoundError(LookupError):
    """Two selected tables are not connected by any chain of foreign keys."""

    def __init__(self, source_table: str, target_table: str):
        self.source_table = source_table
        self.target_table = target_table
        super().__init__(f"No join path found between tables {source_table} and {target_table}")


@dataclass(frozen=True)
class QueryParameter:
    """A WHERE condition: [table_name].[column_name] = value (IS NULL when value is None)."""
    table_name: str
    column_name: str
    value: Any = None


def bracket(name: str) -> str:
    return f"[{name}]"


def qualified_column(table_name: str, column_name: str) -> str:
    return f"{bracket(table_name)}.{bracket(column_name)}"


# =============================================================================
# PUBLIC API
# =============================================================================

def generate_select_statement(
    columns: Optional[Iterable[Optional[ColumnInfo]]],
    database: Optional[DatabaseInfo],
    parameters: Optional[Sequence[QueryParameter]] = None,
) -> str:
    """
    Generate a SELECT statement for the given columns.

    Args:
        columns: Columns to select. None entries are skipped.
        database: Schema snapshot the columns belong to
        parameters: Optional WHERE conditions, ANDed in order

    Returns:
        The SQL text, or "" if every column entry was None.

    Raises:
        ValueError: columns missing/empty or database missing
        TableNotFoundError: a column or parameter refers to an unknown table
        ColumnNotFoundError: a join key references an unknown column
        JoinPathNotFoundError: a selected table cannot be reached from the root
    """
    column_list = list(columns) if columns is not None else []
    if not column_list or database is None:
        raise ValueError("Columns and database information must be provided.")

    valid_columns = [c for c in column_list if c is not None]
    if not valid_columns:
        logger.debug("All requested columns were None - returning empty statement")
        return ""

    root_table = _require_table(database, valid_columns[0].table_id)

    # Group by owning table, keeping first-appearance order
    columns_by_table: Dict[int, List[ColumnInfo]] = {}
    for column in valid_columns:
        columns_by_table.setdefault(column.table_id, []).append(column)

    select_list = ", ".join(
        _select_item(_require_table(database, column.table_id), column)
        for column in valid_columns
    )

    lines = [
        f"USE {bracket(database.name)};",
        f"SELECT {select_list}",
        f"FROM {_table_reference(database, root_table)}",
    ]
    lines.extend(_join_lines(database, root_table, list(columns_by_table)))

    if parameters:
        lines.append(f"WHERE {generate_where_clause(parameters, database)}")

    logger.info(
        f"Generated SELECT: {len(valid_columns)} column(s), "
        f"{len(columns_by_table)} table(s), root={root_table.name}, "
        f"{len(parameters or [])} condition(s)"
    )
    return "".join(line + "\n" for line in lines)


def generate_join_condition(key: KeyInfo, from_table: TableInfo, to_table: TableInfo) -> str:
    """
    ON condition for joining to_table onto from_table through key.

    If key references to_table, the foreign key lives in from_table;
    otherwise it lives in to_table and the sides are mirrored.
    """
    if key.references(to_table.name):
        return (
            f"{qualified_column(from_table.name, key.source_column_name)} = "
            f"{qualified_column(to_table.name, key.referenced_column_name)}"
        )
    return (
        f"{qualified_column(from_table.name, key.referenced_column_name)} = "
        f"{qualified_column(to_table.name, key.source_column_name)}"
    )


def generate_where_clause(
    parameters: Sequence[QueryParameter],
    database: Optional[DatabaseInfo] = None,
) -> str:
    """
    Conditions joined with ' AND ' (without the WHERE keyword).

    When a snapshot is given, every parameter's table must exist in it and
    the snapshot's spelling of the table name is used.
    """
    conditions = []
    for parameter in parameters:
        table_name = parameter.table_name
        if database is not None:
            table = database.find_table(table_name)
            if table is None:
                raise TableNotFoundError(f"Table not found in database {database.name}: {table_name}")
            table_name = table.name

        target = qualified_column(table_name, parameter.column_name)
        if parameter.value is None:
            conditions.append(f"{target} IS NULL")
        else:
            conditions.append(f"{target} = {format_literal(parameter.value)}")

    return " AND ".join(conditions)


# =============================================================================
# HELPERS
# =============================================================================

def _require_table(database: DatabaseInfo, table_id: int) -> TableInfo:
    table = database.get_table(table_id)
    if table is None:
        raise TableNotFoundError(f"Table with id {table_id} not found in database {database.name}")
    return table


def _select_item(table: TableInfo, column: ColumnInfo) -> str:
    return f"{qualified_column(table.name, column.name)} AS {bracket(table.name + '.' + column.name)}"


def _table_reference(database: DatabaseInfo, table: TableInfo) -> str:
    return (
        f"{bracket(database.name)}.{bracket(JOIN_SCHEMA)}.{bracket(table.name)} "
        f"AS {bracket(table.name)}"
    )


def _join_lines(database: DatabaseInfo, root_table: TableInfo, table_ids: List[int]) -> List[str]:
    """LEFT JOIN / ON pairs for every table on the root-to-target paths, each table once."""
    lines: List[str] = []
    targets = [tid for tid in table_ids if tid != root_table.table_id]
    if not targets:
        return lines

    graph = database.join_graph()
    joined = {root_table.table_id}

    for table_id in targets:
        target_table = _require_table(database, table_id)
        join_path = graph.find_join_path(root_table, target_table)
        if join_path is None:
            raise JoinPathNotFoundError(root_table.name, target_table.name)

        logger.debug(f"Join path for {target_table.name}:\n{describe_join_path(join_path)}")

        for i in range(1, len(join_path.steps)):
            step = join_path.steps[i]
            if step.table.table_id in joined:
                continue
            previous = join_path.steps[i - 1].table
            _check_key_resolves(database, step.join_key)
            lines.append(f"LEFT JOIN {_table_reference(database, step.table)}")
            lines.append(f"{ON_INDENT}ON {generate_join_condition(step.join_key, previous, step.table)}")
            joined.add(step.table.table_id)

    return lines


def _check_key_resolves(database: DatabaseInfo, key: KeyInfo) -> None:
    """A foreign key must name an existing table and column to be usable in ON."""
    referenced = database.find_table(key.referenced_table_name)
    if referenced is None:
        raise TableNotFoundError(
            f"Foreign key {key.name or key.key_id} references unknown table {key.referenced_table_name}"
        )
    if referenced.columns and referenced.find_column(key.referenced_column_name or "") is None:
        raise ColumnNotFoundError(
            f"Foreign key {key.name or key.key_id} references unknown column "
            f"{referenced.name}.{key.referenced_column_name}"
        )
