"""
Schema Model - Immutable Database Snapshot
==========================================

In-memory representation of a database's tables, columns, keys and indexes.

A snapshot is produced once (by schema_loader.SchemaCollector or built by
hand in tests) and is never mutated afterwards. Everything downstream
(join path inference, statement generation) only reads it.

Lookups:
    - table_id -> TableInfo       (registry, built once per snapshot)
    - name     -> TableInfo       (secondary index, case-insensitive)

Foreign keys reference their target by *name*, not by object, so resolving
a key always goes through DatabaseInfo.find_table().
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_SCHEMA_NAME = "dbo"


@dataclass(frozen=True)
class ColumnInfo:
    """A single column, owned by exactly one table."""
    column_id: int
    name: str
    table_id: int
    data_type: Optional[str] = None
    is_nullable: bool = True
    ordinal_position: int = 0
    default_value: Optional[str] = None


@dataclass(frozen=True)
class KeyInfo:
    """
    Primary, unique or foreign key.

    Attributes:
        source_column_name: Column in the owning table holding the value
        referenced_table_name: Target table (foreign keys only)
        referenced_column_name: Target column (foreign keys only)
    """
    key_id: int
    table_id: int
    source_column_name: Optional[str] = None
    is_foreign_key: bool = False
    referenced_table_name: Optional[str] = None
    referenced_column_name: Optional[str] = None
    name: Optional[str] = None
    is_primary_key: bool = False
    is_unique: bool = False
    referenced_table_schema: Optional[str] = None

    def references(self, table_name: Optional[str]) -> bool:
        """True if this is a foreign key pointing at table_name (case-insensitive)."""
        if not self.is_foreign_key or not self.referenced_table_name or not table_name:
            return False
        return self.referenced_table_name.lower() == table_name.lower()


@dataclass(frozen=True)
class IndexInfo:
    """Index metadata (descriptive only)."""
    index_id: int
    name: Optional[str]
    column_names: Tuple[str, ...] = ()
    is_unique: bool = False
    is_primary_key: bool = False

    def __post_init__(self):
        object.__setattr__(self, "column_names", tuple(self.column_names))


@dataclass(frozen=True)
class TableInfo:
    """A table with its ordered columns, keys and indexes."""
    table_id: int
    name: str
    columns: Tuple[ColumnInfo, ...] = ()
    keys: Tuple[KeyInfo, ...] = ()
    indexes: Tuple[IndexInfo, ...] = ()
    schema_name: str = DEFAULT_SCHEMA_NAME

    def __post_init__(self):
        # Accept lists from callers but store tuples so the snapshot stays immutable
        object.__setattr__(self, "columns", tuple(self.columns))
        object.__setattr__(self, "keys", tuple(self.keys))
        object.__setattr__(self, "indexes", tuple(self.indexes))

        seen = set()
        for column in self.columns:
            if column.column_id in seen:
                raise ValueError(
                    f"Duplicate column id {column.column_id} in table {self.name}"
                )
            seen.add(column.column_id)

    @property
    def foreign_keys(self) -> List[KeyInfo]:
        return [key for key in self.keys if key.is_foreign_key]

    def find_column(self, column_name: str) -> Optional[ColumnInfo]:
        """Case-insensitive column lookup."""
        wanted = column_name.lower()
        for column in self.columns:
            if column.name.lower() == wanted:
                return column
        return None


@dataclass(frozen=True)
class DatabaseInfo:
    """
    Immutable schema snapshot.

    The id registry and the case-insensitive name index are built once in
    __post_init__, the foreign-key graph on first use; all three are
    excluded from equality and repr.
    """
    name: str
    tables: Tuple[TableInfo, ...] = ()
    _tables_by_id: Dict[int, TableInfo] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )
    _tables_by_name: Dict[str, TableInfo] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )
    _join_graph: Any = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "tables", tuple(self.tables))

        by_id: Dict[int, TableInfo] = {}
        by_name: Dict[str, TableInfo] = {}
        for table in self.tables:
            if table.table_id in by_id:
                raise ValueError(f"Duplicate table id {table.table_id} in database {self.name}")
            by_id[table.table_id] = table

            lowered = table.name.lower()
            if lowered in by_name:
                raise ValueError(f"Duplicate table name {table.name} in database {self.name}")
            by_name[lowered] = table

        object.__setattr__(self, "_tables_by_id", by_id)
        object.__setattr__(self, "_tables_by_name", by_name)

    def join_graph(self):
        """The snapshot's join_path_inference.SchemaGraph, built on first call."""
        if self._join_graph is None:
            from join_path_inference import SchemaGraph
            object.__setattr__(self, "_join_graph", SchemaGraph(self.tables, self._tables_by_name))
        return self._join_graph

    def get_table(self, table_id: int) -> Optional[TableInfo]:
        return self._tables_by_id.get(table_id)

    def find_table(self, table_name: Optional[str]) -> Optional[TableInfo]:
        if not table_name:
            return None
        return self._tables_by_name.get(table_name.lower())

    def find_column(self, table_name: str, column_name: str) -> Optional[ColumnInfo]:
        table = self.find_table(table_name)
        if table is None:
            return None
        return table.find_column(column_name)

    def summary(self) -> dict:
        """Schema summary with statistics (API / debugging)."""
        return {
            "database": self.name,
            "table_count": len(self.tables),
            "tables": [
                {
                    "table_id": table.table_id,
                    "name": table.name,
                    "schema": table.schema_name,
                    "column_count": len(table.columns),
                    "columns": [
                        {
                            "column_id": col.column_id,
                            "name": col.name,
                            "type": col.data_type,
                            "nullable": col.is_nullable,
                        }
                        for col in table.columns
                    ],
                    "foreign_keys": [
                        {
                            "name": key.name,
                            "column": key.source_column_name,
                            "references": f"{key.referenced_table_name}.{key.referenced_column_name}",
                        }
                        for key in table.foreign_keys
                    ],
                }
                for table in self.tables
            ],
        }


def build_database(name: str, tables: Iterable[TableInfo]) -> DatabaseInfo:
    """Assemble a snapshot and log its size."""
    database = DatabaseInfo(name=name, tables=tuple(tables))
    fk_count = sum(len(t.foreign_keys) for t in database.tables)
    logger.info(
        f"Schema snapshot ready: {database.name} "
        f"({len(database.tables)} tables, {fk_count} foreign keys)"
    )
    return database
