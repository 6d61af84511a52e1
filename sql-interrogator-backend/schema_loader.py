"""
Schema Loader - Runtime Schema Introspection via SQLAlchemy
===========================================================

Reflects a live database into an immutable schema_model.DatabaseInfo
snapshot: tables, ordered columns, primary / unique / foreign keys and
indexes.

Ids are assigned in reflection order (tables and keys from 1 across the
snapshot, columns from 1 within their table), so they are stable for the
lifetime of one snapshot only.

Multi-column foreign keys produce one KeyInfo per column pair, all sharing
the constraint name.
"""

import logging
from typing import Any, Iterator, List, Optional

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from schema_model import (
    DEFAULT_SCHEMA_NAME,
    ColumnInfo,
    DatabaseInfo,
    IndexInfo,
    KeyInfo,
    TableInfo,
    build_database,
)

logger = logging.getLogger(__name__)

SYSTEM_SCHEMAS = {
    'information_schema', 'pg_catalog', 'pg_toast', 'pg_temp_1',
    'pg_toast_temp_1', 'pg_statistic', 'mysql', 'sys', 'performance_schema',
    'guest', 'INFORMATION_SCHEMA',
}


class SchemaCollector:
    """Owns a SQLAlchemy engine and turns its catalog into DatabaseInfo snapshots."""

    def __init__(self, database_url: Optional[str] = None, engine: Optional[Engine] = None):
        if engine is None and not database_url:
            raise ValueError("Either database_url or engine must be provided")
        self.engine = engine if engine is not None else create_engine(database_url)
        self._next_key_id = 1

    def test_connection(self) -> None:
        """Run SELECT 1; raises SQLAlchemyError on failure."""
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()

    def list_schemas(self) -> List[str]:
        inspector = inspect(self.engine)
        return [s for s in inspector.get_schema_names() if s not in SYSTEM_SCHEMAS]

    def load_database(
        self,
        database_name: Optional[str] = None,
        schema: Optional[str] = None,
    ) -> DatabaseInfo:
        """
        Reflect every table of one schema.

        Args:
            database_name: Name used in USE / FROM clauses. Defaults to the
                database in the engine URL (or "main" when there is none).
            schema: Schema to reflect; None uses the connection default.

        Raises:
            SQLAlchemyError: reflection failed (logged, then re-raised)
        """
        name = database_name or self.engine.url.database or "main"
        self._next_key_id = 1

        try:
            inspector = inspect(self.engine)
            table_names = inspector.get_table_names(schema=schema)
            tables = [
                self._load_table(inspector, table_id, table_name, schema)
                for table_id, table_name in enumerate(table_names, 1)
            ]
        except SQLAlchemyError as e:
            logger.error(f"Failed to load schema for {name}: {str(e)}")
            raise

        logger.info(f"Schema loaded: {len(tables)} tables from '{schema or 'default'}' schema")
        return build_database(name, tables)

    def dispose(self) -> None:
        self.engine.dispose()

    # -------------------------------------------------------------------------
    # Reflection helpers
    # -------------------------------------------------------------------------

    def _load_table(self, inspector, table_id: int, table_name: str, schema: Optional[str]) -> TableInfo:
        columns = [
            ColumnInfo(
                column_id=position,
                name=col["name"],
                table_id=table_id,
                data_type=str(col["type"]),
                is_nullable=bool(col.get("nullable", True)),
                ordinal_position=position,
                default_value=_default_text(col.get("default")),
            )
            for position, col in enumerate(inspector.get_columns(table_name, schema=schema), 1)
        ]

        keys = list(self._primary_keys(inspector, table_id, table_name, schema))
        keys.extend(self._unique_keys(inspector, table_id, table_name, schema))
        keys.extend(self._foreign_keys(inspector, table_id, table_name, schema))
        pk_columns = tuple(k.source_column_name for k in keys if k.is_primary_key)

        indexes = [
            IndexInfo(
                index_id=position,
                name=index.get("name"),
                column_names=tuple(c for c in index.get("column_names", []) if c),
                is_unique=bool(index.get("unique", False)),
                is_primary_key=_is_primary_key_index(index, pk_columns),
            )
            for position, index in enumerate(inspector.get_indexes(table_name, schema=schema), 1)
        ]

        logger.debug(
            f"  Table {table_name}: {len(columns)} columns, {len(keys)} keys, {len(indexes)} indexes"
        )
        return TableInfo(
            table_id=table_id,
            name=table_name,
            columns=columns,
            keys=keys,
            indexes=indexes,
            schema_name=schema or DEFAULT_SCHEMA_NAME,
        )

    def _primary_keys(self, inspector, table_id, table_name, schema) -> Iterator[KeyInfo]:
        pk = inspector.get_pk_constraint(table_name, schema=schema) or {}
        for column_name in pk.get("constrained_columns") or []:
            yield KeyInfo(
                key_id=self._take_key_id(),
                table_id=table_id,
                source_column_name=column_name,
                name=pk.get("name"),
                is_primary_key=True,
                is_unique=True,
            )

    def _unique_keys(self, inspector, table_id, table_name, schema) -> Iterator[KeyInfo]:
        for constraint in inspector.get_unique_constraints(table_name, schema=schema):
            for column_name in constraint.get("column_names") or []:
                yield KeyInfo(
                    key_id=self._take_key_id(),
                    table_id=table_id,
                    source_column_name=column_name,
                    name=constraint.get("name"),
                    is_unique=True,
                )

    def _foreign_keys(self, inspector, table_id, table_name, schema) -> Iterator[KeyInfo]:
        for fk in inspector.get_foreign_keys(table_name, schema=schema):
            pairs = zip(fk.get("constrained_columns") or [], fk.get("referred_columns") or [])
            for source_column, referred_column in pairs:
                yield KeyInfo(
                    key_id=self._take_key_id(),
                    table_id=table_id,
                    source_column_name=source_column,
                    is_foreign_key=True,
                    referenced_table_name=fk.get("referred_table"),
                    referenced_column_name=referred_column,
                    referenced_table_schema=fk.get("referred_schema"),
                    name=fk.get("name"),
                )

    def _take_key_id(self) -> int:
        key_id = self._next_key_id
        self._next_key_id += 1
        return key_id


def _is_primary_key_index(index: dict, pk_columns: tuple) -> bool:
    """A unique index backs the primary key when it covers exactly the PK columns, in order."""
    columns = tuple(c for c in index.get("column_names", []) if c)
    return bool(pk_columns) and bool(index.get("unique", False)) and columns == pk_columns


def _default_text(default: Any) -> Optional[str]:
    if default is None:
        return None
    return str(default)


def load_database(database_url: str, database_name: Optional[str] = None,
                  schema: Optional[str] = None) -> DatabaseInfo:
    """One-shot helper: connect, reflect, dispose."""
    collector = SchemaCollector(database_url)
    try:
        return collector.load_database(database_name=database_name, schema=schema)
    finally:
        collector.dispose()
