"""
Join Path Inference - Foreign-Key Join Discovery
================================================

Finds the shortest chain of foreign-key hops connecting two tables.

Graph model:
    Nodes: Tables of one schema snapshot
    Edges: A declared foreign key between two tables, in EITHER direction.
           Edges are undirected for reachability; the key itself keeps its
           direction so the ON condition can be written the right way round.

Search:
    Plain breadth-first search over partial paths.
    - Visited set seeded with the source table (no revisits, no self-loops)
    - Neighbours are tried in the order of the table list passed in; that
      order is the only tie-break between equally short paths
    - Stops the moment a dequeued path ends at the target, so the returned
      path is shortest by hop count

Not finding a path is a normal outcome (disconnected tables) and is
reported as None. The caller decides whether that is an error.
"""

import logging
from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, List, Mapping, Optional, Sequence, Tuple

from schema_model import KeyInfo, TableInfo

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JoinStep:
    """One hop of a join path. join_key is None only for the origin."""
    table: TableInfo
    join_key: Optional[KeyInfo] = None


@dataclass(frozen=True)
class JoinPath:
    steps: Tuple[JoinStep, ...]

    @property
    def tables(self) -> List[TableInfo]:
        return [step.table for step in self.steps]

    @property
    def hop_count(self) -> int:
        return len(self.steps) - 1

    def __len__(self) -> int:
        return len(self.steps)


def has_join_key(table_a: TableInfo, table_b: TableInfo) -> Optional[KeyInfo]:
    """
    Return the foreign key connecting two tables, or None.

    Keys on table_a pointing at table_b are preferred over keys on table_b
    pointing at table_a. Within a table the first matching key wins.
    """
    for key in table_a.keys:
        if key.references(table_b.name):
            return key
    for key in table_b.keys:
        if key.references(table_a.name):
            return key
    return None


class SchemaGraph:
    """
    Schema snapshot as an undirected foreign-key graph.

    Built once per table list; DatabaseInfo.join_graph() keeps one per
    snapshot. For every table it records the first foreign key pointing at
    each referenced table (resolved through a case-insensitive name index),
    which makes the adjacency test a dict lookup instead of a scan over both
    tables' keys.
    """

    def __init__(self, tables: Sequence[TableInfo], table_index: Optional[Mapping[str, TableInfo]] = None):
        self.tables: List[TableInfo] = list(tables)
        # lowercase name -> table; built from tables when not supplied
        self._by_name = table_index if table_index is not None else {
            table.name.lower(): table for table in self.tables
        }
        # {(from_table_id, to_table_id): first FK on from_table referencing to_table}
        self._outgoing: Dict[Tuple[int, int], KeyInfo] = {}
        self._build()

    def _build(self) -> None:
        edge_count = 0

        for table in self.tables:
            for key in table.foreign_keys:
                if not key.referenced_table_name:
                    continue
                target = self._by_name.get(key.referenced_table_name.lower())
                if target is None:
                    logger.debug(
                        f"  FK {table.name}.{key.source_column_name} references unknown table "
                        f"{key.referenced_table_name}, ignored for path finding"
                    )
                    continue
                edge = (table.table_id, target.table_id)
                if edge not in self._outgoing:
                    self._outgoing[edge] = key
                    edge_count += 1

        logger.debug(f"Schema graph built: {len(self.tables)} tables, {edge_count} FK edges")

    def join_key(self, table_a: TableInfo, table_b: TableInfo) -> Optional[KeyInfo]:
        """Same answer as has_join_key(table_a, table_b), from the precomputed edges."""
        key = self._outgoing.get((table_a.table_id, table_b.table_id))
        if key is not None:
            return key
        return self._outgoing.get((table_b.table_id, table_a.table_id))

    def find_join_path(self, source: TableInfo, target: TableInfo) -> Optional[JoinPath]:
        """
        Shortest foreign-key path from source to target.

        Returns:
            JoinPath whose first step is source (no key) and last step is
            target, or None if the tables are not connected.
        """
        visited = {source.table_id}
        queue: Deque[List[JoinStep]] = deque([[JoinStep(source)]])

        while queue:
            path = queue.popleft()
            last = path[-1].table

            if last.table_id == target.table_id:
                join_path = JoinPath(tuple(path))
                logger.debug(
                    f"Join path found: {source.name} -> {target.name} "
                    f"({join_path.hop_count} hops)"
                )
                return join_path

            for candidate in self.tables:
                if candidate.table_id in visited:
                    continue
                key = self.join_key(last, candidate)
                if key is None:
                    continue
                visited.add(candidate.table_id)
                queue.append(path + [JoinStep(candidate, key)])

        logger.warning(f"No join path found: {source.name} -> {target.name}")
        return None


def find_join_path(
    source: TableInfo,
    target: TableInfo,
    all_tables: Sequence[TableInfo],
) -> Optional[JoinPath]:
    """Build a graph over all_tables and search it once."""
    return SchemaGraph(all_tables).find_join_path(source, target)


def describe_join_path(join_path: Optional[JoinPath]) -> str:
    """
    Human-readable rendering of a join path, for logs and the API.

    Example:
        Orders -> Customers
          1. Orders.CustomerId -> Customers.Id
    """
    if not join_path:
        return ""

    lines = [" -> ".join(table.name for table in join_path.tables)]
    for i, step in enumerate(join_path.steps[1:], 1):
        key = step.join_key
        previous = join_path.steps[i - 1].table
        # The FK lives on whichever side does not match its referenced table
        owner = previous.name if key.references(step.table.name) else step.table.name
        lines.append(
            f"  {i}. {owner}.{key.source_column_name} -> "
            f"{key.referenced_table_name}.{key.referenced_column_name}"
        )
    return "\n".join(lines)
