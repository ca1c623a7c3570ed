"""
Database Object Dependency Graph Scanner - Catalog Index
Copyright (c) 2025 Dmitry Solonnikov
Licensed under MIT License - see LICENSE file for details
"""
import logging
from typing import Any, Dict, Iterable, List, Optional

from .config import GRAPH_CONFIG
from .models import CatalogError, CatalogRow
from .patterns import SqlParser

_logger = logging.getLogger("dep_graph.catalog")

INNER_ID_PREFIX = '.inner_id.'
INNER_PREFIX = '.inner.'


def inner_key_for_view(view: CatalogRow) -> str:
    """Key of the implicit backing table of a materialized view.

    Databases without stable uuids name the table after the view.
    """
    if not view.uuid or view.uuid == GRAPH_CONFIG['zero_uuid']:
        return f"{INNER_PREFIX}{view.name}"
    return f"{INNER_ID_PREFIX}{view.uuid}"


def inner_key_for_table(row: CatalogRow) -> Optional[str]:
    """Key under which a backing table registers itself, None for other tables."""
    if row.name.startswith(INNER_ID_PREFIX):
        return f"{INNER_ID_PREFIX}{row.name[len(INNER_ID_PREFIX):]}"
    if row.name.startswith(INNER_PREFIX):
        return f"{INNER_PREFIX}{row.name[len(INNER_PREFIX):]}"
    return None


class CatalogIndex:
    """Lookup maps over the catalog rows.

    Attributes:
        by_full_name: 'database.name' -> row
        by_inner_key: '.inner_id.<uuid>' or '.inner.<name>' -> backing table row
    """

    def __init__(self, by_full_name: Optional[Dict[str, CatalogRow]] = None,
                 by_inner_key: Optional[Dict[str, CatalogRow]] = None):
        self.by_full_name: Dict[str, CatalogRow] = by_full_name if by_full_name is not None else {}
        self.by_inner_key: Dict[str, CatalogRow] = by_inner_key if by_inner_key is not None else {}

    @classmethod
    def from_rows(cls, rows: Iterable[CatalogRow]) -> "CatalogIndex":
        """Build both maps in a single pass over the rows."""
        by_full_name = {}
        by_inner_key = {}
        for row in rows:
            by_full_name[row.id] = row
            inner_key = inner_key_for_table(row)
            if inner_key is not None:
                by_inner_key[inner_key] = row
        return cls(by_full_name, by_inner_key)

    @classmethod
    def from_records(cls, records: Iterable[Dict[str, Any]],
                     pretty_format: bool = False) -> "CatalogIndex":
        """Build the index from query result records.

        Records that cannot be converted are skipped.

        Args:
            records: Rows of the table listing query
            pretty_format: Reindent DDL for display, for servers that return it unformatted

        Returns:
            Catalog index
        """
        rows = []
        for record in records:
            try:
                row = CatalogRow.from_dict(record)
            except CatalogError as e:
                _logger.warning("Skipping catalog record: %s", e)
                continue

            row.ddl_text = SqlParser.normalize_ddl(row.ddl_text)
            if not row.engine:
                row.engine = SqlParser.engine_for_kind(SqlParser.get_object_kind(row.ddl_text))
            if pretty_format:
                row.display_ddl = SqlParser.pretty_format_ddl(row.ddl_text)
            rows.append(row)

        return cls.from_rows(rows)

    def get(self, full_name: str) -> Optional[CatalogRow]:
        return self.by_full_name.get(full_name)

    def get_inner_table(self, view: CatalogRow) -> Optional[CatalogRow]:
        """Backing table of a materialized view without a TO clause."""
        inner_key = inner_key_for_view(view)
        # Backing tables live next to their view, '.inner.<name>' keys repeat across databases
        return self.by_full_name.get(f"{view.database}.{inner_key}") or self.by_inner_key.get(inner_key)

    def rows_in_database(self, database: str) -> List[CatalogRow]:
        return [row for row in self.by_full_name.values() if row.database == database]

    def __len__(self) -> int:
        return len(self.by_full_name)
