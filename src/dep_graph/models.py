"""
Database Object Dependency Graph Scanner - Models Module
Copyright (c) 2025 Dmitry Solonnikov
Licensed under MIT License - see LICENSE file for details
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class CatalogError(ValueError):
    """Raised when a catalog record cannot be turned into a row."""


class NodeKind(Enum):
    """Kinds of graph nodes."""
    INTERNAL = "Internal"
    EXTERNAL = "External"


@dataclass
class CatalogRow:
    """One object of the catalog as returned by the table listing query."""
    id: str
    uuid: str
    database: str
    name: str
    engine: str
    ddl_text: str
    dependency_databases: Any = field(default_factory=list)
    dependency_tables: Any = field(default_factory=list)
    last_modified: Optional[str] = None
    display_ddl: Optional[str] = None  # reindented copy of ddl_text, shown on nodes

    @property
    def node_ddl(self) -> str:
        return self.display_ddl or self.ddl_text

    @classmethod
    def from_dict(cls, record: Dict[str, Any]) -> "CatalogRow":
        """Create a row from a query result record.

        Both the camelCase aliases of the listing query and the raw
        column names of the system table are accepted.

        Args:
            record: Mapping with the row columns

        Returns:
            Catalog row

        Raises:
            CatalogError: If the record has no database or name
        """
        if not isinstance(record, dict):
            raise CatalogError(f"Catalog record must be a mapping, got {type(record).__name__}")

        def pick(*keys, default=None):
            for key in keys:
                if record.get(key) is not None:
                    return record[key]
            return default

        database = pick('database')
        name = pick('name')
        if not database or not name:
            raise CatalogError(f"Catalog record without database or name: {record!r}")

        return cls(
            id=pick('id', default=f"{database}.{name}"),
            uuid=pick('uuid', default=''),
            database=database,
            name=name,
            engine=pick('engine', default=''),
            ddl_text=pick('tableQuery', 'ddl_text', 'create_table_query', default=''),
            dependency_databases=pick('dependenciesDatabase', 'dependency_databases',
                                      'dependencies_database', default=[]),
            dependency_tables=pick('dependenciesTable', 'dependency_tables',
                                   'dependencies_table', default=[]),
            last_modified=pick('metadataModificationTime', 'last_modified',
                               'metadata_modification_time'),
        )


@dataclass
class DependencyDescriptor:
    """Normalized dependency produced by the DDL extractors."""
    kind: NodeKind
    category: str
    namespace: str
    name: str
    edge_label: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.namespace}.{self.name}"


@dataclass
class GraphNode:
    """Node of the dependency graph."""
    id: str
    kind: NodeKind
    category: str
    namespace: str
    name: str
    ddl_text: str
    target_ids: List[str] = field(default_factory=list)
    last_modified: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'type': self.kind.value,
            'category': self.category,
            'namespace': self.namespace,
            'name': self.name,
            'query': self.ddl_text,
            'targets': list(self.target_ids),
            'metadataModificationTime': self.last_modified,
        }


@dataclass
class GraphEdge:
    """Directed edge between two graph nodes."""
    id: str
    source: str
    target: str
    label: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'source': self.source,
            'target': self.target,
            'label': self.label,
        }
