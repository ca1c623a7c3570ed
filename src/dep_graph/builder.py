"""
Database Object Dependency Graph Scanner - Dependency Builder
Copyright (c) 2025 Dmitry Solonnikov
Licensed under MIT License - see LICENSE file for details
"""
import logging
import uuid
from collections import deque
from typing import Dict, List, Optional, Tuple

from .catalog import CatalogIndex
from .config import EDGE_LABELS, ENGINE_NAMES, GRAPH_CONFIG
from .external import external_node_id, mint_external_node
from .models import CatalogRow, DependencyDescriptor, GraphEdge, GraphNode, NodeKind
from .patterns import extract_dependencies, parse_sink_target, split_qualified_name

_logger = logging.getLogger("dep_graph.builder")


def structured_dependencies(source: CatalogRow) -> List[DependencyDescriptor]:
    """Dependencies reported by the catalog itself.

    Both parallel lists and the legacy single string pair are accepted,
    any other shape means no structured dependencies.

    Args:
        source: Catalog row

    Returns:
        Internal descriptors, one per complete (database, table) pair
    """
    databases = source.dependency_databases
    tables = source.dependency_tables

    if isinstance(databases, (list, tuple)) and isinstance(tables, (list, tuple)):
        pairs = zip(databases, tables)
    elif isinstance(databases, str) and isinstance(tables, str):
        pairs = [(databases, tables)]
    else:
        return []

    dependencies = []
    for database, table in pairs:
        if not isinstance(database, str) or not isinstance(table, str):
            continue
        if not database or not table:
            continue
        dependencies.append(DependencyDescriptor(
            kind=NodeKind.INTERNAL,
            category='',
            namespace=database,
            name=table,
        ))
    return dependencies


class DependencyBuilder:
    """Builds the dependency graph reachable from a database or a single object.

    Nodes and edges are reset on every build() call, so one instance must not
    be shared between concurrent builds.
    """

    def __init__(self, table_map: Dict[str, CatalogRow],
                 inner_table_map: Dict[str, CatalogRow]):
        """Initialize builder over an already fetched catalog.

        Args:
            table_map: 'database.name' -> row
            inner_table_map: '.inner_id.<uuid>' or '.inner.<name>' -> backing table row
        """
        self.catalog = CatalogIndex(table_map, inner_table_map)
        self.nodes: Dict[str, GraphNode] = {}
        self.edges: List[GraphEdge] = []

    @classmethod
    def from_index(cls, index: CatalogIndex) -> "DependencyBuilder":
        return cls(index.by_full_name, index.by_inner_key)

    def build(self, database: str, table: Optional[str] = None):
        """Build the graph.

        Args:
            database: Database whose objects are the seeds
            table: Single object of the database to start from (optional)
        """
        self.nodes = {}
        self.edges = []

        if table:
            start = self.catalog.get(f"{database}.{table}")
            seeds = [start] if start is not None else []
        else:
            seeds = self.catalog.rows_in_database(database)

        visited = {row.id for row in seeds}
        queue = deque(seeds)
        _logger.debug("Building dependencies of %s.%s from %d seeds",
                      database, table or '*', len(seeds))

        while queue:
            source = queue.popleft()

            dependencies = structured_dependencies(source)
            if source.engine == ENGINE_NAMES['materialized_view']:
                dependencies.extend(self._process_materialized_view(source))
            else:
                dependencies.extend(extract_dependencies(source))

            for dependency in dependencies:
                self._add_dependency(source, dependency)

                if dependency.kind != NodeKind.INTERNAL:
                    continue
                target = self.catalog.get(dependency.full_name)
                if target is not None and target.id not in visited:
                    visited.add(target.id)
                    queue.append(target)

        _logger.debug("Dependency graph built: %d nodes, %d edges",
                      len(self.nodes), len(self.edges))

    def _process_materialized_view(self, source: CatalogRow) -> List[DependencyDescriptor]:
        """Sink of a materialized view, explicit TO target or its backing table."""
        sink_to = parse_sink_target(source.ddl_text)
        if sink_to is not None:
            database, name = split_qualified_name(sink_to, source.database)
            return [DependencyDescriptor(
                kind=NodeKind.INTERNAL,
                category='',
                namespace=database,
                name=name,
                edge_label=EDGE_LABELS['sink_to'],
            )]

        inner_table = self.catalog.get_inner_table(source)
        if inner_table is None:
            _logger.debug("No backing table found for materialized view %s", source.id)
            return []
        return [DependencyDescriptor(
            kind=NodeKind.INTERNAL,
            category=source.engine,
            namespace=inner_table.database,
            name=inner_table.name,
            edge_label=EDGE_LABELS['sink_to'],
        )]

    def _get_or_create_source_node(self, source: CatalogRow) -> GraphNode:
        node = self.nodes.get(source.id)
        if node is None:
            node = GraphNode(
                id=source.id,
                kind=NodeKind.INTERNAL,
                category=source.engine,
                namespace=source.database,
                name=source.name,
                ddl_text=source.node_ddl,
                last_modified=source.last_modified,
            )
            self.nodes[source.id] = node
        return node

    def _get_or_create_target_node(
            self, dependency: DependencyDescriptor) -> Tuple[GraphNode, Optional[CatalogRow]]:
        """Resolve the target of a dependency to a node.

        Returns:
            Target node and its catalog row, None for external or missing targets
        """
        if dependency.kind == NodeKind.EXTERNAL:
            node_id = external_node_id(dependency.namespace, dependency.category)
            node = self.nodes.get(node_id)
            if node is None:
                node = mint_external_node(dependency)
                self.nodes[node_id] = node
            return node, None

        node_id = dependency.full_name
        target = self.catalog.get(node_id)
        node = self.nodes.get(node_id)
        if node is None:
            node = GraphNode(
                id=node_id,
                kind=NodeKind.INTERNAL,
                category=target.engine if target is not None else '',
                namespace=dependency.namespace,
                name=dependency.name,
                ddl_text=target.node_ddl if target is not None else GRAPH_CONFIG['not_found_ddl'],
                last_modified=target.last_modified if target is not None else None,
            )
            self.nodes[node_id] = node
        return node, target

    def _add_dependency(self, source: CatalogRow, dependency: DependencyDescriptor):
        source_node = self._get_or_create_source_node(source)
        target_node, target = self._get_or_create_target_node(dependency)

        self.edges.append(GraphEdge(
            id=GRAPH_CONFIG['edge_id_prefix'] + uuid.uuid4().hex,
            source=source_node.id,
            target=target_node.id,
            label=self._edge_label(source, dependency, target_node, target),
        ))
        source_node.target_ids.append(target_node.id)

    @staticmethod
    def _edge_label(source: CatalogRow, dependency: DependencyDescriptor,
                    target_node: GraphNode, target: Optional[CatalogRow]) -> Optional[str]:
        """Label of a new edge, None when nothing describes the relationship."""
        if dependency.edge_label is not None:
            return dependency.edge_label

        # Edges into a materialized view keep their direction, only the label tells it
        if target is not None and target.engine == ENGINE_NAMES['materialized_view']:
            return EDGE_LABELS['push_to']

        if source.engine == ENGINE_NAMES['materialized_view']:
            sink_to = parse_sink_target(source.ddl_text)
            if sink_to is None:
                return None
            if sink_to in (target_node.name, target_node.id):
                return EDGE_LABELS['sink_to']
            return EDGE_LABELS['select_from']

        if source.engine == ENGINE_NAMES['view']:
            return EDGE_LABELS['select_from']
        return None

    def get_nodes(self) -> Dict[str, GraphNode]:
        return self.nodes

    def get_edges(self) -> List[GraphEdge]:
        return self.edges
