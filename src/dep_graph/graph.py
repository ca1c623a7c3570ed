"""
Database Object Dependency Graph Scanner - Graph Module
Copyright (c) 2025 Dmitry Solonnikov
Licensed under MIT License - see LICENSE file for details
"""
from typing import Any, Dict, Iterable, List, Optional

import networkx as nx

from .builder import DependencyBuilder
from .models import GraphEdge, GraphNode


class DependencyGraph:
    """networkx view over a built dependency graph."""

    def __init__(self):
        """Initialize empty graph."""
        self.graph = nx.MultiDiGraph()

    @classmethod
    def from_builder(cls, builder: DependencyBuilder) -> "DependencyGraph":
        graph = cls()
        graph.build_graph(builder.get_nodes().values(), builder.get_edges())
        return graph

    def build_graph(self, nodes: Iterable[GraphNode], edges: Iterable[GraphEdge]):
        """Build graph from builder output.

        Args:
            nodes: Graph nodes in discovery order
            edges: Graph edges, parallel edges are kept
        """
        self.graph.clear()

        for node in nodes:
            self.graph.add_node(node.id, node=node)

        for edge in edges:
            self.graph.add_edge(edge.source, edge.target, key=edge.id, edge=edge)

    @property
    def nodes(self) -> List[GraphNode]:
        return [data['node'] for _, data in self.graph.nodes(data=True)]

    @property
    def edges(self) -> List[GraphEdge]:
        return [data['edge'] for _, _, data in self.graph.edges(data=True)]

    def focus(self, node_id: str) -> "DependencyGraph":
        """Restrict the graph to one object and its transitive neighbourhood.

        Keeps the object, everything it depends on and everything depending on it.

        Args:
            node_id: Id of the object in focus

        Returns:
            New graph, empty if the object is unknown
        """
        focused = DependencyGraph()
        if not self.graph.has_node(node_id):
            return focused

        relevant = {node_id}
        relevant.update(nx.descendants(self.graph, node_id))
        relevant.update(nx.ancestors(self.graph, node_id))

        # Walk the original graph to keep discovery order
        focused.build_graph(
            [node for node in self.nodes if node.id in relevant],
            [edge for edge in self.edges if edge.source in relevant and edge.target in relevant],
        )
        return focused

    def get_dependencies(self, node_id: str) -> Dict[str, List[str]]:
        """Return incoming and outgoing neighbours of an object."""
        if not self.graph.has_node(node_id):
            return {"in": [], "out": []}

        return {
            "in": list(self.graph.predecessors(node_id)),
            "out": list(self.graph.successors(node_id))
        }

    def get_object_details(self, node_id: str) -> Optional[Dict[str, Any]]:
        """Get details of a specific node.

        Args:
            node_id: ID of the node to get details for

        Returns:
            Dictionary with node details, None for unknown nodes
        """
        if not self.graph.has_node(node_id):
            return None

        node = self.graph.nodes[node_id]['node']
        dependencies = self.get_dependencies(node_id)
        return {
            'id': node_id,
            'kind': node.kind.value,
            'category': node.category,
            'definition': node.ddl_text,
            'incoming': dependencies['in'],
            'outgoing': dependencies['out']
        }

    def to_dict(self) -> Dict[str, List[Dict[str, Any]]]:
        """Serialize for the graph renderer."""
        return {
            'nodes': [node.to_dict() for node in self.nodes],
            'edges': [edge.to_dict() for edge in self.edges],
        }
