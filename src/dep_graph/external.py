"""
Database Object Dependency Graph Scanner - External Nodes
Copyright (c) 2025 Dmitry Solonnikov
Licensed under MIT License - see LICENSE file for details
"""
import hashlib

from .config import GRAPH_CONFIG
from .models import DependencyDescriptor, GraphNode, NodeKind


def external_node_id(namespace: str, category: str) -> str:
    """Stable id of an external system.

    The prefix keeps the id apart from internal 'database.name' ids.
    """
    digest = hashlib.md5(f"{namespace}@{category}".encode('utf-8')).hexdigest()
    return GRAPH_CONFIG['external_id_prefix'] + digest


def mint_external_node(descriptor: DependencyDescriptor) -> GraphNode:
    """Create the node for an external dependency descriptor.

    External nodes carry neither a name nor a DDL, the remote object
    is described by the edge label.
    """
    return GraphNode(
        id=external_node_id(descriptor.namespace, descriptor.category),
        kind=NodeKind.EXTERNAL,
        category=descriptor.category,
        namespace=descriptor.namespace,
        name='',
        ddl_text='',
    )
