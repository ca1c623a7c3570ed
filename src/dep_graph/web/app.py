"""
Database Object Dependency Graph Scanner - Web Application
Copyright (c) 2025 Dmitry Solonnikov
Licensed under MIT License - see LICENSE file for details
"""
import logging
import os

from flask import Flask, jsonify, request

from dep_graph.builder import DependencyBuilder
from dep_graph.catalog import CatalogIndex
from dep_graph.config import load_config
from dep_graph.graph import DependencyGraph

_logger = logging.getLogger("dep_graph.web")

app = Flask(__name__)


class PayloadError(ValueError):
    """Raised for malformed graph requests."""


def _parse_payload(payload):
    if not isinstance(payload, dict):
        raise PayloadError("Request body must be a JSON object")

    rows = payload.get('rows')
    if not isinstance(rows, list):
        raise PayloadError("'rows' must be a list of catalog records")

    database = payload.get('database')
    if not isinstance(database, str) or not database:
        raise PayloadError("'database' is required")

    table = payload.get('table') or None
    if table is not None and not isinstance(table, str):
        raise PayloadError("'table' must be a string")

    focus = payload.get('focus', True)
    pretty = payload.get('pretty', False)
    if not isinstance(focus, bool) or not isinstance(pretty, bool):
        raise PayloadError("'focus' and 'pretty' must be booleans")

    return rows, database, table, focus, pretty


@app.errorhandler(PayloadError)
def handle_payload_error(error):
    return jsonify({"error": str(error)}), 400


@app.route('/health')
def health():
    return jsonify({"status": "ok"})


@app.route('/graph', methods=['POST'])
def get_graph():
    """Build the dependency graph of a database or of one object.

    The rows are fetched by the console and posted as they come from the
    table listing query, inner tables of materialized views included.
    """
    rows, database, table, focus, pretty = _parse_payload(request.get_json(silent=True))

    index = CatalogIndex.from_records(rows, pretty_format=pretty)
    builder = DependencyBuilder.from_index(index)
    if table and focus:
        # Objects of the database depending on the table are found from the database seeds
        builder.build(database)
        graph = DependencyGraph.from_builder(builder).focus(f"{database}.{table}")
    else:
        builder.build(database, table)
        graph = DependencyGraph.from_builder(builder)

    _logger.info("Graph for %s.%s: %d nodes, %d edges",
                 database, table or '*', graph.graph.number_of_nodes(), graph.graph.number_of_edges())
    return jsonify(graph.to_dict())


def main():
    config = load_config(os.environ.get('DEP_GRAPH_CONFIG'))
    logging.basicConfig(level=config['log_level'])
    app.run(host=config['host'], port=config['port'], debug=config['debug'])


if __name__ == '__main__':
    main()
