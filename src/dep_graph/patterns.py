"""
Database Object Dependency Graph Scanner - DDL Patterns Module
Copyright (c) 2025 Dmitry Solonnikov
Licensed under MIT License - see LICENSE file for details
"""
import logging
import re
from typing import Callable, Dict, List, Optional, Tuple

import sqlparse

from .config import EDGE_LABELS, ENGINE_NAMES
from .models import CatalogRow, DependencyDescriptor, NodeKind

_logger = logging.getLogger("dep_graph.patterns")

EngineProcessor = Callable[[CatalogRow], List[DependencyDescriptor]]

# Plain or backtick quoted identifier, optionally qualified with its database
QUALIFIED_NAME = r"(?:`[^`]+`|\w+)(?:\.(?:`[^`]+`|\w+))?"
MV_SINK_TO_EXPR = re.compile(
    r"^\s*CREATE\s+MATERIALIZED\s+VIEW\s+(?:IF\s+NOT\s+EXISTS\s+)?" + QUALIFIED_NAME +
    r"(?:\s+ON\s+CLUSTER\s+\S+)?\s+TO\s+(" + QUALIFIED_NAME + r")"
)
DISTRIBUTED_EXPR = re.compile(r"\bDistributed\s*\(")
BUFFER_EXPR = re.compile(r"\bBuffer\s*\(\s*'([^']+)'\s*,\s*'([^']+)'")
KAFKA_BROKER_EXPR = re.compile(r"kafka_broker_list\s*=\s*'([^']+)'")
KAFKA_TOPIC_EXPR = re.compile(r"kafka_topic_list\s*=\s*'([^']+)'")
URL_EXPR = re.compile(r"\bURL\s*\(\s*'([^']+)'")
# The source clause may span several lines and list its settings in any order
DICTIONARY_SOURCE_EXPR = re.compile(r"SOURCE\s*\(\s*CLICKHOUSE\s*\(", re.IGNORECASE)
DICTIONARY_HOST_EXPR = re.compile(r"\bHOST\s+(?:'([^']+)'|([^\s')]+))", re.IGNORECASE)
DICTIONARY_PORT_EXPR = re.compile(r"\bPORT\s+'?(\d+)'?", re.IGNORECASE)
DICTIONARY_DB_EXPR = re.compile(r"\bDB\s+'([^']+)'", re.IGNORECASE)
DICTIONARY_TABLE_EXPR = re.compile(r"\bTABLE\s+'([^']+)'", re.IGNORECASE)
CREATE_KIND_EXPR = re.compile(
    r"^CREATE\s+(?:OR\s+REPLACE\s+)?(?:TEMPORARY\s+)?"
    r"(MATERIALIZED\s+VIEW|LIVE\s+VIEW|WINDOW\s+VIEW|VIEW|DICTIONARY|TABLE)\b",
    re.IGNORECASE
)


def _unquote(identifier: str) -> str:
    return identifier.replace('`', '').strip()


def call_body(text: str, open_paren: int) -> Optional[str]:
    """Text between the parenthesis at open_paren and its closing one.

    Parentheses inside quoted strings and identifiers do not count.

    Args:
        text: DDL text
        open_paren: Index of the opening parenthesis

    Returns:
        Body of the call, None if it is never closed
    """
    depth = 0
    quote = None
    i = open_paren
    while i < len(text):
        ch = text[i]
        if quote is not None:
            if ch == '\\':
                i += 1
            elif ch == quote:
                quote = None
        elif ch in ("'", '`', '"'):
            quote = ch
        elif ch == '(':
            depth += 1
        elif ch == ')':
            depth -= 1
            if depth == 0:
                return text[open_paren + 1:i]
        i += 1
    return None


def split_arguments(body: str) -> List[str]:
    """Split a call body on its top level commas."""
    arguments = []
    depth = 0
    quote = None
    start = 0
    i = 0
    while i < len(body):
        ch = body[i]
        if quote is not None:
            if ch == '\\':
                i += 1
            elif ch == quote:
                quote = None
        elif ch in ("'", '`', '"'):
            quote = ch
        elif ch == '(':
            depth += 1
        elif ch == ')':
            depth -= 1
        elif ch == ',' and depth == 0:
            arguments.append(body[start:i].strip())
            start = i + 1
        i += 1
    arguments.append(body[start:].strip())
    return arguments


def _identifier_argument(argument: str) -> str:
    return argument.strip("'`\"").strip()


def remote_table_expr(engine: str) -> re.Pattern:
    """Pattern for connectors called as Engine('host', 'database', 'table', ...)."""
    return re.compile(
        r"\b" + re.escape(engine) + r"\s*\(\s*'([^']+)'\s*,\s*'([^']+)'\s*,\s*'([^']+)'"
    )


def parse_sink_target(ddl_text: str) -> Optional[str]:
    """Return the explicit TO target of a materialized view DDL.

    Args:
        ddl_text: CREATE MATERIALIZED VIEW statement

    Returns:
        Target name as written (qualified or not) or None
    """
    match = MV_SINK_TO_EXPR.match(ddl_text or '')
    if match is None:
        return None
    return _unquote(match.group(1))


def split_qualified_name(full_name: str, default_database: str) -> Tuple[str, str]:
    """Split 'db.name' into its parts, unqualified names use default_database."""
    database, dot, name = full_name.partition('.')
    if not dot:
        return default_database, full_name
    return database, name


def remote_database_processor(engine: str, category: str) -> EngineProcessor:
    """Build an extractor for a foreign database connector.

    Args:
        engine: Engine name used in the DDL, e.g. MySQL
        category: Category of the external server node

    Returns:
        Extractor function
    """
    expr = remote_table_expr(engine)

    def process(source: CatalogRow) -> List[DependencyDescriptor]:
        match = expr.search(source.ddl_text or '')
        if match is None:
            return []
        host, database, table = match.groups()
        return [DependencyDescriptor(
            kind=NodeKind.EXTERNAL,
            category=category,
            namespace=host,
            name='',
            edge_label=f"[Table]{database}.{table}",
        )]

    return process


def process_kafka(source: CatalogRow) -> List[DependencyDescriptor]:
    """Kafka engine: first broker of the list, labelled with the topic list."""
    broker_match = KAFKA_BROKER_EXPR.search(source.ddl_text or '')
    topic_match = KAFKA_TOPIC_EXPR.search(source.ddl_text or '')
    if broker_match is None or topic_match is None:
        return []

    broker = broker_match.group(1).split(',')[0].strip()
    return [DependencyDescriptor(
        kind=NodeKind.EXTERNAL,
        category='Kafka Server',
        namespace=broker,
        name='',
        edge_label=f"[Topic]{topic_match.group(1)}",
    )]


def process_url(source: CatalogRow) -> List[DependencyDescriptor]:
    match = URL_EXPR.search(source.ddl_text or '')
    if match is None:
        return []
    return [DependencyDescriptor(
        kind=NodeKind.EXTERNAL,
        category='HTTP Server',
        namespace=match.group(1),
        name='',
    )]


def process_dictionary(source: CatalogRow) -> List[DependencyDescriptor]:
    """Dictionary loading from another ClickHouse server."""
    ddl_text = source.ddl_text or ''
    clause = DICTIONARY_SOURCE_EXPR.search(ddl_text)
    if clause is None:
        return []

    # Only the CLICKHOUSE(...) settings, a later clause may repeat the keywords
    settings = call_body(ddl_text, clause.end() - 1)
    if settings is None:
        return []
    host_match = DICTIONARY_HOST_EXPR.search(settings)
    port_match = DICTIONARY_PORT_EXPR.search(settings)
    db_match = DICTIONARY_DB_EXPR.search(settings)
    table_match = DICTIONARY_TABLE_EXPR.search(settings)
    if host_match is None or port_match is None or db_match is None or table_match is None:
        return []

    host = host_match.group(1) or host_match.group(2)
    port = port_match.group(1)
    database = db_match.group(1)
    table = table_match.group(1)
    return [DependencyDescriptor(
        kind=NodeKind.EXTERNAL,
        category='ClickHouse Server',
        namespace=f"{host}:{port}",
        name=f"{database}.{table}",
        edge_label=EDGE_LABELS['load_from'],
    )]


def process_distributed(source: CatalogRow) -> List[DependencyDescriptor]:
    """Distributed engine: the local table, labelled with the sharding key.

    Arguments are (cluster, database, table[, sharding_key[, policy_name]]).
    """
    ddl_text = source.ddl_text or ''
    match = DISTRIBUTED_EXPR.search(ddl_text)
    if match is None:
        return []

    body = call_body(ddl_text, match.end() - 1)
    if body is None:
        return []
    arguments = split_arguments(body)
    if len(arguments) < 3:
        return []

    database = _identifier_argument(arguments[1])
    table = _identifier_argument(arguments[2])
    if not database or not table:
        return []
    sharding_key = arguments[3] if len(arguments) > 3 else ''
    return [DependencyDescriptor(
        kind=NodeKind.INTERNAL,
        category=source.engine,
        namespace=database,
        name=table,
        edge_label=sharding_key,
    )]


def process_buffer(source: CatalogRow) -> List[DependencyDescriptor]:
    match = BUFFER_EXPR.search(source.ddl_text or '')
    if match is None:
        return []
    return [DependencyDescriptor(
        kind=NodeKind.INTERNAL,
        category=source.engine,
        namespace=match.group(1),
        name=match.group(2),
    )]


# Materialized views are resolved by the builder, they need the inner table map
ENGINE_PROCESSORS: Dict[str, EngineProcessor] = {
    'MySQL': remote_database_processor('MySQL', 'MySQL Server'),
    'PostgreSQL': remote_database_processor('PostgreSQL', 'PostgreSQL Server'),
    'Kafka': process_kafka,
    'URL': process_url,
    'Dictionary': process_dictionary,
    'Distributed': process_distributed,
    'Buffer': process_buffer,
}


def extract_dependencies(source: CatalogRow) -> List[DependencyDescriptor]:
    """Run the registered extractor for the engine of the row.

    Args:
        source: Catalog row

    Returns:
        Descriptors implied by the DDL, empty for unknown engines or unmatched DDL
    """
    processor = ENGINE_PROCESSORS.get(source.engine)
    if processor is None:
        return []
    dependencies = processor(source)
    if not dependencies:
        _logger.debug("No %s dependency found in DDL of %s", source.engine, source.id)
    return dependencies


class SqlParser:
    """sqlparse based helpers for DDL text."""

    @staticmethod
    def normalize_ddl(sql: Optional[str]) -> str:
        """Strip comments and surrounding whitespace."""
        if not sql:
            return ''
        return sqlparse.format(sql, strip_comments=True).strip()

    @staticmethod
    def pretty_format_ddl(sql: Optional[str]) -> str:
        """Reindent DDL for display when the server did not format it."""
        if not sql:
            return ''
        return sqlparse.format(sql, reindent=True, keyword_case='upper').strip()

    @staticmethod
    def get_object_kind(sql: Optional[str]) -> str:
        """Determine the object kind of a CREATE statement.

        Returns:
            One of materialized_view, view, dictionary, table or unknown
        """
        statements = sqlparse.split(SqlParser.normalize_ddl(sql))
        if not statements:
            return "unknown"

        head = ' '.join(statements[0].split()[:8])
        match = CREATE_KIND_EXPR.match(head)
        if match is None:
            return "unknown"

        kind = ' '.join(match.group(1).upper().split())
        if kind == 'MATERIALIZED VIEW':
            return "materialized_view"
        elif kind.endswith('VIEW'):
            return "view"
        elif kind == 'DICTIONARY':
            return "dictionary"
        return "table"

    @staticmethod
    def engine_for_kind(kind: str) -> str:
        """Engine name reported by the catalog for an object kind."""
        return {
            'materialized_view': ENGINE_NAMES['materialized_view'],
            'view': ENGINE_NAMES['view'],
            'dictionary': 'Dictionary',
        }.get(kind, '')
