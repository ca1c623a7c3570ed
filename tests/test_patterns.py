"""Tests for DDL pattern extraction."""
import pytest

from dep_graph.models import NodeKind
from dep_graph.patterns import (
    ENGINE_PROCESSORS,
    SqlParser,
    call_body,
    extract_dependencies,
    parse_sink_target,
    split_arguments,
    split_qualified_name,
)


@pytest.mark.parametrize("ddl,expected_label", [
    ("CREATE TABLE db.t1 (`id` UInt64) ENGINE = Distributed('cluster', 'remote_db', 'remote_tbl', rand())",
     "rand()"),
    ("CREATE TABLE db.t1 (`id` UInt64) ENGINE = Distributed('cluster', 'remote_db', 'remote_tbl')",
     ""),
    ("CREATE TABLE db.t1 (`id` UInt64) ENGINE = Distributed('cluster', 'remote_db', 'remote_tbl', user_id)",
     "user_id"),
    ("CREATE TABLE db.t1 (`id` UInt64) ENGINE = Distributed('{cluster}', 'remote_db', 'remote_tbl', cityHash64(a, b))",
     "cityHash64(a, b)"),
    ("CREATE TABLE db.t1 (`id` UInt64) ENGINE = Distributed('cluster', 'remote_db', 'remote_tbl', cityHash64(toString(user_id)))",
     "cityHash64(toString(user_id))"),
    ("CREATE TABLE db.t1 (`id` UInt64) ENGINE = Distributed('cluster', 'remote_db', 'remote_tbl', sipHash64(concat(a, toString(b))), 'hot_cold')",
     "sipHash64(concat(a, toString(b)))"),
    ("CREATE TABLE db.t1 (`id` UInt64) ENGINE = Distributed('cluster', `remote_db`, `remote_tbl`, rand()) SETTINGS fsync_after_insert = 0",
     "rand()"),
])
def test_distributed(row_factory, ddl, expected_label):
    """Test Distributed engine parsing with and without sharding key."""
    row = row_factory('db.t1', engine='Distributed', ddl_text=ddl)

    dependencies = extract_dependencies(row)

    assert len(dependencies) == 1
    dependency = dependencies[0]
    assert dependency.kind == NodeKind.INTERNAL
    assert dependency.full_name == 'remote_db.remote_tbl'
    assert dependency.edge_label == expected_label


def test_buffer(row_factory):
    """Test Buffer engine points at its destination table."""
    row = row_factory('db.buf', engine='Buffer', ddl_text=(
        "CREATE TABLE db.buf (`id` UInt64) "
        "ENGINE = Buffer('db', 'dst', 16, 10, 100, 10000, 1000000, 10000000, 100000000)"
    ))

    dependencies = extract_dependencies(row)

    assert [(d.kind, d.full_name, d.edge_label) for d in dependencies] == [
        (NodeKind.INTERNAL, 'db.dst', None)
    ]


def test_kafka_uses_first_broker(row_factory):
    """Test Kafka engine produces one external dependency."""
    row = row_factory('db.kq', engine='Kafka', ddl_text=(
        "CREATE TABLE db.kq (`msg` String) ENGINE = Kafka "
        "SETTINGS kafka_broker_list = 'b1:9092,b2:9092', kafka_topic_list = 'events', "
        "kafka_group_name = 'group1', kafka_format = 'JSONEachRow'"
    ))

    dependencies = extract_dependencies(row)

    assert len(dependencies) == 1
    dependency = dependencies[0]
    assert dependency.kind == NodeKind.EXTERNAL
    assert dependency.namespace == 'b1:9092'
    assert dependency.category == 'Kafka Server'
    assert dependency.name == ''
    assert dependency.edge_label == '[Topic]events'


def test_kafka_without_broker_list(row_factory):
    """Test partial Kafka settings give nothing."""
    row = row_factory('db.kq', engine='Kafka', ddl_text=(
        "CREATE TABLE db.kq (`msg` String) ENGINE = Kafka SETTINGS kafka_topic_list = 'events'"
    ))

    assert extract_dependencies(row) == []


@pytest.mark.parametrize("engine,category", [
    ('MySQL', 'MySQL Server'),
    ('PostgreSQL', 'PostgreSQL Server'),
])
def test_remote_database(row_factory, engine, category):
    """Test foreign database connectors."""
    row = row_factory('db.orders', engine=engine, ddl_text=(
        f"CREATE TABLE db.orders (`id` UInt64) "
        f"ENGINE = {engine}('remote-host:3306', 'shop', 'orders', 'user', 'secret')"
    ))

    dependencies = extract_dependencies(row)

    assert len(dependencies) == 1
    dependency = dependencies[0]
    assert dependency.kind == NodeKind.EXTERNAL
    assert dependency.namespace == 'remote-host:3306'
    assert dependency.category == category
    assert dependency.edge_label == '[Table]shop.orders'


def test_url(row_factory):
    """Test URL engine has no edge label."""
    row = row_factory('db.web', engine='URL', ddl_text=(
        "CREATE TABLE db.web (`line` String) ENGINE = URL('http://example.com/data.csv', 'CSV')"
    ))

    dependencies = extract_dependencies(row)

    assert len(dependencies) == 1
    assert dependencies[0].category == 'HTTP Server'
    assert dependencies[0].namespace == 'http://example.com/data.csv'
    assert dependencies[0].edge_label is None


@pytest.mark.parametrize("host_clause", ["HOST localhost", "HOST 'localhost'"])
def test_dictionary_clickhouse_source(row_factory, host_clause):
    """Test dictionary source spanning several lines."""
    row = row_factory('db.dict', engine='Dictionary', ddl_text=(
        "CREATE DICTIONARY db.dict\n"
        "(\n    `id` UInt64,\n    `value` String\n)\n"
        "PRIMARY KEY id\n"
        "SOURCE(CLICKHOUSE(\n"
        f"    {host_clause} PORT 9000 USER 'default'\n"
        "    TABLE 'src' DB 'remote'\n"
        "))\n"
        "LIFETIME(MIN 0 MAX 1000)\n"
        "LAYOUT(FLAT())"
    ))

    dependencies = extract_dependencies(row)

    assert len(dependencies) == 1
    dependency = dependencies[0]
    assert dependency.kind == NodeKind.EXTERNAL
    assert dependency.category == 'ClickHouse Server'
    assert dependency.namespace == 'localhost:9000'
    assert dependency.name == 'remote.src'
    assert dependency.edge_label == 'Load From'


def test_dictionary_other_source(row_factory):
    """Test dictionaries not loading from ClickHouse are ignored."""
    row = row_factory('db.dict', engine='Dictionary', ddl_text=(
        "CREATE DICTIONARY db.dict (`id` UInt64) PRIMARY KEY id "
        "SOURCE(HTTP(URL 'http://example.com/dict.tsv' FORMAT 'TabSeparated')) "
        "LIFETIME(300) LAYOUT(FLAT())"
    ))

    assert extract_dependencies(row) == []


def test_unknown_engine(row_factory):
    """Test engines without extractor."""
    row = row_factory('db.t', engine='MergeTree', ddl_text="CREATE TABLE db.t (`a` UInt8) ENGINE = MergeTree")

    assert 'MergeTree' not in ENGINE_PROCESSORS
    assert extract_dependencies(row) == []


def test_unmatched_ddl_gives_nothing(row_factory):
    """Test every registered extractor tolerates foreign DDL."""
    row = row_factory('db.t', ddl_text="CREATE TABLE db.t (`a` UInt8) ENGINE = Memory")

    for processor in ENGINE_PROCESSORS.values():
        assert processor(row) == []


@pytest.mark.parametrize("ddl,expected", [
    ("CREATE MATERIALIZED VIEW db.mv TO db.target (`a` UInt8) AS SELECT a FROM db.src", "db.target"),
    ("CREATE MATERIALIZED VIEW db.mv TO target (`a` UInt8) AS SELECT a FROM db.src", "target"),
    ("CREATE MATERIALIZED VIEW `db`.`mv` TO `db`.`target` AS SELECT a FROM db.src", "db.target"),
    ("CREATE MATERIALIZED VIEW db.mv ON CLUSTER main TO db.target AS SELECT a FROM db.src", "db.target"),
    ("CREATE MATERIALIZED VIEW db.mv\nTO db.target\nAS SELECT a FROM db.src", "db.target"),
    ("CREATE MATERIALIZED VIEW db.`events-mv` TO db.`events-daily` AS SELECT a FROM db.src", "db.events-daily"),
    ("CREATE MATERIALIZED VIEW IF NOT EXISTS `my-db`.mv TO `my-db`.`.inner-target` AS SELECT 1", "my-db..inner-target"),
    ("CREATE MATERIALIZED VIEW db.mv (`a` UInt8) ENGINE = MergeTree ORDER BY a AS SELECT a FROM db.src", None),
    ("", None),
])
def test_parse_sink_target(ddl, expected):
    """Test explicit sink target of materialized views."""
    assert parse_sink_target(ddl) == expected


def test_split_qualified_name():
    """Test unqualified names default to the given database."""
    assert split_qualified_name('other.t', 'db') == ('other', 't')
    assert split_qualified_name('t', 'db') == ('db', 't')


@pytest.mark.parametrize("ddl,kind", [
    ("CREATE MATERIALIZED VIEW db.mv TO db.t AS SELECT 1", "materialized_view"),
    ("CREATE VIEW db.v AS SELECT 1", "view"),
    ("create or replace view db.v as select 1", "view"),
    ("CREATE DICTIONARY db.d (`id` UInt64) PRIMARY KEY id", "dictionary"),
    ("CREATE TABLE db.t (`a` UInt8) ENGINE = Memory", "table"),
    ("SELECT 1", "unknown"),
    ("", "unknown"),
])
def test_get_object_kind(ddl, kind):
    """Test statement classification."""
    assert SqlParser.get_object_kind(ddl) == kind


def test_engine_for_kind():
    """Test engine names used for rows without engine."""
    assert SqlParser.engine_for_kind('materialized_view') == 'MaterializedView'
    assert SqlParser.engine_for_kind('view') == 'View'
    assert SqlParser.engine_for_kind('table') == ''


def test_normalize_ddl():
    """Test comments are stripped."""
    normalized = SqlParser.normalize_ddl("CREATE TABLE db.t (`a` UInt8) -- note\nENGINE = Memory")

    assert 'note' not in normalized
    assert normalized.startswith('CREATE TABLE db.t')
    assert 'ENGINE = Memory' in normalized
    assert SqlParser.normalize_ddl(None) == ''


def test_pretty_format_ddl():
    """Test formatting keeps the statement."""
    formatted = SqlParser.pretty_format_ddl("create view db.v as select a, b from db.t where a > 1")

    assert 'SELECT' in formatted
    assert 'db.t' in formatted
    assert SqlParser.pretty_format_ddl('') == ''


def test_dictionary_settings_bounded_to_source_clause(row_factory):
    """Test keywords after the source clause are not read."""
    row = row_factory('db.dict', engine='Dictionary', ddl_text=(
        "CREATE DICTIONARY db.dict (`id` UInt64) PRIMARY KEY id\n"
        "SOURCE(CLICKHOUSE(HOST 'ch1' PORT 9000 DB 'remote' QUERY 'SELECT id FROM src'))\n"
        "LIFETIME(300)\n"
        "LAYOUT(FLAT()) -- was TABLE 'events' before"
    ))

    assert extract_dependencies(row) == []


def test_dictionary_query_with_parentheses(row_factory):
    """Test parentheses inside quoted settings do not close the clause."""
    row = row_factory('db.dict', engine='Dictionary', ddl_text=(
        "CREATE DICTIONARY db.dict (`id` UInt64) PRIMARY KEY id "
        "SOURCE(CLICKHOUSE(HOST 'ch1' PORT 9000 WHERE 'max(id) > 0' DB 'remote' TABLE 'src')) "
        "LIFETIME(300) LAYOUT(FLAT())"
    ))

    dependencies = extract_dependencies(row)

    assert [(d.namespace, d.name) for d in dependencies] == [('ch1:9000', 'remote.src')]


def test_call_body():
    """Test matching parenthesis lookup."""
    text = "Distributed('c', 'db', 't', f(g(x), ')')) SETTINGS a = 1"

    assert call_body(text, text.index('(')) == "'c', 'db', 't', f(g(x), ')')"
    assert call_body("f(a, (b)", 1) is None


def test_split_arguments():
    """Test only top level commas separate arguments."""
    assert split_arguments("'c', `db`, t, cityHash64(a, b), 'x,y'") == [
        "'c'", "`db`", "t", "cityHash64(a, b)", "'x,y'"
    ]
