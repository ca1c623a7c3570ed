"""Shared fixtures for dependency graph tests."""
import pytest

from dep_graph.models import CatalogRow


def make_row(full_name, engine='MergeTree', ddl_text='', uuid='', deps=None, **kwargs):
    """Create a catalog row, deps is a list of 'database.table' names."""
    database, name = full_name.split('.', 1)
    deps = deps or []
    return CatalogRow(
        id=full_name,
        uuid=uuid,
        database=database,
        name=name,
        engine=engine,
        ddl_text=ddl_text,
        dependency_databases=[dep.split('.', 1)[0] for dep in deps],
        dependency_tables=[dep.split('.', 1)[1] for dep in deps],
        **kwargs
    )


@pytest.fixture
def row_factory():
    """Factory for catalog rows."""
    return make_row
