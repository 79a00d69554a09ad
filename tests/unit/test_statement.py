"""Tests for compiling final query strings into statements.
"""
import pytest
from aerodao.exceptions import QueryError
from aerodao.statement import Predicate, Statement, StatementCompiler
from aerodao.types import StorageType

SCHEMA = {
    'test.entity': {
        'varchar': StorageType.STRING,
        'count': StorageType.INTEGER,
        'ratio': StorageType.DOUBLE,
        'list': StorageType.LIST,
    }
}


@pytest.fixture
def compiler():
    return StatementCompiler.for_schema(SCHEMA)


def test_select_all(compiler):
    statement = compiler.from_string('SELECT * FROM test.entity')
    assert statement == Statement(namespace='test', set_name='entity')


def test_select_bins(compiler):
    statement = compiler.from_string('select varchar, count from test.entity;')
    assert statement.bins == ('varchar', 'count')


def test_namespace_only(compiler):
    statement = compiler.from_string('SELECT * FROM test')
    assert statement.namespace == 'test'
    assert statement.set_name is None


def test_equality_becomes_index_filter(compiler):
    statement = compiler.from_string('SELECT * FROM test.entity WHERE count = 5')
    assert statement.index_filter == Predicate('count', '=', (5,))
    assert statement.predicates == ()


def test_schema_types_literals(compiler):
    statement = compiler.from_string("SELECT * FROM test.entity WHERE varchar = 123")
    assert statement.index_filter == Predicate('varchar', '=', ('123',))


def test_double_bin_is_residual(compiler):
    statement = compiler.from_string('SELECT * FROM test.entity WHERE ratio = 1')
    assert statement.index_filter is None
    assert statement.predicates == (Predicate('ratio', '=', (1.0,)),)


def test_between(compiler):
    statement = compiler.from_string('SELECT * FROM test.entity WHERE count BETWEEN 1 AND 10')
    assert statement.index_filter == Predicate('count', 'between', (1, 10))


def test_in_list_and_residuals(compiler):
    statement = compiler.from_string(
        "SELECT * FROM test.entity WHERE count IN (1,2,3) AND varchar = 'a b' AND ratio >= 0.5")
    assert statement.index_filter == Predicate('varchar', '=', ('a b',))
    assert statement.predicates == (
        Predicate('count', 'in', (1, 2, 3)),
        Predicate('ratio', '>=', (0.5,)),
    )


def test_unknown_table_infers_literals(compiler):
    statement = compiler.from_string("SELECT * FROM other.set WHERE a = 1 AND b = 'x' AND c = 2.5 AND d = yes")
    assert statement.index_filter == Predicate('a', '=', (1,))
    assert statement.predicates == (
        Predicate('b', '=', ('x',)),
        Predicate('c', '=', (2.5,)),
        Predicate('d', '=', ('yes',)),
    )


def test_schema_found_by_set_name():
    compiler = StatementCompiler.for_schema({'entity': {'count': StorageType.INTEGER}})
    statement = compiler.from_string("SELECT * FROM test.entity WHERE count = '7'")
    assert statement.index_filter == Predicate('count', '=', (7,))


def test_escaped_marker_kept_in_literal(compiler):
    statement = compiler.from_string("SELECT * FROM test.entity WHERE varchar = 'a\\?'")
    assert statement.index_filter.values == ('a\\?',)


def test_statements_cached(compiler):
    query = 'SELECT * FROM test.entity WHERE count = 5'
    assert compiler.from_string(query) is compiler.from_string(query)


def test_cache_disabled():
    compiler = StatementCompiler.for_schema(SCHEMA, cache_size=0)
    query = 'SELECT * FROM test.entity WHERE count = 5'
    assert compiler.from_string(query) == compiler.from_string(query)


@pytest.mark.parametrize('query', [
    'DELETE FROM test.entity',
    'SELECT * FROM',
    'SELECT * FROM test.entity WHERE',
    'SELECT * FROM test.entity WHERE count',
    'SELECT * FROM test.entity WHERE count = 1 OR count = 2',
    'SELECT * FROM test.entity WHERE count BETWEEN 1',
    'SELECT * FROM test.entity WHERE count IN (1, 2',
    "SELECT * FROM test.entity WHERE count = 'abc'",
    'SELECT a b FROM test.entity',
])
def test_invalid_queries(compiler, query):
    with pytest.raises(QueryError):
        compiler.from_string(query)


class TestStatementEvaluation:

    def test_matches_residuals(self):
        statement = Statement('test', 'entity', predicates=(Predicate('count', '>', (2,)),))
        assert statement.matches({'count': 3})
        assert not statement.matches({'count': 1})
        assert not statement.matches({})

    def test_matches_with_filter(self):
        statement = Statement('test', 'entity', index_filter=Predicate('count', '=', (2,)))
        assert statement.matches({'count': 1})
        assert not statement.matches({'count': 1}, with_filter=True)

    def test_incomparable_values_do_not_match(self):
        assert not Predicate('count', '<', (2,)).evaluate({'count': 'a'})

    def test_bool_compared_by_literal_form(self):
        assert Predicate('active', '=', ('True',)).evaluate({'active': True})
        assert not Predicate('active', '=', ('True',)).evaluate({'active': False})
        assert Predicate('active', 'in', ('False',)).evaluate({'active': False})

    def test_project(self):
        statement = Statement('test', 'entity', bins=('a',))
        assert statement.project({'a': 1, 'b': 2}) == {'a': 1}
        assert Statement('test', 'entity').project({'a': 1, 'b': 2}) == {'a': 1, 'b': 2}
