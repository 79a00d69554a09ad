"""Tests for entity metadata building.
"""
from dataclasses import dataclass

import pytest
from aerodao import ConfigurationError, Entity, StorageType, build_metadata
from aerodao import column, primary_key, table
from aerodao.converters import FunctionConverter, IntConverter

from tests.fixtures.entities import Flavor, LongListConverter, Sample, Untabled
from tests.fixtures.entities import Wide


def test_table_name_from_decorator():
    assert build_metadata(Sample).table_name == 'test.entity'


def test_table_name_defaults_to_class_name():
    assert build_metadata(Untabled).table_name == 'Untabled'


def test_reverse_column_mapping():
    metadata = build_metadata(Sample)
    assert dict(metadata.field_by_column) == {
        'varchar': 'varchar',
        'enum': 'flavor',
        'bool': 'flag',
        'list': 'items',
    }


def test_all_fields_registered():
    metadata = build_metadata(Wide)
    assert set(metadata.fields_by_name) == {
        'name', 'count', 'ratio', 'tags', 'attrs', 'flavor', 'active', 'born', 'note'}
    assert metadata.fields_by_name['note'].column is None
    assert 'registry' not in metadata.fields_by_name


def test_storage_types():
    metadata = build_metadata(Wide)
    assert metadata.storage_type['name'] == StorageType.STRING
    assert metadata.storage_type['count'] == StorageType.INTEGER
    assert metadata.storage_type['ratio'] == StorageType.DOUBLE
    assert metadata.storage_type['tags'] == StorageType.LIST
    assert metadata.storage_type['attrs'] == StorageType.MAP
    assert metadata.storage_type['flavor'] == StorageType.STRING


def test_explicit_storage_overrides_hint():
    metadata = build_metadata(Untabled)
    assert metadata.storage_type['level'] == StorageType.STRING
    assert metadata.storage_type['score'] == StorageType.DOUBLE


def test_field_kinds():
    fields = build_metadata(Wide).fields_by_name
    assert fields['flavor'].kind == 'enum'
    assert fields['flavor'].enum_class is Flavor
    assert fields['active'].kind == 'bool'
    assert fields['tags'].kind == 'list'
    assert fields['attrs'].kind == 'map'
    assert fields['name'].kind == 'value'


def test_converters_instantiated_once():
    metadata = build_metadata(Sample)
    assert isinstance(metadata.converter['items'], LongListConverter)
    assert metadata.converter['varchar'] is None
    assert metadata.fields_by_name['items'].converter is metadata.converter['items']


def test_primary_key():
    assert build_metadata(Sample).primary_key_field.name == 'id'
    assert build_metadata(Wide).primary_key_field is None


def test_schema_descriptor():
    assert build_metadata(Sample).schema() == {
        'test.entity': {'varchar': 3, 'enum': 3, 'bool': 3, 'list': 20}}


def test_field_for_column_fallback():
    metadata = build_metadata(Wide)
    assert metadata.field_for_column('count').name == 'count'
    assert metadata.field_for_column('note').name == 'note'
    assert metadata.field_for_column('unknown') is None


def test_idempotent():
    first, second = build_metadata(Sample), build_metadata(Sample)
    assert first.table_name == second.table_name
    assert dict(first.field_by_column) == dict(second.field_by_column)
    assert first.schema() == second.schema()


def test_metadata_read_only():
    metadata = build_metadata(Sample)
    with pytest.raises(TypeError):
        metadata.field_by_column['x'] = 'y'
    with pytest.raises(AttributeError):
        metadata.table_name = 'other'


def test_callable_converter():
    @dataclass
    class Scaled(Entity):
        value: int = column('value', retrieve=lambda v: v * 10)

    converter = build_metadata(Scaled).converter['value']
    assert isinstance(converter, FunctionConverter)
    assert converter.retrieve(2) == 20


def test_converter_instance():
    @dataclass
    class Narrow(Entity):
        value: int = column('value', retrieve=IntConverter(8))

    assert build_metadata(Narrow).converter['value'].bits == 8


class TestConfigurationErrors:

    def test_not_a_dataclass(self):
        class Plain(Entity):
            pass

        with pytest.raises(ConfigurationError):
            build_metadata(Plain)

    def test_duplicate_column(self):
        @dataclass
        class Dup(Entity):
            a: str = column('x')
            b: str = column('x')

        with pytest.raises(ConfigurationError, match='x'):
            build_metadata(Dup)

    def test_empty_column_name(self):
        @dataclass
        class Empty(Entity):
            a: str = column('')

        with pytest.raises(ConfigurationError):
            build_metadata(Empty)

    def test_two_primary_keys(self):
        @dataclass
        class TwoKeys(Entity):
            a: str = primary_key()
            b: str = primary_key()

        with pytest.raises(ConfigurationError, match='primary key'):
            build_metadata(TwoKeys)

    def test_invalid_converter(self):
        @dataclass
        class BadConverter(Entity):
            a: str = column('a', retrieve=42)

        with pytest.raises(ConfigurationError):
            build_metadata(BadConverter)

    def test_converter_class_not_converter(self):
        @dataclass
        class WrongClass(Entity):
            a: str = column('a', retrieve=dict)

        with pytest.raises(ConfigurationError):
            build_metadata(WrongClass)

    def test_invalid_storage(self):
        @dataclass
        class BadStorage(Entity):
            a: str = column('a', storage='text')

        with pytest.raises(ConfigurationError):
            build_metadata(BadStorage)

    def test_field_without_default(self):
        @dataclass
        class NoDefault(Entity):
            a: str

        with pytest.raises(ConfigurationError, match='default'):
            build_metadata(NoDefault)

    def test_empty_table_name(self):
        with pytest.raises(ConfigurationError):
            table('')
