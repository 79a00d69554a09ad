"""
Declarative entity metadata and the metadata builder.

Entities are dataclasses. Table, column, converter and primary-key bindings
are declared explicitly and collected once per DAO into an immutable
EntityMetadata:

    @table('test.entity')
    @dataclass
    class Sample(Entity):
        id: str = primary_key()
        varchar: str = column('varchar')
        items: list[int] = column('list', retrieve=ListConverter(IntConverter))

Fields without a column binding are still registered by name, so that a
record bin named exactly like the field can populate it.
"""
import dataclasses
import enum
import logging
import typing
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from aerodao.converters import Converter, as_converter
from aerodao.exceptions import ConfigurationError
from aerodao.types import StorageType, classify_storage_type, is_enum_type
from aerodao.types import unwrap_optional
from more_itertools import duplicates_everseen

logger = logging.getLogger(__name__)

TABLE_ATTR = '__aerodao_table__'
COLUMN_KEY = 'aerodao.column'
RETRIEVE_KEY = 'aerodao.retrieve'
STORAGE_KEY = 'aerodao.storage'
PK_KEY = 'aerodao.pk'


def table(name: str):
    """Class decorator overriding the physical table (``namespace.set``) name.
    """
    if not isinstance(name, str) or not name.strip():
        raise ConfigurationError(f'Table name must be a non-empty string, not {name!r}')

    def decorate(cls):
        setattr(cls, TABLE_ATTR, name)
        return cls

    return decorate


def column(name: str, *, retrieve: Any = None, storage: StorageType | None = None,
           default: Any = None, **kwargs: Any) -> Any:
    """Bind a dataclass field to a physical column (bin).

    Parameters
        name: column name in the store
        retrieve: optional converter reference applied on read
        storage: optional explicit storage category, overrides the type hint
        default: field default used for default construction
    """
    metadata = dict(kwargs.pop('metadata', None) or {})
    metadata.update({COLUMN_KEY: name, RETRIEVE_KEY: retrieve, STORAGE_KEY: storage})
    if 'default_factory' not in kwargs:
        kwargs['default'] = default
    return dataclasses.field(metadata=metadata, **kwargs)


def primary_key(default: Any = None, **kwargs: Any) -> Any:
    """Mark the field receiving the record's user key.
    """
    metadata = dict(kwargs.pop('metadata', None) or {})
    metadata[PK_KEY] = True
    if 'default_factory' not in kwargs:
        kwargs['default'] = default
    return dataclasses.field(metadata=metadata, **kwargs)


def _fetch_value(value: Any) -> Any:
    return value


def _fetch_bool(value: Any) -> Any:
    """Booleans as stored, integers as ``value != 0``."""
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    raise TypeError(f'expected a boolean, got {type(value).__name__} {value!r}')


def _fetch_list(value: Any) -> Any:
    if value is None:
        return None
    if not isinstance(value, list | tuple):
        raise TypeError(f'expected a list, got {type(value).__name__} {value!r}')
    return list(value)


def _fetch_map(value: Any) -> Any:
    if value is None:
        return None
    if not isinstance(value, Mapping):
        raise TypeError(f'expected a map, got {type(value).__name__} {value!r}')
    return dict(value)


# Native shape accessors, keyed by FieldHandle.kind
FETCHERS = {
    'bool': _fetch_bool,
    'list': _fetch_list,
    'map': _fetch_map,
    'value': _fetch_value,
}


@dataclass(frozen=True)
class FieldHandle:
    """Resolved description of one entity field.
    """
    name: str
    type: Any
    column: str | None = None
    storage_type: StorageType = StorageType.STRING
    converter: Converter | None = None
    enum_class: type[enum.Enum] | None = None
    kind: str = 'value'
    primary_key: bool = False

    def assign(self, entity: Any, value: Any) -> None:
        setattr(entity, self.name, value)


def _field_kind(hint: Any, storage_type: StorageType) -> str:
    hint = unwrap_optional(hint)
    if is_enum_type(hint):
        return 'enum'
    if hint is bool:
        return 'bool'
    if storage_type == StorageType.LIST:
        return 'list'
    if storage_type == StorageType.MAP:
        return 'map'
    return 'value'


@dataclass(frozen=True)
class EntityMetadata:
    """Per-entity mapping, built once and read-only afterwards.
    """
    entity_class: type
    table_name: str
    field_by_column: MappingProxyType
    fields_by_name: MappingProxyType
    storage_type: MappingProxyType
    converter: MappingProxyType
    primary_key_field: FieldHandle | None = None

    def field_name_for(self, column_name: str) -> str:
        """Reverse column mapping, falling back to the column name itself.
        """
        return self.field_by_column.get(column_name, column_name)

    def field_for_column(self, column_name: str) -> FieldHandle | None:
        return self.fields_by_name.get(self.field_name_for(column_name))

    def schema(self) -> dict[str, dict[str, int]]:
        """Schema descriptor handed to the statement compiler.

        Returns
            ``{table_name: {column_name: storage type code}}``
        """
        columns = {}
        for column_name, field_name in self.field_by_column.items():
            columns[column_name] = int(self.storage_type[field_name])
        return {self.table_name: columns}


def _resolve_hints(entity_class: type) -> dict[str, Any]:
    try:
        return typing.get_type_hints(entity_class)
    except (NameError, TypeError) as exc:
        raise ConfigurationError(f'Cannot resolve type hints of {entity_class.__name__}: {exc}') from exc


def _table_name(entity_class: type) -> str:
    name = entity_class.__dict__.get(TABLE_ATTR)
    if name is None:
        return entity_class.__name__
    return name


def build_metadata(entity_class: type) -> EntityMetadata:
    """Introspect an entity dataclass into an EntityMetadata.

    Idempotent and side-effect free; every call builds a fresh record.

    Raises
        ConfigurationError: entity is not a dataclass, a column binding is
            empty or duplicated, more than one primary key is declared, or a
            converter reference is invalid.
    """
    if not isinstance(entity_class, type) or not dataclasses.is_dataclass(entity_class):
        raise ConfigurationError(f'{entity_class!r} is not a dataclass entity')

    hints = _resolve_hints(entity_class)
    fields_by_name: dict[str, FieldHandle] = {}
    field_by_column: dict[str, str] = {}
    storage_types: dict[str, StorageType] = {}
    converters: dict[str, Converter | None] = {}
    pk_fields: list[FieldHandle] = []
    bound_columns: list[str] = []

    for f in dataclasses.fields(entity_class):
        hint = hints.get(f.name, Any)
        column_name = f.metadata.get(COLUMN_KEY)
        storage = f.metadata.get(STORAGE_KEY)
        retrieve = f.metadata.get(RETRIEVE_KEY)

        if COLUMN_KEY in f.metadata:
            if not isinstance(column_name, str) or not column_name:
                raise ConfigurationError(
                    f'{entity_class.__name__}.{f.name}: column name must be a non-empty string')
            bound_columns.append(column_name)
        if f.init and f.default is dataclasses.MISSING and f.default_factory is dataclasses.MISSING:
            raise ConfigurationError(
                f'{entity_class.__name__}.{f.name}: field needs a default, entities are default-constructed')
        if storage is not None and not isinstance(storage, StorageType):
            raise ConfigurationError(f'{entity_class.__name__}.{f.name}: invalid storage type {storage!r}')

        storage_type = storage or classify_storage_type(hint)
        converter = as_converter(retrieve) if retrieve is not None else None
        handle = FieldHandle(
            name=f.name,
            type=hint,
            column=column_name,
            storage_type=storage_type,
            converter=converter,
            enum_class=unwrap_optional(hint) if is_enum_type(hint) else None,
            kind=_field_kind(hint, storage_type),
            primary_key=bool(f.metadata.get(PK_KEY)),
        )
        fields_by_name[f.name] = handle
        storage_types[f.name] = storage_type
        converters[f.name] = converter
        if column_name is not None:
            field_by_column[column_name] = f.name
        if handle.primary_key:
            pk_fields.append(handle)

    duplicates = list(duplicates_everseen(bound_columns))
    if duplicates:
        raise ConfigurationError(
            f'{entity_class.__name__}: columns bound to more than one field: {", ".join(duplicates)}')
    if len(pk_fields) > 1:
        raise ConfigurationError(
            f'{entity_class.__name__}: more than one primary key field: {", ".join(h.name for h in pk_fields)}')

    metadata = EntityMetadata(
        entity_class=entity_class,
        table_name=_table_name(entity_class),
        field_by_column=MappingProxyType(field_by_column),
        fields_by_name=MappingProxyType(fields_by_name),
        storage_type=MappingProxyType(storage_types),
        converter=MappingProxyType(converters),
        primary_key_field=pk_fields[0] if pk_fields else None,
    )
    logger.debug(f'Built metadata for {entity_class.__name__}: table={metadata.table_name}, '
                 f'columns={list(field_by_column)}, pk={metadata.primary_key_field and metadata.primary_key_field.name}')
    return metadata
