"""
Result materialization: cursor records -> entity instances.

For each record a default-constructed entity is populated bin by bin:
1. The bin is resolved to a field through the reverse column mapping, or by
   its own name when no column is bound to it
2. The raw value is fetched in the field's native shape (bool, list, dict,
   or as stored)
3. Enum fields are looked up by member name; other fields go through their
   converter, if one is bound
4. With a primary key declared, the record's user key is assigned last
"""
import logging
from typing import Any

from aerodao.client import Cursor
from aerodao.exceptions import TypeConversionError
from aerodao.metadata import FETCHERS, EntityMetadata, FieldHandle

logger = logging.getLogger(__name__)


def _enum_value(handle: FieldHandle, value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, handle.enum_class):
        return value
    return handle.enum_class[value]


def convert_value(handle: FieldHandle, value: Any) -> Any:
    """Turn a raw stored value into the value assigned to a field.
    """
    if handle.kind == 'enum':
        return _enum_value(handle, value)
    value = FETCHERS[handle.kind](value)
    if handle.converter is not None:
        return handle.converter.retrieve(value)
    return value


def materialize_record(metadata: EntityMetadata, bins: dict[str, Any], user_key: Any = None) -> Any:
    """Build one entity from a record's bins.

    Raises
        TypeConversionError: a value cannot be fetched, converted or assigned
    """
    try:
        entity = metadata.entity_class()
    except Exception as exc:
        raise TypeConversionError(f'Cannot instantiate {metadata.entity_class.__name__}: {exc}') from exc

    for column_name, value in bins.items():
        handle = metadata.field_for_column(column_name)
        if handle is None:
            logger.debug(f'{metadata.table_name}: no field for bin {column_name!r}, skipped')
            continue
        try:
            handle.assign(entity, convert_value(handle, value))
        except Exception as exc:
            raise TypeConversionError(
                f'{metadata.entity_class.__name__}.{handle.name} from bin {column_name!r}: {exc}') from exc

    if metadata.primary_key_field is not None:
        if user_key is None:
            raise TypeConversionError(
                f'{metadata.table_name}: record returned without user key for {metadata.primary_key_field.name}')
        metadata.primary_key_field.assign(entity, user_key)

    return entity


def materialize(cursor: Cursor, metadata: EntityMetadata) -> list[Any]:
    """Consume a cursor into a list of entities.

    The key is read from the cursor only when the entity declares a
    primary key field.
    """
    entities = []
    pk = metadata.primary_key_field is not None
    while cursor.next():
        user_key = cursor.key().user_key if pk else None
        entities.append(materialize_record(metadata, cursor.record(), user_key))
    logger.debug(f'{metadata.table_name}: materialized {len(entities)} entities')
    return entities
