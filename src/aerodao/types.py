"""
Consolidated type handling for entity mapping.

This module provides:
- StorageType: coarse storage categories with the store's particle codes
- Entity: identity accessor contract for persistent classes
- classify_storage_type: resolve a declared field type to a StorageType
"""
import enum
import logging
import types
import typing
from collections.abc import Mapping, Sequence
from typing import Any

logger = logging.getLogger(__name__)


class StorageType(enum.IntEnum):
    """Storage categories, valued with the store's particle type codes.
    """
    INTEGER = 1
    DOUBLE = 2
    STRING = 3
    MAP = 19
    LIST = 20


class Entity:
    """Base class for persistent entities.

    Subclasses expose their identity value through ``get_id``; entities
    passed as query arguments are substituted by that value.
    """

    def get_id(self) -> Any:
        raise NotImplementedError(f'{type(self).__name__} does not define get_id()')


# Checked in order, first match wins
_STORAGE_PRECEDENCE: list[tuple[type, StorageType]] = [
    (float, StorageType.DOUBLE),
    (int, StorageType.INTEGER),
    (Mapping, StorageType.MAP),
    (Sequence, StorageType.LIST),
]


def unwrap_optional(hint: Any) -> Any:
    """Strip ``None`` from ``X | None`` and ``Optional[X]`` hints.
    """
    origin = typing.get_origin(hint)
    if origin is typing.Union or origin is types.UnionType:
        args = [a for a in typing.get_args(hint) if a is not type(None)]
        if len(args) == 1:
            return args[0]
        return Any
    return hint


def _runtime_class(hint: Any) -> type:
    """Return the class a hint is checked against, ``object`` for Any.
    """
    if hint is Any:
        return object
    origin = typing.get_origin(hint)
    if isinstance(origin, type):
        return origin
    if isinstance(hint, type):
        return hint
    return object


def is_enum_type(hint: Any) -> bool:
    hint = unwrap_optional(hint)
    return isinstance(hint, type) and issubclass(hint, enum.Enum)


def classify_storage_type(hint: Any) -> StorageType:
    """Classify a declared field type into a storage category.

    A rule matches when the declared class is the category class, a subclass
    of it, or one of its supertypes, so that ``Any``, ``object`` and
    ``numbers.Number`` fields fall into the first rule. Strings, bytes,
    booleans and enumerations are never treated as numbers or sequences.

    >>> classify_storage_type(float)
    <StorageType.DOUBLE: 2>
    >>> classify_storage_type(int | None)
    <StorageType.INTEGER: 1>
    >>> classify_storage_type(dict[str, int])
    <StorageType.MAP: 19>
    >>> classify_storage_type(list[int])
    <StorageType.LIST: 20>
    >>> classify_storage_type(str)
    <StorageType.STRING: 3>
    """
    hint = unwrap_optional(hint)
    if is_enum_type(hint):
        return StorageType.STRING
    cls = _runtime_class(hint)
    if issubclass(cls, str | bytes | bool):
        return StorageType.STRING
    for category, storage_type in _STORAGE_PRECEDENCE:
        if issubclass(cls, category) or issubclass(category, cls):
            return storage_type
    return StorageType.STRING
