"""
Query parameter expansion and binding.

This module turns a query template with positional ``?`` bind sites into a
self-contained query string:
- Sequence expansion: a list/tuple argument becomes ``(?,?,...)``
- Literal binding: each scalar replaces the next unescaped ``?``
- Escaping: ``\\?`` is literal text, never a bind site, and keeps its marker

Substituted literals are NOT quoted or escaped. Callers are responsible for
values that could break the query grammar; ``strict=True`` rejects them.
"""
import datetime
import enum
import logging
import re
from typing import Any

from aerodao.exceptions import ParameterMismatchError, ValidationError
from aerodao.types import Entity

logger = logging.getLogger(__name__)

PLACEHOLDER = '?'
ESCAPE = '\\'

# Characters rejected from literals in strict mode
_UNSAFE_LITERAL = re.compile(r"['\";\\\n\r]")


def find_placeholder(query: str, start: int = 0) -> int:
    """Return the index of the next unescaped placeholder at or after start.

    A ``?`` directly preceded by a backslash is skipped.

    Returns
        Index of the placeholder or -1 when none remains
    """
    pos = start
    while True:
        q = query.find(PLACEHOLDER, pos)
        if q < 0:
            return -1
        if q > 0 and query[q - 1] == ESCAPE:
            pos = q + 1
            continue
        return q


def is_sequence_argument(arg: Any) -> bool:
    """Lists and tuples are unfolded, everything else is a scalar.
    """
    return isinstance(arg, list | tuple)


def expand_parameters(query: str, args: tuple | list) -> tuple[str, list]:
    """Rewrite the template so every placeholder binds exactly one scalar.

    Examples
        ``a=? AND b IN ?`` with ``(5, [1, 2, 3])``
        -> ``a=? AND b IN (?,?,?)`` with ``[5, 1, 2, 3]``

    Parameters
        query: query template
        args: positional arguments, scalars or sequences of scalars

    Returns
        Tuple of expanded query and flattened scalar arguments

    Raises
        ParameterMismatchError: fewer unescaped placeholders than arguments
    """
    if not args:
        return query, []

    flat: list[Any] = []
    parts: list[str] = []
    r = 0
    for arg in args:
        q = find_placeholder(query, r)
        if q < 0:
            raise ParameterMismatchError("supplied query and replaceable arguments don't match")
        parts.append(query[r:q])
        r = q + 1

        if is_sequence_argument(arg):
            flat.extend(arg)
            parts.append('(' + ','.join([PLACEHOLDER] * len(arg)) + ')')
        else:
            flat.append(arg)
            parts.append(PLACEHOLDER)

    # Unconsumed tail is kept verbatim, excess placeholders included
    parts.append(query[r:])
    return ''.join(parts), flat


def to_literal(value: Any) -> str:
    """Type-aware string form of a bound argument.

    - Entity: its identity value
    - date/datetime: calendar date, time of day dropped
    - Enum: member name
    - anything else: ``str(value)``
    """
    if isinstance(value, Entity):
        return str(value.get_id())
    if isinstance(value, datetime.datetime):
        return value.date().isoformat()
    if isinstance(value, datetime.date):
        return value.isoformat()
    if isinstance(value, enum.Enum):
        return value.name
    return str(value)


def check_literal(literal: str) -> str:
    """Reject literals containing query-breaking characters.
    """
    match = _UNSAFE_LITERAL.search(literal)
    if match:
        raise ValidationError(f'Unsafe character {match.group(0)!r} in bound value {literal!r}')
    return literal


def bind_parameters(query: str, args: tuple | list, strict: bool = False) -> str:
    """Substitute each scalar into the next unescaped placeholder.

    Scanning resumes after each inserted literal, so a literal containing
    ``?`` is never bound again.

    Parameters
        query: expanded query
        args: flattened scalar arguments
        strict: reject literals containing quotes, semicolons, backslashes
            or newlines

    Raises
        ParameterMismatchError: no placeholder left for an argument
        ValidationError: unsafe literal in strict mode
    """
    pos = 0
    for arg in args:
        q = find_placeholder(query, pos)
        if q < 0:
            raise ParameterMismatchError("supplied query and replaceable arguments don't match")
        literal = to_literal(arg)
        if strict:
            check_literal(literal)
        query = query[:q] + literal + query[q + 1:]
        pos = q + len(literal)
    return query


def process_query_parameters(query: str, args: tuple | list, strict: bool = False) -> str:
    """Expand sequence arguments then bind all scalars as literals.

    Parameters
        query: query template
        args: positional arguments
        strict: see bind_parameters

    Returns
        Final query string; escape markers are left in place
    """
    if not args:
        return query
    expanded, flat = expand_parameters(query, args)
    logger.debug(f'Expanded query: {expanded} args: {flat}')
    return bind_parameters(expanded, flat, strict=strict)


def has_placeholders(query: str | None) -> bool:
    """Check if a query contains any unescaped placeholder.
    """
    if not query:
        return False
    return find_placeholder(query) >= 0
