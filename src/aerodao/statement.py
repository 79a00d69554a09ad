"""
Statement compiler: final query string -> store-native Statement.

Supported grammar (keywords are case-insensitive):

    SELECT * | bin [, bin ...] FROM namespace[.set]
        [WHERE condition [AND condition ...]] [;]

    condition := bin op literal          op in = != <> < <= > >=
               | bin BETWEEN literal AND literal
               | bin IN (literal [, literal ...])

Literals are typed through the schema descriptor handed to the compiler
(``{table: {bin: storage code}}``); bins missing from the schema get their
type from the literal's form. The first equality or BETWEEN condition that a
secondary index can serve becomes the statement's index filter, the others
are residual predicates evaluated against each returned record.

Quoted literals are taken verbatim. An escaped ``\\?`` reaches the compiler
with its backslash, so the literal ``'what\\?'`` never equals a stored
``what?``.
"""
import logging
import operator
import re
import threading
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import cachetools
from aerodao.exceptions import QueryError
from aerodao.types import StorageType

logger = logging.getLogger(__name__)

_PATTERNS = {
    'select': re.compile(
        r'^\s*SELECT\s+(?P<bins>.+?)\s+FROM\s+(?P<source>[^\s;]+)'
        r'(?:\s+WHERE\s+(?P<where>.+?))?\s*;?\s*$',
        re.IGNORECASE | re.DOTALL),
    'token': re.compile(
        r"""\s*(?:
            (?P<string>'(?:[^']|'')*'|"(?:[^"]|"")*")
           |(?P<op><=|>=|!=|<>|=|<|>)
           |(?P<punct>[(),])
           |(?P<word>[^\s'"(),=<>!]+)
        )""", re.VERBOSE),
    'identifier': re.compile(r'^[A-Za-z_][\w\-]*$'),
    'integer': re.compile(r'^[-+]?\d+$'),
    'float': re.compile(r'^[-+]?(?:\d+\.\d*|\.\d+|\d+)(?:[eE][-+]?\d+)?$'),
}

_COMPARATORS = {
    '=': operator.eq,
    '!=': operator.ne,
    '<>': operator.ne,
    '<': operator.lt,
    '<=': operator.le,
    '>': operator.gt,
    '>=': operator.ge,
}


@dataclass(frozen=True)
class Predicate:
    """A single condition on one bin.

    ``op`` is a comparison operator, ``between`` or ``in``.
    """
    bin: str
    op: str
    values: tuple

    def evaluate(self, bins: Mapping[str, Any]) -> bool:
        value = bins.get(self.bin)
        if value is None:
            return False
        if isinstance(value, bool) and all(isinstance(v, str) for v in self.values):
            # booleans are bound as their literal form
            value = str(value)
        try:
            if self.op == 'between':
                low, high = self.values
                return low <= value <= high
            if self.op == 'in':
                return value in self.values
            return _COMPARATORS[self.op](value, self.values[0])
        except TypeError:
            # incomparable types never match
            return False

    @property
    def is_index_filter(self) -> bool:
        """Whether a secondary index can serve this condition.
        """
        if self.op == '=':
            value = self.values[0]
            return isinstance(value, int | str) and not isinstance(value, bool)
        if self.op == 'between':
            return all(isinstance(v, int) and not isinstance(v, bool) for v in self.values)
        return False


@dataclass(frozen=True)
class Statement:
    """Store-native query plan.
    """
    namespace: str
    set_name: str | None
    bins: tuple[str, ...] = ()
    index_filter: Predicate | None = None
    predicates: tuple[Predicate, ...] = ()

    def matches(self, bins: Mapping[str, Any], with_filter: bool = False) -> bool:
        """Evaluate residual predicates (and optionally the index filter).

        Clients that filter in process, rather than on the server, pass
        ``with_filter=True``.
        """
        if with_filter and self.index_filter is not None and not self.index_filter.evaluate(bins):
            return False
        return all(p.evaluate(bins) for p in self.predicates)

    def project(self, bins: Mapping[str, Any]) -> dict[str, Any]:
        """Restrict a record to the selected bins.

        For clients that cannot project on the server.
        """
        if not self.bins:
            return dict(bins)
        return {k: v for k, v in bins.items() if k in self.bins}


def _tokenize(text: str) -> list[tuple[str, str]]:
    tokens = []
    pos = 0
    pattern = _PATTERNS['token']
    text = text.rstrip()
    while pos < len(text):
        match = pattern.match(text, pos)
        if not match or match.end() == pos:
            raise QueryError(f'Unexpected input at {text[pos:]!r}')
        kind = match.lastgroup
        tokens.append((kind, match.group(kind)))
        pos = match.end()
    return tokens


def _unquote(text: str) -> str:
    quote = text[0]
    return text[1:-1].replace(quote * 2, quote)


def _infer_literal(kind: str, text: str) -> Any:
    if kind == 'string':
        return _unquote(text)
    if _PATTERNS['integer'].match(text):
        return int(text)
    if _PATTERNS['float'].match(text):
        return float(text)
    return text


class StatementCompiler:
    """Compile final query strings for a fixed schema.

    Built once per DAO; compiled statements are cached by query text.
    """

    def __init__(self, schema: Mapping[str, Mapping[str, int]], cache_size: int = 128) -> None:
        self.schema = {table: dict(columns) for table, columns in schema.items()}
        self._cache = cachetools.LRUCache(maxsize=cache_size) if cache_size else None
        self._lock = threading.RLock()

    @classmethod
    def for_schema(cls, schema: Mapping[str, Mapping[str, int]], cache_size: int = 128) -> 'StatementCompiler':
        return cls(schema, cache_size=cache_size)

    def from_string(self, query: str) -> Statement:
        """Compile a query into a Statement.

        Raises
            QueryError: the query is not a supported SELECT
        """
        if self._cache is None:
            return self._compile(query)
        with self._lock:
            statement = self._cache.get(query)
        if statement is not None:
            return statement
        statement = self._compile(query)
        with self._lock:
            self._cache[query] = statement
        return statement

    def _compile(self, query: str) -> Statement:
        match = _PATTERNS['select'].match(query or '')
        if not match:
            raise QueryError(f'Not a supported SELECT statement: {query!r}')

        source = match.group('source')
        namespace, _, set_name = source.partition('.')
        if not namespace:
            raise QueryError(f'Missing namespace in {source!r}')
        columns = self.schema.get(source, self.schema.get(set_name))
        if columns is None:
            logger.debug(f'No schema for {source}, typing literals by their form')
            columns = {}

        bins = self._parse_bins(match.group('bins'))
        predicates = []
        if match.group('where'):
            predicates = self._parse_where(match.group('where'), columns)

        index_filter = next((p for p in predicates if p.is_index_filter), None)
        residual = tuple(p for p in predicates if p is not index_filter)
        statement = Statement(
            namespace=namespace,
            set_name=set_name or None,
            bins=bins,
            index_filter=index_filter,
            predicates=residual,
        )
        logger.debug(f'Compiled statement: {statement}')
        return statement

    @staticmethod
    def _parse_bins(text: str) -> tuple[str, ...]:
        text = text.strip()
        if text == '*':
            return ()
        bins = tuple(b.strip() for b in text.split(','))
        for b in bins:
            if not _PATTERNS['identifier'].match(b):
                raise QueryError(f'Invalid bin name {b!r}')
        return bins

    def _parse_where(self, text: str, columns: Mapping[str, int]) -> list[Predicate]:
        tokens = _tokenize(text)
        pos = 0
        predicates = []

        def take(expected_kind=None, keyword=None):
            nonlocal pos
            if pos >= len(tokens):
                raise QueryError(f'Unexpected end of WHERE clause: {text!r}')
            kind, value = tokens[pos]
            if expected_kind and kind != expected_kind:
                raise QueryError(f'Expected {expected_kind}, got {value!r} in {text!r}')
            if keyword and value.upper() != keyword:
                raise QueryError(f'Expected {keyword}, got {value!r} in {text!r}')
            pos += 1
            return kind, value

        def literal(bin_name):
            kind, value = take()
            if kind not in {'string', 'word'}:
                raise QueryError(f'Expected a literal, got {value!r} in {text!r}')
            return self._typed_literal(bin_name, kind, value, columns)

        while True:
            _, bin_name = take('word')
            if not _PATTERNS['identifier'].match(bin_name):
                raise QueryError(f'Invalid bin name {bin_name!r}')
            kind, value = take()
            if kind == 'op':
                predicates.append(Predicate(bin_name, value, (literal(bin_name),)))
            elif kind == 'word' and value.upper() == 'BETWEEN':
                low = literal(bin_name)
                take('word', 'AND')
                high = literal(bin_name)
                predicates.append(Predicate(bin_name, 'between', (low, high)))
            elif kind == 'word' and value.upper() == 'IN':
                take('punct', '(')
                values = [literal(bin_name)]
                while tokens[pos:pos + 1] == [('punct', ',')]:
                    pos += 1
                    values.append(literal(bin_name))
                take('punct', ')')
                predicates.append(Predicate(bin_name, 'in', tuple(values)))
            else:
                raise QueryError(f'Unsupported condition on {bin_name!r} in {text!r}')

            if pos >= len(tokens):
                return predicates
            take('word', 'AND')

    @staticmethod
    def _typed_literal(bin_name: str, kind: str, text: str, columns: Mapping[str, int]) -> Any:
        storage = columns.get(bin_name)
        raw = _unquote(text) if kind == 'string' else text
        try:
            if storage == StorageType.INTEGER:
                return int(raw)
            if storage == StorageType.DOUBLE:
                return float(raw)
        except ValueError as exc:
            raise QueryError(f'Invalid literal {text!r} for bin {bin_name!r}') from exc
        if storage == StorageType.STRING:
            return raw
        return _infer_literal(kind, text)
