"""
Select DAO: relational-style queries returning typed entities.

A DAO is bound to one entity class, either through the generic parameter
of a subclass or explicitly:

    class SampleDAO(SelectDAO[Sample]):
        pass

    dao = SampleDAO()
    dao = SelectDAO(entity_class=Sample, client=client)

Metadata and the statement compiler are built once, at construction, and
never mutated afterwards, so one DAO can be shared between threads. The
network client is either passed per DAO or shared through ``set_client``.
"""
import logging
import time
import typing
from functools import wraps
from typing import Any, Generic, TypeVar

from aerodao.client import Client, QueryPolicy
from aerodao.exceptions import ConfigurationError, ConnectionFailure
from aerodao.exceptions import OperationError, ValidationError
from aerodao.materialize import materialize
from aerodao.metadata import EntityMetadata, build_metadata
from aerodao.options import DAOOptions
from aerodao.sql import process_query_parameters
from aerodao.statement import StatementCompiler

logger = logging.getLogger(__name__)

E = TypeVar('E')

_client: Client | None = None


def set_client(client: Client | None) -> None:
    """Set the client shared by every DAO without its own.
    """
    global _client
    _client = client


def get_client() -> Client | None:
    return _client


def dumpquery(func):
    """Decorator for logging queries, arguments and timing."""
    @wraps(func)
    def wrapper(self, query: str, *args: Any, **kwargs: Any):
        start = time.time()
        logger.debug(f'Query:\n{query}\nargs: {args}')
        try:
            return func(self, query, *args, **kwargs)
        except Exception:
            logger.error(f'Error with query:\nQuery:\n{query}\nargs: {args}')
            raise
        finally:
            logger.debug(f'Query time: {time.time() - start:.4f}s')
    return wrapper


def _resolve_entity_class(dao_class: type) -> type | None:
    """Find ``E`` in a ``SelectDAO[E]`` base of dao_class.
    """
    for klass in dao_class.__mro__:
        for base in klass.__dict__.get('__orig_bases__', ()):
            if typing.get_origin(base) is SelectDAO:
                args = typing.get_args(base)
                if args and isinstance(args[0], type):
                    return args[0]
    return None


class SelectDAO(Generic[E]):
    """Query an entity's table and materialize typed results.
    """

    def __init__(self, entity_class: type[E] | None = None, client: Client | None = None,
                 options: DAOOptions | None = None) -> None:
        entity_class = entity_class or _resolve_entity_class(type(self))
        if entity_class is None:
            raise ConfigurationError(f'{type(self).__name__} has no entity class')
        self.options = options or DAOOptions()
        self.metadata: EntityMetadata = build_metadata(entity_class)
        self.compiler = StatementCompiler.for_schema(
            self.metadata.schema(), cache_size=self.options.statement_cache_size)
        self._client = client

    @property
    def entity_class(self) -> type[E]:
        return self.metadata.entity_class

    @property
    def client(self) -> Client:
        client = self._client or _client
        if client is None:
            raise ConnectionFailure('No client set, call set_client() or pass client=')
        return client

    def prepare(self, query: str, *args: Any) -> str:
        """Expand and bind arguments into the final query string.
        """
        return process_query_parameters(query, args, strict=self.options.strict_literals)

    @dumpquery
    def select(self, query: str, *args: Any) -> list[E]:
        """Run a SELECT returning a list of entities.

        Parameters
            query: query with ``?`` for replaceable parameters, ``\\?`` for a
                literal question mark; the backslash is kept in the query
                sent to the store
            args: values for the parameters; lists and tuples are unfolded
                into ``(?,?,...)``

        Raises
            OperationError: tagged ``select``, any failure as its cause
        """
        try:
            statement = self.compiler.from_string(self.prepare(query, *args))
            policy = QueryPolicy(send_key=True) if self.metadata.primary_key_field else None
            cursor = self.client.query(policy, statement)
            return materialize(cursor, self.metadata)
        except Exception as exc:
            raise OperationError('select', exc) from exc

    def select_row(self, query: str, *args: Any) -> E:
        """Run a SELECT expected to return exactly one entity.
        """
        rows = self.select(query, *args)
        if len(rows) != 1:
            exc = ValidationError(f'Expected one row, returned {len(rows)}')
            raise OperationError('select_row', exc) from exc
        return rows[0]

    def select_row_or_none(self, query: str, *args: Any) -> E | None:
        """Run a SELECT returning one entity or None if no rows found.
        """
        rows = self.select(query, *args)
        if len(rows) > 1:
            exc = ValidationError(f'Expected at most one row, returned {len(rows)}')
            raise OperationError('select_row_or_none', exc) from exc
        return rows[0] if rows else None
