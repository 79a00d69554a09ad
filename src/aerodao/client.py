"""
Network client contract and the Aerospike adapter.

The DAO issues exactly one blocking ``query(policy, statement)`` call per
select and iterates the returned cursor:

    cursor = client.query(QueryPolicy(send_key=True), statement)
    while cursor.next():
        bins = cursor.record()
        key = cursor.key()

``AerospikeClient`` adapts a connected ``aerospike`` client to this
contract. The ``aerospike`` package is an optional extra and only imported
when the adapter needs it.
"""
import logging
from collections.abc import Iterable
from dataclasses import dataclass, fields
from typing import Any, Protocol

from aerodao.exceptions import ConnectionFailure
from aerodao.options import DAOOptions
from aerodao.statement import Statement

from libb import load_options

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueryPolicy:
    """Per-query policy.

    send_key: ask the store to return the user key with each record
    total_timeout: milliseconds, 0 leaves the client default
    """
    send_key: bool = False
    total_timeout: int = 0

    def to_dict(self) -> dict[str, Any]:
        policy: dict[str, Any] = {}
        if self.send_key:
            policy['key'] = 1  # aerospike.POLICY_KEY_SEND
        if self.total_timeout:
            policy['total_timeout'] = self.total_timeout
        return policy


@dataclass(frozen=True)
class Key:
    """Record key as returned by the store.
    """
    namespace: str
    set_name: str | None
    user_key: Any = None
    digest: bytes | None = None

    @classmethod
    def from_tuple(cls, key: tuple | None) -> 'Key':
        if key is None:
            return cls(namespace='', set_name=None)
        namespace, set_name, user_key, *rest = key
        return cls(namespace, set_name, user_key, rest[0] if rest else None)


class Cursor(Protocol):
    def next(self) -> bool: ...
    def record(self) -> dict[str, Any]: ...
    def key(self) -> Key: ...


class Client(Protocol):
    def query(self, policy: QueryPolicy | None, statement: Statement) -> Cursor: ...


class RecordSetCursor:
    """Cursor over ``(key, meta, bins)`` result tuples.
    """

    def __init__(self, results: Iterable[tuple]) -> None:
        self._results = iter(results)
        self._current: tuple | None = None

    def next(self) -> bool:
        self._current = next(self._results, None)
        return self._current is not None

    def _row(self) -> tuple:
        if self._current is None:
            raise IndexError('Cursor is not positioned on a record')
        return self._current

    def record(self) -> dict[str, Any]:
        return self._row()[2] or {}

    def key(self) -> Key:
        return Key.from_tuple(self._row()[0])

    def close(self) -> None:
        self._results = iter(())
        self._current = None


def _index_predicate(statement: Statement) -> Any:
    import aerospike.predicates as p

    flt = statement.index_filter
    if flt.op == 'between':
        return p.between(flt.bin, *flt.values)
    return p.equals(flt.bin, flt.values[0])


class AerospikeClient:
    """Adapter exposing a connected ``aerospike`` client as a Client.
    """

    def __init__(self, client: Any, options: DAOOptions | None = None) -> None:
        self.client = client
        self.options = options

    def query(self, policy: QueryPolicy | None, statement: Statement) -> RecordSetCursor:
        policy = policy or QueryPolicy()
        if not policy.total_timeout and self.options and self.options.timeout:
            policy = QueryPolicy(send_key=policy.send_key, total_timeout=self.options.timeout)

        query = self.client.query(statement.namespace, statement.set_name)
        if statement.bins:
            query.select(*statement.bins)
        if statement.index_filter is not None:
            query.where(_index_predicate(statement))

        results = query.results(policy.to_dict())
        logger.debug(f'{statement.namespace}.{statement.set_name}: {len(results)} records before predicates')
        if statement.predicates:
            results = [r for r in results if statement.matches(r[2] or {})]
        return RecordSetCursor(results)

    def close(self) -> None:
        self.client.close()


@load_options(cls=DAOOptions)
def connect(options: DAOOptions | dict[str, Any] | str,
            config: Any | None = None, **kw: Any) -> AerospikeClient:
    """Connect to an Aerospike cluster.

    Args:
        options: DAOOptions, dict, config path or keyword arguments
        config: Configuration object (for loading from config files)
        **kw: Additional keyword arguments to override options

    Returns
        AerospikeClient adapter usable with ``set_client``
    """
    if isinstance(options, DAOOptions):
        for field in fields(options):
            kw.pop(field.name, None)
    else:
        options_func = load_options(cls=DAOOptions)(lambda o, c: o)
        options = options_func(options, config, **kw)

    import aerospike
    from aerospike import exception as aerospike_exception

    config = {'hosts': [(options.hostname, options.port)]}
    if options.username:
        config['user'] = options.username
        config['password'] = options.password
    if options.timeout:
        config['policies'] = {'query': {'total_timeout': options.timeout}}
    try:
        client = aerospike.client(config)
        if not client.is_connected():
            client.connect()
    except aerospike_exception.AerospikeError as exc:
        raise ConnectionFailure(f'Cannot connect to {options.hostname}:{options.port}: {exc}') from exc
    logger.debug(f'{options.appname} connected to {options.hostname}:{options.port}')
    return AerospikeClient(client, options)
