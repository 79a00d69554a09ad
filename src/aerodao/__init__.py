"""
Typed SELECT queries over Aerospike.

Entities are dataclasses bound to a set and its bins with ``table``,
``column`` and ``primary_key``; a SelectDAO expands ``?`` parameters,
compiles the query and materializes each record into an entity:

    @table('test.entity')
    @dataclass
    class Sample(Entity):
        id: str = primary_key()
        varchar: str = column('varchar')

    class SampleDAO(SelectDAO[Sample]):
        pass

    set_client(connect(hostname='localhost'))
    SampleDAO().select('SELECT * FROM test.entity WHERE varchar = ?', 'a')
"""
__version__ = '0.1.0'

from aerodao.client import AerospikeClient, QueryPolicy, connect
from aerodao.converters import Converter, DateConverter, DateTimeConverter
from aerodao.converters import FloatConverter, IntConverter, ListConverter
from aerodao.dao import SelectDAO, get_client, set_client
from aerodao.exceptions import ConfigurationError, ConnectionFailure, DAOError
from aerodao.exceptions import OperationError, ParameterMismatchError
from aerodao.exceptions import QueryError, TypeConversionError, ValidationError
from aerodao.metadata import EntityMetadata, build_metadata, column
from aerodao.metadata import primary_key, table
from aerodao.options import DAOOptions
from aerodao.types import Entity, StorageType

__all__ = [
    'connect',
    'set_client',
    'get_client',
    'SelectDAO',
    'DAOOptions',
    'AerospikeClient',
    'QueryPolicy',
    'Entity',
    'StorageType',
    'EntityMetadata',
    'build_metadata',
    'table',
    'column',
    'primary_key',
    'Converter',
    'IntConverter',
    'FloatConverter',
    'ListConverter',
    'DateConverter',
    'DateTimeConverter',
    'DAOError',
    'ConfigurationError',
    'ConnectionFailure',
    'QueryError',
    'TypeConversionError',
    'ValidationError',
    'ParameterMismatchError',
    'OperationError',
]
