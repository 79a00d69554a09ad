"""
Fixtures for tests against a live Aerospike server.

Skipped unless the ``aerospike`` client is installed and a server answers at
AEROSPIKE_HOST:AEROSPIKE_PORT (default localhost:3000).
"""
import os

import pytest
from aerodao import ConnectionFailure, connect, set_client


@pytest.fixture(scope='module')
def aero_client():
    pytest.importorskip('aerospike')
    try:
        client = connect({
            'hostname': os.getenv('AEROSPIKE_HOST', 'localhost'),
            'port': int(os.getenv('AEROSPIKE_PORT', '3000')),
            'timeout': 2000,
        })
    except ConnectionFailure as exc:
        pytest.skip(f'Aerospike server not available: {exc}')
    yield client
    client.close()


@pytest.fixture
def entity_set(aero_client):
    """Stage test.entity records, truncate afterwards."""
    aerospike = pytest.importorskip('aerospike')
    native = aero_client.client
    policy = {'key': aerospike.POLICY_KEY_SEND}
    native.put(('test', 'entity', 'PK1'),
               {'varchar': 'aaaaaa', 'enum': 'B', 'bool': False, 'list': [3, 4, 5]}, policy=policy)
    native.put(('test', 'entity', 'PK2'),
               {'varchar': 'bbbbbb', 'enum': 'C', 'bool': True, 'list': [1]}, policy=policy)
    set_client(aero_client)
    yield aero_client
    native.truncate('test', 'entity', 0)
