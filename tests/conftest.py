"""
Test configuration and fixtures for the repository test suite.

Core tests run against the in-memory FakeDocumentStore; the integration tests
run the boto3-backed store against moto.
"""

import boto3
import pytest
from moto import mock_aws

from dynamodb_repository import (
    DynamoDBConfig,
    EventDispatcher,
    ManagedDynamoRepository,
    CachedDynamoRepository,
    TableConfig,
)
from tests.helpers import FakeDocumentStore

TABLE_NAME = "entities"
KEY_SCHEMA = [{"AttributeName": "id", "KeyType": "HASH"}]


def marshal(entity):
    """Entities are dicts flagged as unmarshaled; items carry the opposite flag."""
    item = dict(entity)
    item["marshaled"] = True
    return item


def unmarshal(item):
    entity = dict(item)
    entity["marshaled"] = False
    return entity


@pytest.fixture
def table_config():
    return TableConfig(
        table_name=TABLE_NAME,
        key_schema=KEY_SCHEMA,
        marshal=marshal,
        unmarshal=unmarshal,
    )


@pytest.fixture
def store(table_config):
    return FakeDocumentStore({TABLE_NAME: table_config.get_key_schema()})


@pytest.fixture
def events():
    return EventDispatcher()


@pytest.fixture
def recorded(events):
    """Every emitted event as ``(event, payload)``."""
    received = []

    class Recorder:
        def notify(self, event, payload):
            received.append((event, payload))

    events.add_observer(Recorder())
    return received


@pytest.fixture
def cached_repository(store, table_config, events):
    return CachedDynamoRepository(store, table_config, events)


@pytest.fixture
def managed_repository(store, table_config, events):
    return ManagedDynamoRepository(store, table_config, events)


@pytest.fixture
def seeded_store(store):
    """Store holding e1, e2 and e3, in that order."""
    for entity_id in ("e1", "e2", "e3"):
        store.set(TABLE_NAME, {"id": entity_id, "marshaled": True})
    return store


# Integration fixtures

@pytest.fixture
def aws_config(monkeypatch):
    """DynamoDB configuration for moto."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
    return DynamoDBConfig(
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
        region_name="us-east-1",
        endpoint_url=None,
        environment="test",
        table_prefix="app",
    )


@pytest.fixture
def mock_dynamodb_resource(aws_config):
    """Mock DynamoDB resource."""
    with mock_aws():
        yield boto3.resource('dynamodb', region_name='us-east-1')


@pytest.fixture
def runs_table(mock_dynamodb_resource):
    """Create the pipeline runs table (hash + range key, KEYS_ONLY status index)."""
    return mock_dynamodb_resource.create_table(
        TableName='app_test_pipeline_runs',
        KeySchema=[
            {'AttributeName': 'pipeline_id', 'KeyType': 'HASH'},
            {'AttributeName': 'run_id', 'KeyType': 'RANGE'},
        ],
        AttributeDefinitions=[
            {'AttributeName': 'pipeline_id', 'AttributeType': 'S'},
            {'AttributeName': 'run_id', 'AttributeType': 'S'},
            {'AttributeName': 'status', 'AttributeType': 'S'},
        ],
        GlobalSecondaryIndexes=[
            {
                'IndexName': 'StatusIndex',
                'KeySchema': [
                    {'AttributeName': 'status', 'KeyType': 'HASH'},
                ],
                'Projection': {'ProjectionType': 'KEYS_ONLY'},
                'ProvisionedThroughput': {'ReadCapacityUnits': 5, 'WriteCapacityUnits': 5}
            },
        ],
        BillingMode='PROVISIONED',
        ProvisionedThroughput={'ReadCapacityUnits': 5, 'WriteCapacityUnits': 5}
    )
