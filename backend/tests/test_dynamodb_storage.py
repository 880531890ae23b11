"""
DynamoDB record store tests against a hand-written aioboto3 stand-in.

The fakes record every request and replay canned responses, so these
tests check request shaping and error translation without AWS.
"""
import pytest
from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import ClientError, EndpointConnectionError

from workbooks.core.errors import PersistenceFailed
from workbooks.storage import (
    AttributeEquals,
    AttributeNotExists,
    Contains,
    DynamoDBRecordStore,
    PutOperation,
    StoreUnavailable,
    UpdateOperation,
    WriteOutcome,
)


def client_error(code, operation, **extra):
    response = {'Error': {'Code': code, 'Message': code}}
    response.update(extra)
    return ClientError(response, operation)


class FakeTable:
    def __init__(self, name):
        self.name = name
        self.calls = []
        self.responses = {}
        self.errors = {}

    async def _call(self, operation, kwargs):
        self.calls.append((operation, kwargs))
        if operation in self.errors:
            raise self.errors[operation]
        queued = self.responses.get(operation, [{}])
        return queued.pop(0) if len(queued) > 1 else queued[0]

    async def get_item(self, **kwargs):
        return await self._call('get_item', kwargs)

    async def put_item(self, **kwargs):
        return await self._call('put_item', kwargs)

    async def update_item(self, **kwargs):
        return await self._call('update_item', kwargs)

    async def query(self, **kwargs):
        return await self._call('query', dict(kwargs))

    async def scan(self, **kwargs):
        return await self._call('scan', dict(kwargs))


class FakeResource:
    def __init__(self):
        self.tables = {}
        self.batch_calls = []
        self.batch_responses = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def Table(self, name):
        return self.tables.setdefault(name, FakeTable(name))

    async def batch_get_item(self, RequestItems):
        self.batch_calls.append(RequestItems)
        return self.batch_responses.pop(0)


class FakeClient:
    def __init__(self):
        self.transactions = []
        self.error = None
        self.created = []
        self.existing = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def transact_write_items(self, TransactItems):
        self.transactions.append(TransactItems)
        if self.error:
            raise self.error
        return {}

    async def list_tables(self):
        return {'TableNames': list(self.existing)}

    async def create_table(self, **kwargs):
        self.created.append(kwargs)
        return {}


class FakeSession:
    def __init__(self):
        self.resource_obj = FakeResource()
        self.client_obj = FakeClient()
        self.resource_kwargs = None

    def resource(self, service_name, **kwargs):
        assert service_name == 'dynamodb'
        self.resource_kwargs = kwargs
        return self.resource_obj

    def client(self, service_name, **kwargs):
        assert service_name == 'dynamodb'
        return self.client_obj


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def dynamo(session, tables):
    return DynamoDBRecordStore(tables, region="eu-west-1", endpoint_url="http://localhost:8000", session=session)


def workbook_table(session, tables):
    return session.resource_obj.tables.setdefault(tables.workbooks_table, FakeTable(tables.workbooks_table))


@pytest.mark.asyncio
async def test_get_uses_consistent_read(dynamo, session, tables, keys):
    table = workbook_table(session, tables)
    table.responses['get_item'] = [{'Item': {'owner_id': 'u1', 'workbook_id': 'wb1'}}]

    item = await dynamo.get(keys.workbook_key("u1", "wb1"))

    assert item == {'owner_id': 'u1', 'workbook_id': 'wb1'}
    assert table.calls == [('get_item', {
        'Key': {'owner_id': 'u1', 'workbook_id': 'wb1'},
        'ConsistentRead': True,
    })]
    assert session.resource_kwargs == {'region_name': 'eu-west-1', 'endpoint_url': 'http://localhost:8000'}


@pytest.mark.asyncio
async def test_get_missing_returns_none(dynamo, session, tables, keys):
    workbook_table(session, tables).responses['get_item'] = [{}]
    assert await dynamo.get(keys.workbook_key("u1", "nope")) is None


@pytest.mark.asyncio
async def test_put_sends_condition_and_key(dynamo, session, tables, keys):
    table = workbook_table(session, tables)

    outcome = await dynamo.put(keys.workbook_key("u1", "wb1"), {'name': 'A'}, AttributeNotExists('owner_id'))

    assert outcome is WriteOutcome.OK
    _, kwargs = table.calls[0]
    assert kwargs['Item'] == {'name': 'A', 'owner_id': 'u1', 'workbook_id': 'wb1'}
    assert kwargs['ConditionExpression'] == Attr('owner_id').not_exists()


@pytest.mark.asyncio
async def test_put_condition_failure_is_an_outcome(dynamo, session, tables, keys):
    table = workbook_table(session, tables)
    table.errors['put_item'] = client_error('ConditionalCheckFailedException', 'PutItem')

    outcome = await dynamo.put(keys.workbook_key("u1", "wb1"), {}, AttributeNotExists('owner_id'))

    assert outcome is WriteOutcome.CONDITION_FAILED


@pytest.mark.asyncio
async def test_update_attribute_request(dynamo, session, tables, keys):
    table = workbook_table(session, tables)

    outcome = await dynamo.update_attribute(
        keys.workbook_key("u1", "wb1"), 'shared_with', ['u2'], AttributeEquals('shared_with', [])
    )

    assert outcome is WriteOutcome.OK
    _, kwargs = table.calls[0]
    assert kwargs['UpdateExpression'] == 'SET #attr = :value'
    assert kwargs['ExpressionAttributeNames'] == {'#attr': 'shared_with'}
    assert kwargs['ExpressionAttributeValues'] == {':value': ['u2']}
    assert kwargs['ConditionExpression'] == Attr('owner_id').exists() & Attr('shared_with').eq([])
    assert kwargs['ReturnValuesOnConditionCheckFailure'] == 'ALL_OLD'


@pytest.mark.asyncio
async def test_update_attribute_distinguishes_not_found_from_conflict(dynamo, session, tables, keys):
    table = workbook_table(session, tables)
    key = keys.workbook_key("u1", "wb1")

    table.errors['update_item'] = client_error(
        'ConditionalCheckFailedException', 'UpdateItem', Item={'owner_id': {'S': 'u1'}}
    )
    assert await dynamo.update_attribute(key, 'shared_with', ['u2']) is WriteOutcome.CONDITION_FAILED

    table.errors['update_item'] = client_error('ConditionalCheckFailedException', 'UpdateItem')
    assert await dynamo.update_attribute(key, 'shared_with', ['u2']) is WriteOutcome.NOT_FOUND


@pytest.mark.asyncio
async def test_other_client_errors_raise_store_unavailable(dynamo, session, tables, keys):
    table = workbook_table(session, tables)
    table.errors['put_item'] = client_error('ProvisionedThroughputExceededException', 'PutItem')

    with pytest.raises(StoreUnavailable) as exc_info:
        await dynamo.put(keys.workbook_key("u1", "wb1"), {})
    assert isinstance(exc_info.value, PersistenceFailed)
    assert isinstance(exc_info.value.__cause__, ClientError)


@pytest.mark.asyncio
async def test_connection_errors_raise_store_unavailable(dynamo, session, tables, keys):
    table = workbook_table(session, tables)
    table.errors['get_item'] = EndpointConnectionError(endpoint_url="http://localhost:8000")

    with pytest.raises(StoreUnavailable):
        await dynamo.get(keys.workbook_key("u1", "wb1"))


@pytest.mark.asyncio
async def test_query_paginates_and_filters_server_side(dynamo, session, tables, keys):
    table = workbook_table(session, tables)
    table.responses['query'] = [
        {'Items': [{'workbook_id': 'a'}], 'LastEvaluatedKey': {'owner_id': 'u1', 'workbook_id': 'a'}},
        {'Items': [{'workbook_id': 'b'}]},
    ]

    items = await dynamo.query(keys.owner_index("u1"), Contains('shared_with', 'u2'))

    assert [i['workbook_id'] for i in items] == ['a', 'b']
    first, second = table.calls[0][1], table.calls[1][1]
    assert first['IndexName'] == tables.owner_index
    assert first['KeyConditionExpression'] == Key('gsi1_pk').eq('u1')
    assert first['FilterExpression'] == Attr('shared_with').contains('u2')
    assert 'ExclusiveStartKey' not in first
    assert second['ExclusiveStartKey'] == {'owner_id': 'u1', 'workbook_id': 'a'}


@pytest.mark.asyncio
async def test_scan_without_filter(dynamo, session, tables):
    table = workbook_table(session, tables)
    table.responses['scan'] = [{'Items': [{'workbook_id': 'a'}]}]

    assert await dynamo.scan(tables.workbooks_table) == [{'workbook_id': 'a'}]
    assert table.calls == [('scan', {})]


@pytest.mark.asyncio
async def test_batch_get_retries_unprocessed_keys(dynamo, session, tables, keys):
    unprocessed = {tables.workbooks_table: {'Keys': [{'owner_id': 'u1', 'workbook_id': 'b'}]}}
    session.resource_obj.batch_responses = [
        {'Responses': {tables.workbooks_table: [{'workbook_id': 'a'}]}, 'UnprocessedKeys': unprocessed},
        {'Responses': {tables.workbooks_table: [{'workbook_id': 'b'}]}, 'UnprocessedKeys': {}},
    ]

    items = await dynamo.batch_get([keys.workbook_key("u1", "a"), keys.workbook_key("u1", "b")])

    assert [i['workbook_id'] for i in items] == ['a', 'b']
    first_request = session.resource_obj.batch_calls[0][tables.workbooks_table]
    assert first_request['ConsistentRead'] is True
    assert len(first_request['Keys']) == 2
    assert session.resource_obj.batch_calls[1] == unprocessed


@pytest.mark.asyncio
async def test_batch_get_with_no_keys_makes_no_request(dynamo, session):
    assert await dynamo.batch_get([]) == []
    assert session.resource_obj.batch_calls == []


@pytest.mark.asyncio
async def test_transact_write_serializes_update_and_put(dynamo, session, tables, keys):
    outcome = await dynamo.transact_write([
        UpdateOperation(keys.workbook_key("u1", "wb1"), 'shared_with', ['u2'], AttributeEquals('shared_with', [])),
        PutOperation(keys.grant_key("wb1", "u2"), {'owner_id': 'u1'}, AttributeNotExists('user_id')),
    ])

    assert outcome is WriteOutcome.OK
    update, put = session.client_obj.transactions[0]

    update = update['Update']
    assert update['TableName'] == tables.workbooks_table
    assert update['Key'] == {'owner_id': {'S': 'u1'}, 'workbook_id': {'S': 'wb1'}}
    assert update['UpdateExpression'] == 'SET #attr = :value'
    assert 'attribute_exists' in update['ConditionExpression']
    assert update['ExpressionAttributeNames']['#attr'] == 'shared_with'
    assert update['ExpressionAttributeValues'][':value'] == {'L': [{'S': 'u2'}]}
    assert {'L': []} in update['ExpressionAttributeValues'].values()

    put = put['Put']
    assert put['TableName'] == tables.grants_table
    assert put['Item'] == {
        'owner_id': {'S': 'u1'}, 'workbook_id': {'S': 'wb1'}, 'user_id': {'S': 'u2'},
    }
    assert 'attribute_not_exists' in put['ConditionExpression']
    assert 'ExpressionAttributeValues' not in put


@pytest.mark.asyncio
async def test_transact_write_unconditional_put_has_no_expression(dynamo, session, keys):
    await dynamo.transact_write([PutOperation(keys.grant_key("wb1", "u2"), {'owner_id': 'u1'})])
    put = session.client_obj.transactions[0][0]['Put']
    assert 'ConditionExpression' not in put


@pytest.mark.asyncio
@pytest.mark.parametrize("reasons, expected", [
    ([{'Code': 'ConditionalCheckFailed', 'Item': {'owner_id': {'S': 'u1'}}}, {'Code': 'None'}],
     WriteOutcome.CONDITION_FAILED),
    ([{'Code': 'ConditionalCheckFailed'}, {'Code': 'None'}], WriteOutcome.NOT_FOUND),
    ([{'Code': 'None'}, {'Code': 'ConditionalCheckFailed'}], WriteOutcome.CONDITION_FAILED),
    ([{'Code': 'TransactionConflict'}, {'Code': 'None'}], WriteOutcome.CONDITION_FAILED),
])
async def test_transaction_cancellation_outcomes(dynamo, session, keys, reasons, expected):
    session.client_obj.error = client_error(
        'TransactionCanceledException', 'TransactWriteItems', CancellationReasons=reasons
    )
    outcome = await dynamo.transact_write([
        UpdateOperation(keys.workbook_key("u1", "wb1"), 'shared_with', ['u2'], AttributeEquals('shared_with', [])),
        PutOperation(keys.grant_key("wb1", "u2"), {'owner_id': 'u1'}, AttributeNotExists('user_id')),
    ])
    assert outcome is expected


@pytest.mark.asyncio
async def test_transaction_throttling_raises(dynamo, session, keys):
    session.client_obj.error = client_error(
        'TransactionCanceledException', 'TransactWriteItems',
        CancellationReasons=[{'Code': 'ThrottlingError'}],
    )
    with pytest.raises(StoreUnavailable):
        await dynamo.transact_write([UpdateOperation(keys.workbook_key("u1", "wb1"), 'shared_with', [])])


@pytest.mark.asyncio
async def test_create_tables_skips_existing(dynamo, session, tables):
    session.client_obj.existing = [tables.workbooks_table]

    await dynamo.create_tables()

    assert len(session.client_obj.created) == 1
    created = session.client_obj.created[0]
    assert created['TableName'] == tables.grants_table
    assert created['GlobalSecondaryIndexes'][0]['IndexName'] == tables.grantee_index
    assert created['KeySchema'][0] == {'AttributeName': 'workbook_id', 'KeyType': 'HASH'}


@pytest.mark.asyncio
async def test_sharing_through_dynamodb_store(session, tables, keys):
    """The share flow issues a transactional compare-and-swap against DynamoDB."""
    from workbooks.services import WorkbookService

    store = DynamoDBRecordStore(tables, region="us-east-1", session=session)
    workbook_table(session, tables).responses['get_item'] = [{'Item': {
        'owner_id': 'u1', 'workbook_id': 'wb1', 'name': 'A', 'shared_with': ['u3'],
    }}]
    service = WorkbookService(store, tables, maintain_grants=True, share_base_delay=0, share_max_delay=0)

    await service.share("u1", "wb1", "u2")

    update = session.client_obj.transactions[0][0]['Update']
    assert update['ExpressionAttributeValues'][':value'] == {'L': [{'S': 'u2'}, {'S': 'u3'}]}
    assert {'L': [{'S': 'u3'}]} in update['ExpressionAttributeValues'].values()
