"""
Async DynamoDB record store for workbooks and access grants.

Primary-key reads use ConsistentRead. Index queries are eventually
consistent: a workbook created or shared a moment ago may be missing from
list results (read-your-writes is not guaranteed on the indexed path).

Filters are sent as a FilterExpression and evaluated server-side. That
trims what comes back over the wire, but DynamoDB still reads (and bills)
the whole partition for a query, or the whole table for a scan.
"""
import logging
from typing import Any, Dict, List, Optional, Sequence

import aioboto3
from boto3.dynamodb.conditions import Attr, ConditionBase, ConditionExpressionBuilder, Key
from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import BotoCoreError, ClientError

from workbooks.core import settings, TableConfig
from .base import (
    AttributeEquals,
    AttributeNotExists,
    Condition,
    Contains,
    IndexKey,
    PutOperation,
    Record,
    RecordKey,
    RecordStore,
    StoreUnavailable,
    UpdateOperation,
    WriteOperation,
    WriteOutcome,
)
from .keys import OWNER_ID, OWNER_INDEX_PK, OWNER_INDEX_SK, USER_ID, WORKBOOK_ID


logger = logging.getLogger(__name__)

BATCH_GET_LIMIT = 100
MAX_UNPROCESSED_ROUNDS = 5


def to_boto_condition(condition: Condition) -> ConditionBase:
    """Translate a store condition into a boto3 condition object."""
    if isinstance(condition, AttributeNotExists):
        return Attr(condition.attribute).not_exists()
    if isinstance(condition, AttributeEquals):
        return Attr(condition.attribute).eq(condition.value)
    if isinstance(condition, Contains):
        return Attr(condition.attribute).contains(condition.value)
    raise TypeError(f"Unsupported condition: {condition!r}")


def _error_code(error: ClientError) -> str:
    return error.response.get('Error', {}).get('Code', '')


def _unavailable(action: str, error: Exception) -> StoreUnavailable:
    logger.error("DynamoDB %s failed: %s", action, error)
    return StoreUnavailable(f"DynamoDB {action} failed: {error}")


class DynamoDBRecordStore(RecordStore):
    """Serverless record store backed by DynamoDB."""

    def __init__(self, tables: TableConfig = None, region: str = None,
                 endpoint_url: str = None, session=None):
        self.tables = tables or settings.table_config
        self.region = region or settings.AWS_REGION
        self.endpoint_url = endpoint_url or settings.DYNAMODB_ENDPOINT_URL
        self.session = session or aioboto3.Session()
        self._serializer = TypeSerializer()

        if not self.tables.workbooks_table:
            raise ValueError("WORKBOOKS_TABLE_NAME not configured")

    def _resource(self):
        return self.session.resource('dynamodb', region_name=self.region, endpoint_url=self.endpoint_url)

    def _client(self):
        return self.session.client('dynamodb', region_name=self.region, endpoint_url=self.endpoint_url)

    async def get(self, key: RecordKey) -> Optional[Record]:
        try:
            async with self._resource() as dynamodb:
                table = await dynamodb.Table(key.table)
                response = await table.get_item(
                    Key=key.as_dict(),
                    ConsistentRead=True  # Strong consistency for latest data
                )
        except (ClientError, BotoCoreError) as e:
            raise _unavailable("GetItem", e) from e
        return response.get('Item')

    async def put(self, key: RecordKey, record: Record,
                  condition: Optional[Condition] = None) -> WriteOutcome:
        item = dict(record)
        item.update(key.as_dict())
        kwargs: Dict[str, Any] = {'Item': item}
        if condition is not None:
            kwargs['ConditionExpression'] = to_boto_condition(condition)
        try:
            async with self._resource() as dynamodb:
                table = await dynamodb.Table(key.table)
                await table.put_item(**kwargs)
        except ClientError as e:
            if _error_code(e) == 'ConditionalCheckFailedException':
                return WriteOutcome.CONDITION_FAILED
            raise _unavailable("PutItem", e) from e
        except BotoCoreError as e:
            raise _unavailable("PutItem", e) from e
        return WriteOutcome.OK

    async def update_attribute(self, key: RecordKey, attribute: str, value: Any,
                               condition: Optional[Condition] = None) -> WriteOutcome:
        # UpdateItem upserts, so require the item to exist
        expected = Attr(key.partition[0]).exists()
        if condition is not None:
            expected = expected & to_boto_condition(condition)
        try:
            async with self._resource() as dynamodb:
                table = await dynamodb.Table(key.table)
                await table.update_item(
                    Key=key.as_dict(),
                    UpdateExpression='SET #attr = :value',
                    ExpressionAttributeNames={'#attr': attribute},
                    ExpressionAttributeValues={':value': value},
                    ConditionExpression=expected,
                    ReturnValuesOnConditionCheckFailure='ALL_OLD',
                )
        except ClientError as e:
            if _error_code(e) == 'ConditionalCheckFailedException':
                # ALL_OLD returns the item only when it exists
                if e.response.get('Item'):
                    return WriteOutcome.CONDITION_FAILED
                return WriteOutcome.NOT_FOUND
            raise _unavailable("UpdateItem", e) from e
        except BotoCoreError as e:
            raise _unavailable("UpdateItem", e) from e
        return WriteOutcome.OK

    async def query(self, index_key: IndexKey, filter: Optional[Condition] = None) -> List[Record]:
        kwargs: Dict[str, Any] = {
            'IndexName': index_key.index_name,
            'KeyConditionExpression': Key(index_key.attribute).eq(index_key.value),
        }
        if filter is not None:
            kwargs['FilterExpression'] = to_boto_condition(filter)
        try:
            async with self._resource() as dynamodb:
                table = await dynamodb.Table(index_key.table)
                return await self._paginate(table.query, kwargs)
        except (ClientError, BotoCoreError) as e:
            raise _unavailable("Query", e) from e

    async def scan(self, table: str, filter: Optional[Condition] = None) -> List[Record]:
        kwargs: Dict[str, Any] = {}
        if filter is not None:
            kwargs['FilterExpression'] = to_boto_condition(filter)
        try:
            async with self._resource() as dynamodb:
                handle = await dynamodb.Table(table)
                return await self._paginate(handle.scan, kwargs)
        except (ClientError, BotoCoreError) as e:
            raise _unavailable("Scan", e) from e

    @staticmethod
    async def _paginate(operation, kwargs: Dict[str, Any]) -> List[Record]:
        items: List[Record] = []
        while True:
            response = await operation(**kwargs)
            items.extend(response.get('Items', []))
            last_key = response.get('LastEvaluatedKey')
            if not last_key:
                return items
            kwargs['ExclusiveStartKey'] = last_key

    async def batch_get(self, keys: Sequence[RecordKey]) -> List[Record]:
        items: List[Record] = []
        keys = list(keys)
        try:
            async with self._resource() as dynamodb:
                for start in range(0, len(keys), BATCH_GET_LIMIT):
                    request: Dict[str, Any] = {}
                    for key in keys[start:start + BATCH_GET_LIMIT]:
                        entry = request.setdefault(key.table, {'Keys': [], 'ConsistentRead': True})
                        if key.as_dict() not in entry['Keys']:
                            entry['Keys'].append(key.as_dict())

                    rounds = 0
                    while request:
                        if rounds == MAX_UNPROCESSED_ROUNDS:
                            raise StoreUnavailable("BatchGetItem left keys unprocessed")
                        response = await dynamodb.batch_get_item(RequestItems=request)
                        for table_items in response.get('Responses', {}).values():
                            items.extend(table_items)
                        request = response.get('UnprocessedKeys') or {}
                        rounds += 1
        except (ClientError, BotoCoreError) as e:
            raise _unavailable("BatchGetItem", e) from e
        return items

    async def transact_write(self, operations: Sequence[WriteOperation]) -> WriteOutcome:
        transact_items = [self._transact_item(op) for op in operations]
        try:
            async with self._client() as client:
                await client.transact_write_items(TransactItems=transact_items)
        except ClientError as e:
            if _error_code(e) != 'TransactionCanceledException':
                raise _unavailable("TransactWriteItems", e) from e
            return self._cancellation_outcome(operations, e)
        except BotoCoreError as e:
            raise _unavailable("TransactWriteItems", e) from e
        return WriteOutcome.OK

    def _cancellation_outcome(self, operations: Sequence[WriteOperation],
                              error: ClientError) -> WriteOutcome:
        reasons = error.response.get('CancellationReasons') or []
        codes = [reason.get('Code') for reason in reasons]
        for op, reason in zip(operations, reasons):
            if reason.get('Code') != 'ConditionalCheckFailed':
                continue
            if isinstance(op, UpdateOperation) and not reason.get('Item'):
                return WriteOutcome.NOT_FOUND
            return WriteOutcome.CONDITION_FAILED
        if 'TransactionConflict' in codes:
            return WriteOutcome.CONDITION_FAILED
        raise _unavailable("TransactWriteItems", error)

    def _serialize(self, values: Dict[str, Any]) -> Dict[str, Any]:
        return {k: self._serializer.serialize(v) for k, v in values.items()}

    def _transact_item(self, op: WriteOperation) -> Dict[str, Any]:
        if isinstance(op, PutOperation):
            item = dict(op.record)
            item.update(op.key.as_dict())
            entry: Dict[str, Any] = {'TableName': op.key.table, 'Item': self._serialize(item)}
            if op.condition is not None:
                self._add_condition(entry, to_boto_condition(op.condition), {}, {})
            return {'Put': entry}

        expected = Attr(op.key.partition[0]).exists()
        if op.condition is not None:
            expected = expected & to_boto_condition(op.condition)
        entry = {
            'TableName': op.key.table,
            'Key': self._serialize(op.key.as_dict()),
            'UpdateExpression': 'SET #attr = :value',
            'ReturnValuesOnConditionCheckFailure': 'ALL_OLD',
        }
        self._add_condition(entry, expected, {'#attr': op.attribute}, {':value': op.value})
        return {'Update': entry}

    def _add_condition(self, entry: Dict[str, Any], condition: ConditionBase,
                       names: Dict[str, str], values: Dict[str, Any]) -> None:
        built = ConditionExpressionBuilder().build_expression(condition)
        entry['ConditionExpression'] = built.condition_expression
        names = {**names, **built.attribute_name_placeholders}
        values = {**values, **built.attribute_value_placeholders}
        if names:
            entry['ExpressionAttributeNames'] = names
        if values:
            entry['ExpressionAttributeValues'] = self._serialize(values)

    async def create_tables(self) -> None:
        """Create both tables with their indexes (DynamoDB Local / dev accounts)."""
        definitions = [
            (self.tables.workbooks_table, OWNER_ID, WORKBOOK_ID,
             self.tables.owner_index, OWNER_INDEX_PK, OWNER_INDEX_SK),
            (self.tables.grants_table, WORKBOOK_ID, USER_ID,
             self.tables.grantee_index, USER_ID, WORKBOOK_ID),
        ]
        try:
            async with self._client() as client:
                existing = (await client.list_tables()).get('TableNames', [])
                for name, pk, sk, index, index_pk, index_sk in definitions:
                    if name in existing:
                        continue
                    attributes = sorted({pk, sk, index_pk, index_sk})
                    await client.create_table(
                        TableName=name,
                        BillingMode='PAY_PER_REQUEST',
                        KeySchema=[
                            {'AttributeName': pk, 'KeyType': 'HASH'},
                            {'AttributeName': sk, 'KeyType': 'RANGE'},
                        ],
                        AttributeDefinitions=[
                            {'AttributeName': a, 'AttributeType': 'S'} for a in attributes
                        ],
                        GlobalSecondaryIndexes=[{
                            'IndexName': index,
                            'KeySchema': [
                                {'AttributeName': index_pk, 'KeyType': 'HASH'},
                                {'AttributeName': index_sk, 'KeyType': 'RANGE'},
                            ],
                            'Projection': {'ProjectionType': 'ALL'},
                        }],
                    )
                    logger.info("Created DynamoDB table %s", name)
        except (ClientError, BotoCoreError) as e:
            raise _unavailable("CreateTable", e) from e
