"""
DynamoDB entity store.

Tasks, time logs and users live in their own tables. Uniqueness of active
timers is enforced with guard items in ACTIVE_TIMERS_TABLE, keyed
'teacher#<id>' and 'task#<id>', written in the same transaction that opens
or closes the time log.
"""
import boto3
from decimal import Decimal
from typing import List, Dict, Any, Optional
from boto3.dynamodb.conditions import Key, Attr
from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import BotoCoreError, ClientError

from .config import config
from .errors import ConditionFailed, StoreError
from .logging import logger
from .models import TaskStatus
from .store import EntityStore

# Cancellation reason codes that mean "another writer got there first"
RACE_CODES = ('ConditionalCheckFailed', 'TransactionConflict')

serializer = TypeSerializer()


def teacher_lock_key(teacher_id: str) -> str:
    return f'teacher#{teacher_id}'


def task_lock_key(task_id: str) -> str:
    return f'task#{task_id}'


def from_dynamo(value: Any) -> Any:
    """Convert DynamoDB Decimals back to ints/floats, recursively."""
    if isinstance(value, Decimal):
        # Convert to int if it's a whole number, otherwise float
        if value % 1 == 0:
            return int(value)
        return float(value)
    if isinstance(value, dict):
        return {k: from_dynamo(v) for k, v in value.items()}
    if isinstance(value, list):
        return [from_dynamo(v) for v in value]
    return value


def serialize_item(item: Dict[str, Any]) -> Dict[str, Any]:
    """Serialize a plain item into low-level client attribute values."""
    return {k: serializer.serialize(v) for k, v in item.items()}


class DynamoStore(EntityStore):
    """Entity store backed by DynamoDB conditional and transactional writes."""

    def __init__(self, dynamodb=None):
        self.dynamodb = dynamodb or boto3.resource('dynamodb', region_name=config.AWS_REGION)
        self.client = self.dynamodb.meta.client
        self.tasks_table = self.dynamodb.Table(config.TASKS_TABLE)
        self.time_logs_table = self.dynamodb.Table(config.TIME_LOGS_TABLE)
        self.users_table = self.dynamodb.Table(config.USERS_TABLE)
        self.locks_table = self.dynamodb.Table(config.ACTIVE_TIMERS_TABLE)

    # ---- low-level helpers ----

    def _fail(self, action: str, error: Exception) -> StoreError:
        logger.error(f"Error {action}: {error}")
        return StoreError(f"Store failure while {action}")

    def _get(self, table, key: Dict[str, Any], action: str) -> Optional[Dict[str, Any]]:
        try:
            response = table.get_item(Key=key, ConsistentRead=True)
        except (ClientError, BotoCoreError) as e:
            raise self._fail(action, e) from e
        item = response.get('Item')
        return from_dynamo(item) if item else None

    def _collect(self, operation, params: Dict[str, Any], action: str) -> List[Dict[str, Any]]:
        """Run a query/scan and follow LastEvaluatedKey until exhausted."""
        items = []
        try:
            while True:
                response = operation(**params)
                items.extend(response.get('Items', []))
                last_key = response.get('LastEvaluatedKey')
                if not last_key:
                    break
                params = {**params, 'ExclusiveStartKey': last_key}
        except (ClientError, BotoCoreError) as e:
            raise self._fail(action, e) from e
        return [from_dynamo(item) for item in items]

    def _transact(self, transact_items: List[Dict[str, Any]], reasons: List[str], action: str) -> None:
        """
        Execute a transaction. Cancellation caused by a failed condition (or a
        concurrent transaction on the same item) raises ConditionFailed with
        the reason registered for the first offending item.
        """
        try:
            self.client.transact_write_items(TransactItems=transact_items)
        except ClientError as e:
            error_code = e.response['Error']['Code']
            if error_code != 'TransactionCanceledException':
                raise self._fail(action, e) from e

            # Cancellation reasons correspond to the TransactItems list order
            cancellation = e.response.get('CancellationReasons', [])
            for idx, cancel_reason in enumerate(cancellation):
                code = cancel_reason.get('Code', 'None')
                if code == 'None':
                    continue
                if code in RACE_CODES:
                    raise ConditionFailed(reasons[idx]) from e
                break
            raise self._fail(action, e) from e
        except BotoCoreError as e:
            raise self._fail(action, e) from e

    # ---- users ----

    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        return self._get(self.users_table, {'userId': user_id}, 'getting user')

    def list_users(self, role: Optional[str] = None) -> List[Dict[str, Any]]:
        params = {}
        if role:
            params['FilterExpression'] = Attr('role').eq(role)
        return self._collect(self.users_table.scan, params, 'listing users')

    # ---- tasks ----

    def get_task(self, task_id: str) -> Optional[Dict[str, Any]]:
        return self._get(self.tasks_table, {'taskId': task_id}, 'getting task')

    def list_tasks(
        self,
        assigned_to: Optional[str] = None,
        include_unassigned: bool = False
    ) -> List[Dict[str, Any]]:
        params = {}
        if assigned_to:
            filter_expression = Attr('assignedTo').eq(assigned_to)
            if include_unassigned:
                filter_expression = filter_expression | Attr('assignedTo').not_exists()
            params['FilterExpression'] = filter_expression

        items = self._collect(self.tasks_table.scan, params, 'listing tasks')
        items.sort(key=lambda t: t.get('createdAt', ''), reverse=True)
        return items

    def insert_task(self, item: Dict[str, Any]) -> str:
        try:
            self.tasks_table.put_item(
                Item=item,
                ConditionExpression='attribute_not_exists(taskId)'
            )
        except ClientError as e:
            if e.response['Error']['Code'] == 'ConditionalCheckFailedException':
                raise ConditionFailed('row') from e
            raise self._fail('inserting task', e) from e
        except BotoCoreError as e:
            raise self._fail('inserting task', e) from e

        logger.info(f"Inserted task {item['taskId']}")
        return item['taskId']

    def update_task(
        self,
        task_id: str,
        changes: Dict[str, Any],
        expected: Dict[str, Any]
    ) -> Dict[str, Any]:
        names = {'#version': 'version'}
        values = {':one': 1, ':zero': 0}
        set_parts = ['#version = if_not_exists(#version, :zero) + :one']
        remove_parts = []

        for idx, (field, value) in enumerate(changes.items()):
            name = f'#f{idx}'
            names[name] = field
            if value is None:
                remove_parts.append(name)
            else:
                values[f':f{idx}'] = value
                set_parts.append(f'{name} = :f{idx}')

        conditions = ['attribute_exists(taskId)']
        for idx, (field, value) in enumerate(expected.items()):
            name = f'#e{idx}'
            names[name] = field
            if value is None:
                conditions.append(f'attribute_not_exists({name})')
            else:
                values[f':e{idx}'] = value
                conditions.append(f'{name} = :e{idx}')

        update_expression = 'SET ' + ', '.join(set_parts)
        if remove_parts:
            update_expression += ' REMOVE ' + ', '.join(remove_parts)

        try:
            response = self.tasks_table.update_item(
                Key={'taskId': task_id},
                UpdateExpression=update_expression,
                ConditionExpression=' AND '.join(conditions),
                ExpressionAttributeNames=names,
                ExpressionAttributeValues=values,
                ReturnValues='ALL_NEW'
            )
        except ClientError as e:
            if e.response['Error']['Code'] == 'ConditionalCheckFailedException':
                raise ConditionFailed('row') from e
            raise self._fail('updating task', e) from e
        except BotoCoreError as e:
            raise self._fail('updating task', e) from e

        return from_dynamo(response['Attributes'])

    def delete_task(self, task_id: str) -> bool:
        try:
            self.tasks_table.delete_item(
                Key={'taskId': task_id},
                ConditionExpression='attribute_exists(taskId)'
            )
        except ClientError as e:
            if e.response['Error']['Code'] == 'ConditionalCheckFailedException':
                return False
            raise self._fail('deleting task', e) from e
        except BotoCoreError as e:
            raise self._fail('deleting task', e) from e
        return True

    # ---- time logs ----

    def get_time_log(self, time_log_id: str) -> Optional[Dict[str, Any]]:
        return self._get(self.time_logs_table, {'timeLogId': time_log_id}, 'getting time log')

    def _active_from_lock(self, lock_key: str) -> Optional[Dict[str, Any]]:
        lock = self._get(self.locks_table, {'lockKey': lock_key}, 'reading timer guard')
        if not lock:
            return None
        time_log = self.get_time_log(lock['timeLogId'])
        if not time_log or time_log.get('endTime'):
            return None
        return time_log

    def get_active_time_log(self, teacher_id: str) -> Optional[Dict[str, Any]]:
        return self._active_from_lock(teacher_lock_key(teacher_id))

    def get_active_time_log_for_task(self, task_id: str) -> Optional[Dict[str, Any]]:
        return self._active_from_lock(task_lock_key(task_id))

    def list_time_logs(
        self,
        teacher_id: Optional[str] = None,
        start: Optional[str] = None,
        end: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        if teacher_id:
            # startTime is the index sort key, so the range goes in the key condition
            key_condition = Key('teacherId').eq(teacher_id)
            if start and end:
                key_condition = key_condition & Key('startTime').between(start, end)
            elif start:
                key_condition = key_condition & Key('startTime').gte(start)
            elif end:
                key_condition = key_condition & Key('startTime').lt(end)

            items = self._collect(self.time_logs_table.query, {
                'IndexName': config.TIME_LOGS_TEACHER_INDEX,
                'KeyConditionExpression': key_condition,
                'ScanIndexForward': False
            }, 'querying time logs')
            if end:
                # between() is inclusive on both ends
                items = [i for i in items if i['startTime'] < end]
        else:
            params = {}
            filter_expression = None
            if start:
                filter_expression = Attr('startTime').gte(start)
            if end:
                end_condition = Attr('startTime').lt(end)
                filter_expression = end_condition if filter_expression is None else filter_expression & end_condition
            if filter_expression is not None:
                params['FilterExpression'] = filter_expression
            items = self._collect(self.time_logs_table.scan, params, 'scanning time logs')

        items.sort(key=lambda t: t.get('startTime', ''), reverse=True)
        return items

    def open_time_log(self, item: Dict[str, Any], require_task_owner: bool = False) -> Dict[str, Any]:
        teacher_id = item['teacherId']
        task_id = item.get('taskId')
        guard = {'timeLogId': item['timeLogId'], 'teacherId': teacher_id, 'startTime': item['startTime']}
        if task_id:
            guard['taskId'] = task_id

        transact_items = [
            {
                'Put': {
                    'TableName': config.TIME_LOGS_TABLE,
                    'Item': serialize_item(item),
                    'ConditionExpression': 'attribute_not_exists(timeLogId)'
                }
            },
            {
                'Put': {
                    'TableName': config.ACTIVE_TIMERS_TABLE,
                    'Item': serialize_item({**guard, 'lockKey': teacher_lock_key(teacher_id)}),
                    'ConditionExpression': 'attribute_not_exists(lockKey)'
                }
            }
        ]
        reasons = ['row', 'teacher']

        if task_id:
            transact_items.append({
                'Put': {
                    'TableName': config.ACTIVE_TIMERS_TABLE,
                    'Item': serialize_item({**guard, 'lockKey': task_lock_key(task_id)}),
                    'ConditionExpression': 'attribute_not_exists(lockKey)'
                }
            })
            reasons.append('task')

            if require_task_owner:
                transact_items.append({
                    'ConditionCheck': {
                        'TableName': config.TASKS_TABLE,
                        'Key': serialize_item({'taskId': task_id}),
                        'ConditionExpression': '#status = :accepted AND assignedTo = :teacher',
                        'ExpressionAttributeNames': {'#status': 'status'},
                        'ExpressionAttributeValues': serialize_item({
                            ':accepted': TaskStatus.ACCEPTED,
                            ':teacher': teacher_id
                        })
                    }
                })
                reasons.append('task_state')

        self._transact(transact_items, reasons, 'opening time log')
        logger.info(f"Opened time log {item['timeLogId']} for teacher {teacher_id} (task: {task_id})")
        return dict(item)

    def close_time_log(
        self,
        time_log: Dict[str, Any],
        end_time: str,
        duration_minutes: int
    ) -> Dict[str, Any]:
        time_log_id = time_log['timeLogId']
        owner_condition = {
            'ConditionExpression': 'timeLogId = :id',
            'ExpressionAttributeValues': serialize_item({':id': time_log_id})
        }

        transact_items = [
            {
                'Update': {
                    'TableName': config.TIME_LOGS_TABLE,
                    'Key': serialize_item({'timeLogId': time_log_id}),
                    'UpdateExpression': 'SET endTime = :end, durationMinutes = :duration',
                    'ConditionExpression': 'attribute_exists(timeLogId) AND attribute_not_exists(endTime)',
                    'ExpressionAttributeValues': serialize_item({
                        ':end': end_time,
                        ':duration': duration_minutes
                    })
                }
            },
            {
                'Delete': {
                    'TableName': config.ACTIVE_TIMERS_TABLE,
                    'Key': serialize_item({'lockKey': teacher_lock_key(time_log['teacherId'])}),
                    **owner_condition
                }
            }
        ]
        reasons = ['closed', 'closed']

        if time_log.get('taskId'):
            transact_items.append({
                'Delete': {
                    'TableName': config.ACTIVE_TIMERS_TABLE,
                    'Key': serialize_item({'lockKey': task_lock_key(time_log['taskId'])}),
                    **owner_condition
                }
            })
            reasons.append('closed')

        self._transact(transact_items, reasons, 'closing time log')
        logger.info(f"Closed time log {time_log_id} after {duration_minutes} min")
        return {**time_log, 'endTime': end_time, 'durationMinutes': duration_minutes}
