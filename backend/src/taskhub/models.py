"""
Data models and status constants for Teachers Hub.
Based on the task lifecycle: Pending → Accepted → Completed → Approved/Rejected
Items are plain dicts shaped like the DynamoDB items they are stored as.
"""
import datetime
import math
from typing import Any, Dict, Optional


class Role:
    """Caller roles issued by the identity provider."""
    ADMIN = 'admin'
    TEACHER = 'teacher'

    ALL = (ADMIN, TEACHER)


class TaskStatus:
    """Task lifecycle statuses."""
    PENDING = 'pending'
    ACCEPTED = 'accepted'
    COMPLETED = 'completed'

    ALL = (PENDING, ACCEPTED, COMPLETED)


class AdminApproval:
    """Coordinator review of a completed task."""
    PENDING = 'pending'
    APPROVED = 'approved'
    REJECTED = 'rejected'

    DECISIONS = (APPROVED, REJECTED)


# Fields a coordinator may change through a general task update
UPDATABLE_TASK_FIELDS = ('title', 'description', 'assignedTo', 'status')


def utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def to_timestamp(value: datetime.datetime) -> str:
    """
    Serialize a datetime as a UTC ISO-8601 string.

    The precision is fixed to microseconds so that lexical order of stored
    timestamps equals chronological order (DynamoDB compares strings).
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=datetime.timezone.utc)
    return value.astimezone(datetime.timezone.utc).isoformat(timespec='microseconds')


def parse_timestamp(value: str) -> datetime.datetime:
    parsed = datetime.datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=datetime.timezone.utc)
    return parsed


def duration_minutes(start_time: str, end_time: datetime.datetime) -> int:
    """Whole elapsed minutes between a stored start time and end_time (floor, never negative)."""
    elapsed = (end_time - parse_timestamp(start_time)).total_seconds()
    return max(0, math.floor(elapsed / 60))


def new_task_item(
    task_id: str,
    title: str,
    created_by: str,
    created_at: datetime.datetime,
    description: Optional[str] = None,
    assigned_to: Optional[str] = None
) -> Dict[str, Any]:
    item = {
        'taskId': task_id,
        'title': title,
        'status': TaskStatus.PENDING,
        'createdBy': created_by,
        'createdAt': to_timestamp(created_at),
        'version': 1
    }

    # Absent attributes stand for null values
    if description:
        item['description'] = description
    if assigned_to:
        item['assignedTo'] = assigned_to

    return item


def new_time_log_item(
    time_log_id: str,
    teacher_id: str,
    start_time: datetime.datetime,
    task_id: Optional[str] = None
) -> Dict[str, Any]:
    timestamp = to_timestamp(start_time)
    item = {
        'timeLogId': time_log_id,
        'teacherId': teacher_id,
        'startTime': timestamp,
        'createdAt': timestamp
    }
    if task_id:
        item['taskId'] = task_id
    return item


def task_view(item: Dict[str, Any]) -> Dict[str, Any]:
    """Task item with null-valued optional fields made explicit."""
    return {
        'taskId': item['taskId'],
        'title': item.get('title'),
        'description': item.get('description'),
        'status': item.get('status'),
        'adminApproval': item.get('adminApproval'),
        'assignedTo': item.get('assignedTo'),
        'createdBy': item.get('createdBy'),
        'createdAt': item.get('createdAt'),
        'version': item.get('version')
    }


def time_log_view(item: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """TimeLog item with null-valued optional fields made explicit."""
    if item is None:
        return None
    return {
        'timeLogId': item['timeLogId'],
        'teacherId': item.get('teacherId'),
        'taskId': item.get('taskId'),
        'startTime': item.get('startTime'),
        'endTime': item.get('endTime'),
        'durationMinutes': item.get('durationMinutes'),
        'createdAt': item.get('createdAt')
    }
