"""
In-memory entity store.

Used for local runs (STORE_BACKEND=memory) and tests. Each conditional write
runs under a single lock, so it has the same all-or-nothing semantics as the
DynamoDB transactions in dynamo.py.
"""
import copy
import threading
from typing import Any, Dict, List, Optional

from .errors import ConditionFailed
from .logging import logger
from .models import TaskStatus
from .store import EntityStore


class MemoryStore(EntityStore):

    def __init__(self, users: Optional[List[Dict[str, Any]]] = None):
        self._lock = threading.RLock()
        self._users = {u['userId']: copy.deepcopy(u) for u in users or []}
        self._tasks: Dict[str, Dict[str, Any]] = {}
        self._time_logs: Dict[str, Dict[str, Any]] = {}
        # Active timer guards: 'teacher#<id>' / 'task#<id>' -> timeLogId
        self._active: Dict[str, str] = {}

    # ---- users ----

    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            return copy.deepcopy(self._users.get(user_id))

    def list_users(self, role: Optional[str] = None) -> List[Dict[str, Any]]:
        with self._lock:
            return [copy.deepcopy(u) for u in self._users.values() if role is None or u.get('role') == role]

    # ---- tasks ----

    def get_task(self, task_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            return copy.deepcopy(self._tasks.get(task_id))

    def list_tasks(
        self,
        assigned_to: Optional[str] = None,
        include_unassigned: bool = False
    ) -> List[Dict[str, Any]]:
        with self._lock:
            items = []
            for task in self._tasks.values():
                if assigned_to:
                    owner = task.get('assignedTo')
                    if owner != assigned_to and not (include_unassigned and owner is None):
                        continue
                items.append(copy.deepcopy(task))
        items.sort(key=lambda t: t.get('createdAt', ''), reverse=True)
        return items

    def insert_task(self, item: Dict[str, Any]) -> str:
        with self._lock:
            if item['taskId'] in self._tasks:
                raise ConditionFailed('row')
            self._tasks[item['taskId']] = copy.deepcopy(item)
        return item['taskId']

    def update_task(
        self,
        task_id: str,
        changes: Dict[str, Any],
        expected: Dict[str, Any]
    ) -> Dict[str, Any]:
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None:
                raise ConditionFailed('row')
            for field, value in expected.items():
                if task.get(field) != value:
                    raise ConditionFailed('row')

            for field, value in changes.items():
                if value is None:
                    task.pop(field, None)
                else:
                    task[field] = value
            task['version'] = task.get('version', 0) + 1
            return copy.deepcopy(task)

    def delete_task(self, task_id: str) -> bool:
        with self._lock:
            return self._tasks.pop(task_id, None) is not None

    # ---- time logs ----

    def get_time_log(self, time_log_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            return copy.deepcopy(self._time_logs.get(time_log_id))

    def _active_for(self, lock_key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            time_log_id = self._active.get(lock_key)
            if time_log_id is None:
                return None
            return copy.deepcopy(self._time_logs[time_log_id])

    def get_active_time_log(self, teacher_id: str) -> Optional[Dict[str, Any]]:
        return self._active_for(f'teacher#{teacher_id}')

    def get_active_time_log_for_task(self, task_id: str) -> Optional[Dict[str, Any]]:
        return self._active_for(f'task#{task_id}')

    def list_time_logs(
        self,
        teacher_id: Optional[str] = None,
        start: Optional[str] = None,
        end: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        with self._lock:
            items = [
                copy.deepcopy(log) for log in self._time_logs.values()
                if (teacher_id is None or log['teacherId'] == teacher_id)
                and (start is None or log['startTime'] >= start)
                and (end is None or log['startTime'] < end)
            ]
        items.sort(key=lambda t: t['startTime'], reverse=True)
        return items

    def open_time_log(self, item: Dict[str, Any], require_task_owner: bool = False) -> Dict[str, Any]:
        teacher_key = f"teacher#{item['teacherId']}"
        task_id = item.get('taskId')
        task_key = f'task#{task_id}' if task_id else None

        with self._lock:
            if item['timeLogId'] in self._time_logs:
                raise ConditionFailed('row')
            if teacher_key in self._active:
                raise ConditionFailed('teacher')
            if task_key and task_key in self._active:
                raise ConditionFailed('task')
            if task_id and require_task_owner:
                task = self._tasks.get(task_id)
                if (task is None or task.get('status') != TaskStatus.ACCEPTED
                        or task.get('assignedTo') != item['teacherId']):
                    raise ConditionFailed('task_state')

            self._time_logs[item['timeLogId']] = copy.deepcopy(item)
            self._active[teacher_key] = item['timeLogId']
            if task_key:
                self._active[task_key] = item['timeLogId']

        logger.debug(f"Opened time log {item['timeLogId']} for teacher {item['teacherId']}")
        return copy.deepcopy(item)

    def close_time_log(
        self,
        time_log: Dict[str, Any],
        end_time: str,
        duration_minutes: int
    ) -> Dict[str, Any]:
        time_log_id = time_log['timeLogId']

        with self._lock:
            stored = self._time_logs.get(time_log_id)
            if stored is None or stored.get('endTime') is not None:
                raise ConditionFailed('closed')

            stored['endTime'] = end_time
            stored['durationMinutes'] = duration_minutes
            for lock_key in (f"teacher#{stored['teacherId']}", f"task#{stored.get('taskId')}"):
                if self._active.get(lock_key) == time_log_id:
                    del self._active[lock_key]
            return copy.deepcopy(stored)
