"""
Entity store contract shared by the DynamoDB and in-memory adapters.

Every mutating method is a conditional write: it either commits as a whole
and is visible to the next read, or raises ConditionFailed with no effect.
Failures of the store itself surface as StoreError.
"""
from functools import lru_cache
from typing import Any, Dict, List, Optional

from .config import config
from .logging import logger


class EntityStore:
    """Conditional read/write operations the engine relies on."""

    # ---- users ----

    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def list_users(self, role: Optional[str] = None) -> List[Dict[str, Any]]:
        raise NotImplementedError

    # ---- tasks ----

    def get_task(self, task_id: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def list_tasks(
        self,
        assigned_to: Optional[str] = None,
        include_unassigned: bool = False
    ) -> List[Dict[str, Any]]:
        """
        List tasks. With no arguments every task is returned; with assigned_to,
        only that worker's tasks (plus unassigned ones if include_unassigned).
        """
        raise NotImplementedError

    def insert_task(self, item: Dict[str, Any]) -> str:
        """Insert a new task and return its id."""
        raise NotImplementedError

    def update_task(
        self,
        task_id: str,
        changes: Dict[str, Any],
        expected: Dict[str, Any]
    ) -> Dict[str, Any]:
        """
        Compare-and-swap update of a task row.

        changes: attribute -> new value (None removes the attribute)
        expected: attribute -> value the row must still hold (None = absent)

        Increments the row version and returns the updated item.
        Raises ConditionFailed if the row is gone or any expectation fails.
        """
        raise NotImplementedError

    def delete_task(self, task_id: str) -> bool:
        """Delete a task. Returns False if it did not exist."""
        raise NotImplementedError

    # ---- time logs ----

    def get_time_log(self, time_log_id: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def get_active_time_log(self, teacher_id: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def get_active_time_log_for_task(self, task_id: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def list_time_logs(
        self,
        teacher_id: Optional[str] = None,
        start: Optional[str] = None,
        end: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """
        List time logs, newest startTime first.
        start (inclusive) and end (exclusive) bound startTime as timestamp strings.
        """
        raise NotImplementedError

    def open_time_log(self, item: Dict[str, Any], require_task_owner: bool = False) -> Dict[str, Any]:
        """
        Insert an active time log together with its teacher/task guards.

        Raises ConditionFailed('teacher') if the teacher already has an active
        timer, ConditionFailed('task') if the task does, and, when
        require_task_owner is set, ConditionFailed('task_state') unless the
        task is accepted and assigned to the time log's teacher.
        """
        raise NotImplementedError

    def close_time_log(
        self,
        time_log: Dict[str, Any],
        end_time: str,
        duration_minutes: int
    ) -> Dict[str, Any]:
        """
        Set endTime and durationMinutes on an open time log and release its guards.
        Raises ConditionFailed('closed') if it was already closed.
        """
        raise NotImplementedError


@lru_cache(maxsize=1)
def get_store() -> EntityStore:
    """Build the store adapter selected by STORE_BACKEND (one per process)."""
    if config.STORE_BACKEND == 'memory':
        from .memory_store import MemoryStore
        logger.info("Using in-memory entity store")
        return MemoryStore()

    if config.STORE_BACKEND != 'dynamodb':
        raise ValueError(f"Unknown STORE_BACKEND: {config.STORE_BACKEND}")

    from .dynamo import DynamoStore
    return DynamoStore()
