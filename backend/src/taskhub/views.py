"""
Response views with the names shown next to ids.

Tasks carry assignedToName and createdByName; time logs carry taskTitle and
taskStatus, plus teacherName and teacherEmail on admin listings. Lookups are
memoized for the lifetime of one resolver, so a list response reads each
referenced user or task once.
"""
from typing import Any, Dict, Optional

from .models import task_view, time_log_view
from .store import EntityStore


class ViewResolver:
    """Builds enriched task and time log views for one request."""

    def __init__(self, store: EntityStore):
        self.store = store
        self._users: Dict[str, Optional[Dict[str, Any]]] = {}
        self._tasks: Dict[str, Optional[Dict[str, Any]]] = {}

    def user(self, user_id: Optional[str]) -> Optional[Dict[str, Any]]:
        if not user_id:
            return None
        if user_id not in self._users:
            self._users[user_id] = self.store.get_user(user_id)
        return self._users[user_id]

    def task(self, task_id: Optional[str]) -> Optional[Dict[str, Any]]:
        if not task_id:
            return None
        if task_id not in self._tasks:
            self._tasks[task_id] = self.store.get_task(task_id)
        return self._tasks[task_id]

    def _user_field(self, user_id: Optional[str], field: str) -> Optional[str]:
        user = self.user(user_id)
        return user.get(field) if user else None

    def task_view(self, item: Dict[str, Any]) -> Dict[str, Any]:
        view = task_view(item)
        view['assignedToName'] = self._user_field(item.get('assignedTo'), 'name')
        view['createdByName'] = self._user_field(item.get('createdBy'), 'name')
        return view

    def time_log_view(
        self,
        item: Optional[Dict[str, Any]],
        include_teacher: bool = False
    ) -> Optional[Dict[str, Any]]:
        view = time_log_view(item)
        if view is None:
            return None

        # A deleted task leaves its time logs behind; their task fields stay null
        task = self.task(item.get('taskId'))
        view['taskTitle'] = task.get('title') if task else None
        view['taskStatus'] = task.get('status') if task else None

        if include_teacher:
            view['teacherName'] = self._user_field(item.get('teacherId'), 'name')
            view['teacherEmail'] = self._user_field(item.get('teacherId'), 'email')
        return view
