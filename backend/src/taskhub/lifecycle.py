"""
Task lifecycle management.

State machine: pending → accepted (claim) → completed → approved/rejected.
Admins may also set any field directly; whichever path moves a task into
'completed' stops that task's timer through the TimerCoordinator.

Every write is a compare-and-swap against the values just read, so a
decision made on a stale read fails instead of overwriting a concurrent one.
"""
import uuid
from typing import Any, Dict, List, Optional

from .auth import require_role
from .errors import (
    ConditionFailed, Conflict, Forbidden, InvalidAssignee, InvalidTransition,
    NoOp, NotFound, ValidationError
)
from .logging import logger
from .models import (
    AdminApproval, Role, TaskStatus, UPDATABLE_TASK_FIELDS, new_task_item, utc_now
)
from .store import EntityStore
from .timer import TimerCoordinator


def approval_changes(current_status: str, new_status: str) -> Dict[str, Any]:
    """Status change plus the adminApproval bookkeeping that goes with it."""
    changes = {'status': new_status}
    if new_status == TaskStatus.COMPLETED and current_status != TaskStatus.COMPLETED:
        changes['adminApproval'] = AdminApproval.PENDING
    elif new_status != TaskStatus.COMPLETED and current_status == TaskStatus.COMPLETED:
        # A decision only means something on a completed task
        changes['adminApproval'] = None
    return changes


def validate_status(status: Any) -> str:
    if status not in TaskStatus.ALL:
        raise ValidationError('Invalid status. Must be pending, accepted, or completed.')
    return status


class TaskLifecycleManager:

    def __init__(self, store: EntityStore, timer: Optional[TimerCoordinator] = None, clock=utc_now):
        self.store = store
        self.clock = clock
        self.timer = timer or TimerCoordinator(store, clock)

    def _get_existing(self, task_id: str) -> Dict[str, Any]:
        task = self.store.get_task(task_id)
        if not task:
            raise NotFound('Task not found.')
        return task

    def _check_assignee(self, user_id: Any) -> str:
        if not isinstance(user_id, str) or not user_id:
            raise InvalidAssignee('Assigned user not found.')
        user = self.store.get_user(user_id)
        if not user:
            raise InvalidAssignee('Assigned user not found.')
        if user.get('role') != Role.TEACHER:
            raise InvalidAssignee('Tasks can only be assigned to teachers.')
        return user_id

    def _after_status_change(self, task_id: str, old_status: str, new_status: str) -> None:
        if new_status == TaskStatus.COMPLETED and old_status != TaskStatus.COMPLETED:
            self.timer.stop_for_task_completion(task_id)

    def create_task(
        self,
        caller_id: str,
        caller_role: str,
        title: Any,
        description: Optional[str] = None,
        assigned_to: Optional[str] = None
    ) -> Dict[str, Any]:
        require_role(caller_role, Role.ADMIN)

        if not isinstance(title, str) or not title.strip():
            raise ValidationError('Task title is required.')
        if description is not None and not isinstance(description, str):
            raise ValidationError('Task description must be text.')
        if assigned_to:
            self._check_assignee(assigned_to)

        item = new_task_item(
            task_id=str(uuid.uuid4()),
            title=title.strip(),
            created_by=caller_id,
            created_at=self.clock(),
            description=description,
            assigned_to=assigned_to
        )
        self.store.insert_task(item)

        logger.info(f"Task {item['taskId']} created by {caller_id} (assignedTo: {assigned_to})")
        return item

    def get_task(self, task_id: str, caller_id: str, caller_role: str) -> Dict[str, Any]:
        require_role(caller_role, Role.ADMIN, Role.TEACHER)
        task = self._get_existing(task_id)

        # Teachers can see their own tasks and unassigned ones they could claim
        owner = task.get('assignedTo')
        if caller_role == Role.TEACHER and owner is not None and owner != caller_id:
            raise Forbidden('Access denied. You can only view tasks assigned to you.')
        return task

    def claim_task(self, task_id: str, worker_id: str, caller_role: str) -> Dict[str, Any]:
        """
        Teacher takes a pending task that is unassigned or already assigned to them.

        Assignment and status change are one conditional write; of several
        teachers racing for the same task exactly one wins and the others get
        Conflict. The winner's timer is then started on the task.
        """
        require_role(caller_role, Role.TEACHER)
        task = self._get_existing(task_id)

        owner = task.get('assignedTo')
        if owner is not None and owner != worker_id:
            raise Conflict('This task is already assigned to another teacher.')

        status = task.get('status')
        if status != TaskStatus.PENDING:
            raise InvalidTransition(
                f'Task cannot be accepted. Current status: {status}. Only pending tasks can be accepted.',
                current_status=status
            )

        try:
            updated = self.store.update_task(
                task_id,
                {'assignedTo': worker_id, 'status': TaskStatus.ACCEPTED},
                expected={'status': TaskStatus.PENDING, 'assignedTo': owner}
            )
        except ConditionFailed:
            raise Conflict('Task is no longer available or already assigned.')

        logger.info(f"Task {task_id} claimed by teacher {worker_id}")
        self.timer.start_implicit(worker_id, task_id)
        return updated

    def update_task_status(
        self,
        task_id: str,
        caller_id: str,
        caller_role: str,
        new_status: Any
    ) -> Dict[str, Any]:
        require_role(caller_role, Role.ADMIN, Role.TEACHER)
        validate_status(new_status)
        task = self._get_existing(task_id)
        current = task.get('status')

        if caller_role == Role.TEACHER:
            if task.get('assignedTo') != caller_id:
                raise Forbidden('Access denied. You can only update tasks assigned to you.')
            if new_status != TaskStatus.COMPLETED:
                raise Forbidden('Teachers can only mark their tasks as completed.')
            if current != TaskStatus.ACCEPTED:
                raise InvalidTransition(
                    f'Task cannot be completed. Current status: {current}. Only accepted tasks can be completed.',
                    current_status=current
                )

        try:
            updated = self.store.update_task(
                task_id,
                approval_changes(current, new_status),
                expected={'status': current, 'assignedTo': task.get('assignedTo')}
            )
        except ConditionFailed:
            raise Conflict('Task was changed by someone else. Please reload and retry.')

        logger.info(f"Task {task_id} status {current} -> {new_status} by {caller_role} {caller_id}")
        self._after_status_change(task_id, current, new_status)
        return updated

    def update_task_fields(self, task_id: str, caller_role: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        """
        Admin partial update of title, description, assignedTo and status.

        Bypasses the claim step on purpose; a change into 'completed' still
        stops the task's timer.
        """
        require_role(caller_role, Role.ADMIN)

        unknown = sorted(set(fields) - set(UPDATABLE_TASK_FIELDS))
        if unknown:
            raise ValidationError(f"Unknown task fields: {', '.join(unknown)}.")

        task = self._get_existing(task_id)
        if not fields:
            raise NoOp('No fields to update.')

        changes = {}
        if 'title' in fields:
            title = fields['title']
            if not isinstance(title, str) or not title.strip():
                raise ValidationError('Task title is required.')
            changes['title'] = title.strip()

        if 'description' in fields:
            description = fields['description']
            if description is not None and not isinstance(description, str):
                raise ValidationError('Task description must be text.')
            changes['description'] = description or None

        if 'assignedTo' in fields:
            assigned_to = fields['assignedTo']
            changes['assignedTo'] = None if assigned_to is None else self._check_assignee(assigned_to)

        current = task.get('status')
        if 'status' in fields:
            changes.update(approval_changes(current, validate_status(fields['status'])))

        try:
            updated = self.store.update_task(task_id, changes, expected={'version': task.get('version')})
        except ConditionFailed:
            raise Conflict('Task was changed by someone else. Please reload and retry.')

        logger.info(f"Task {task_id} updated: {sorted(changes)}")
        self._after_status_change(task_id, current, updated.get('status'))
        return updated

    def approve_task(self, task_id: str, caller_role: str, decision: Any) -> Dict[str, Any]:
        require_role(caller_role, Role.ADMIN)

        if decision not in AdminApproval.DECISIONS:
            raise ValidationError('Invalid approval value. Must be "approved" or "rejected".')

        task = self._get_existing(task_id)
        status = task.get('status')
        if status != TaskStatus.COMPLETED:
            raise InvalidTransition(
                f'Task must be completed before approval. Current status: {status}.',
                current_status=status
            )

        current = task.get('adminApproval')
        if current == decision:
            return task
        if current in AdminApproval.DECISIONS:
            raise InvalidTransition(f'Task has already been {current}.', current_status=status)

        try:
            updated = self.store.update_task(
                task_id,
                {'adminApproval': decision},
                expected={'status': TaskStatus.COMPLETED, 'adminApproval': current}
            )
        except ConditionFailed:
            raise Conflict('Task was changed by someone else. Please reload and retry.')

        logger.info(f"Task {task_id} {decision}")
        return updated

    def delete_task(self, task_id: str, caller_role: str) -> None:
        require_role(caller_role, Role.ADMIN)
        if not self.store.delete_task(task_id):
            raise NotFound('Task not found.')
        logger.info(f"Task {task_id} deleted")

    def list_tasks(self, caller_id: str, caller_role: str) -> List[Dict[str, Any]]:
        """Admins see every task; teachers see their own plus unassigned ones. Newest first."""
        require_role(caller_role, Role.ADMIN, Role.TEACHER)
        if caller_role == Role.ADMIN:
            return self.store.list_tasks()
        return self.store.list_tasks(assigned_to=caller_id, include_unassigned=True)
