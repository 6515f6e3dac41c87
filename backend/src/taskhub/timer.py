"""
Timer coordination.

Owns the TimeLog lifecycle: explicit start/stop by a teacher, the implicit
start that follows a task claim and the implicit stop that follows a task
completion. A teacher has at most one active timer, and so does a task; both
rules are enforced by the store's guarded writes, not by the reads here.
"""
import datetime
import uuid
from typing import Any, Callable, Dict, List, Optional, Tuple

from .auth import require_role
from .errors import ConditionFailed, Conflict, InvalidTask, NoActiveTimer, ValidationError
from .logging import logger
from .models import Role, TaskStatus, duration_minutes, new_time_log_item, to_timestamp, utc_now
from .store import EntityStore

# Implicit starts retry when a concurrent start by the same teacher wins the guard
MAX_START_ATTEMPTS = 3


def parse_date(value: str, param_name: str) -> datetime.date:
    try:
        return datetime.date.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValidationError(f'Invalid {param_name}. Use YYYY-MM-DD.')


def date_bounds(
    start_date: Optional[str] = None,
    end_date: Optional[str] = None
) -> Tuple[Optional[str], Optional[str]]:
    """
    Turn inclusive YYYY-MM-DD dates into [start, end) startTime bounds.

    Returns:
        (start timestamp or None, exclusive end timestamp or None)
    """
    start = parse_date(start_date, 'startDate') if start_date else None
    end = parse_date(end_date, 'endDate') if end_date else None

    if start and end and start > end:
        raise ValidationError('startDate must not be after endDate.')

    utc = datetime.timezone.utc
    lower = to_timestamp(datetime.datetime.combine(start, datetime.time.min, tzinfo=utc)) if start else None
    upper = None
    # The last representable date has no following day; leave the range open
    if end and end < datetime.date.max:
        upper = to_timestamp(datetime.datetime.combine(end + datetime.timedelta(days=1), datetime.time.min, tzinfo=utc))
    return lower, upper


class TimerCoordinator:

    def __init__(self, store: EntityStore, clock: Callable[[], datetime.datetime] = utc_now):
        self.store = store
        self.clock = clock

    def _close(self, time_log: Dict[str, Any]) -> Dict[str, Any]:
        """Close an open time log at the current time. Raises ConditionFailed if already closed."""
        end_time = self.clock()
        minutes = duration_minutes(time_log['startTime'], end_time)
        return self.store.close_time_log(time_log, to_timestamp(end_time), minutes)

    def start_explicit(self, worker_id: str, caller_role: str, task_id: Optional[str] = None) -> Dict[str, Any]:
        """Start a timer at the teacher's request, optionally against one of their accepted tasks."""
        require_role(caller_role, Role.TEACHER)

        if task_id is not None and (not isinstance(task_id, str) or not task_id):
            raise ValidationError('taskId must be a non-empty string.')

        if self.store.get_active_time_log(worker_id):
            raise Conflict('You already have an active timer. Please stop it before starting a new one.')

        if task_id:
            task = self.store.get_task(task_id)
            if (not task or task.get('status') != TaskStatus.ACCEPTED
                    or task.get('assignedTo') != worker_id):
                raise InvalidTask('Only accepted tasks assigned to you can be timed.')

        item = new_time_log_item(str(uuid.uuid4()), worker_id, self.clock(), task_id)
        try:
            time_log = self.store.open_time_log(item, require_task_owner=bool(task_id))
        except ConditionFailed as e:
            if e.reason == 'task_state':
                raise InvalidTask('Only accepted tasks assigned to you can be timed.')
            if e.reason == 'task':
                raise Conflict('This task already has an active timer.')
            raise Conflict('You already have an active timer. Please stop it before starting a new one.')

        logger.info(f"Timer {time_log['timeLogId']} started by teacher {worker_id} (task: {task_id})")
        return time_log

    def start_implicit(self, worker_id: str, task_id: str) -> Optional[Dict[str, Any]]:
        """
        Start the timer that follows a claim.

        Does nothing if the task already has an active timer. A timer the
        teacher is running on anything else is closed first, so the claim
        never fails because of it.

        Returns:
            The task's active time log, or None if every attempt lost a race
        """
        for attempt in range(MAX_START_ATTEMPTS):
            existing = self.store.get_active_time_log_for_task(task_id)
            if existing:
                return existing

            current = self.store.get_active_time_log(worker_id)
            if current:
                try:
                    closed = self._close(current)
                    logger.info(
                        f"Closed timer {closed['timeLogId']} of teacher {worker_id} "
                        f"to start timing task {task_id}"
                    )
                except ConditionFailed:
                    pass

            item = new_time_log_item(str(uuid.uuid4()), worker_id, self.clock(), task_id)
            try:
                time_log = self.store.open_time_log(item)
                logger.info(f"Timer {time_log['timeLogId']} started on claim of task {task_id}")
                return time_log
            except ConditionFailed as e:
                if e.reason == 'task':
                    # A concurrent start now covers this task
                    return self.store.get_active_time_log_for_task(task_id)
                logger.warning(f"Implicit start for task {task_id} lost a race (attempt {attempt + 1})")

        logger.error(f"Could not start timer for task {task_id} after {MAX_START_ATTEMPTS} attempts")
        return None

    def stop_explicit(self, worker_id: str, caller_role: str) -> Dict[str, Any]:
        require_role(caller_role, Role.TEACHER)

        active = self.store.get_active_time_log(worker_id)
        if not active:
            raise NoActiveTimer('No active timer found. Please start a timer first.')

        try:
            time_log = self._close(active)
        except ConditionFailed:
            # Closed concurrently by another stop or by a task completion
            raise NoActiveTimer('No active timer found. Please start a timer first.')

        logger.info(f"Timer {time_log['timeLogId']} stopped by teacher {worker_id}: {time_log['durationMinutes']} min")
        return time_log

    def stop_for_task_completion(self, task_id: str) -> Optional[Dict[str, Any]]:
        """Close the task's active timer, if any. Completion without a running timer is fine."""
        active = self.store.get_active_time_log_for_task(task_id)
        if not active:
            return None

        try:
            time_log = self._close(active)
        except ConditionFailed:
            return None

        logger.info(f"Timer {time_log['timeLogId']} stopped on completion of task {task_id}")
        return time_log

    def get_active(self, worker_id: str, caller_role: str) -> Optional[Dict[str, Any]]:
        require_role(caller_role, Role.TEACHER)
        return self.store.get_active_time_log(worker_id)

    def list_for_worker(
        self,
        worker_id: str,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        start, end = date_bounds(start_date, end_date)
        return self.store.list_time_logs(teacher_id=worker_id, start=start, end=end)

    def list_all(
        self,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        teacher_id: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        start, end = date_bounds(start_date, end_date)
        return self.store.list_time_logs(teacher_id=teacher_id, start=start, end=end)

    def list_time_logs(
        self,
        caller_id: str,
        caller_role: str,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        teacher_id: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """Admins see every log (optionally one teacher's); teachers only ever see their own."""
        require_role(caller_role, Role.ADMIN, Role.TEACHER)

        if caller_role == Role.ADMIN:
            return self.list_all(start_date, end_date, teacher_id)
        return self.list_for_worker(caller_id, start_date, end_date)
