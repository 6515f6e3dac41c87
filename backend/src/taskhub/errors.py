"""
Error kinds raised by the engine.
Every engine error is an expected, recoverable outcome reported to the caller,
except StoreError, which stands for a store failure the engine cannot recover from.
"""
from typing import Optional


class TaskHubError(Exception):
    """Base error carrying the HTTP status and a machine-readable code."""
    status_code = 400
    code = 'Error'

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {'error': self.message, 'code': self.code}


class ValidationError(TaskHubError):
    status_code = 400
    code = 'ValidationError'


class Unauthorized(TaskHubError):
    status_code = 401
    code = 'Unauthorized'


class Forbidden(TaskHubError):
    status_code = 403
    code = 'Forbidden'


class NotFound(TaskHubError):
    status_code = 404
    code = 'NotFound'


class InvalidTransition(TaskHubError):
    status_code = 409
    code = 'InvalidTransition'

    def __init__(self, message: str, current_status: Optional[str] = None):
        super().__init__(message)
        self.current_status = current_status

    def to_dict(self) -> dict:
        body = super().to_dict()
        body['currentStatus'] = self.current_status
        return body


class Conflict(TaskHubError):
    """Lost an atomic race against another caller."""
    status_code = 409
    code = 'Conflict'


class InvalidAssignee(TaskHubError):
    status_code = 400
    code = 'InvalidAssignee'


class InvalidTask(TaskHubError):
    status_code = 400
    code = 'InvalidTask'


class NoActiveTimer(TaskHubError):
    status_code = 400
    code = 'NoActiveTimer'


class NoOp(TaskHubError):
    status_code = 400
    code = 'NoOp'


class StoreError(TaskHubError):
    """Opaque store failure (connectivity, throttling, unexpected client error)."""
    status_code = 500
    code = 'InternalError'

    def to_dict(self) -> dict:
        return {'error': 'Internal Server Error', 'code': self.code}


class ConditionFailed(Exception):
    """
    A conditional write was rejected by the store.

    Raised by store adapters only; the engine translates it into one of the
    caller-facing errors above. `reason` names the guard that failed:
    'row' for task updates, 'teacher' / 'task' / 'task_state' for timer writes,
    'closed' when a time log was already closed.
    """

    def __init__(self, reason: str = 'row'):
        super().__init__(f"Condition failed: {reason}")
        self.reason = reason
