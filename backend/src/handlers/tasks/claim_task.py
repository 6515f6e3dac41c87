"""
Claim Task Handler.
POST /tasks/{taskId}/accept
A teacher claims a pending task (unassigned or already assigned to them).
The task moves to 'accepted' and its timer starts.
"""
from taskhub.auth import get_caller
from taskhub.errors import TaskHubError
from taskhub.lifecycle import TaskLifecycleManager
from taskhub.logging import logger, log_event
from taskhub.store import get_store
from taskhub.utils import error_response, format_response, require_path_param
from taskhub.views import ViewResolver


def handler(event, context):
    log_event(event)

    try:
        user_id, role = get_caller(event)
        task_id = require_path_param(event, 'taskId')

        store = get_store()
        manager = TaskLifecycleManager(store)
        task = manager.claim_task(task_id, user_id, role)
        views = ViewResolver(store)

        return format_response(200, {
            'message': 'Task accepted successfully.',
            'task': views.task_view(task),
            'activeTimer': views.time_log_view(store.get_active_time_log_for_task(task_id))
        })

    except TaskHubError as e:
        # 409 here usually means another teacher won the race for the task
        logger.warning(f"Claim task rejected: {e.message}")
        return error_response(e)
    except Exception as e:
        logger.exception(f"Error claiming task: {e}")
        return format_response(500, {'error': 'Internal Server Error'})
