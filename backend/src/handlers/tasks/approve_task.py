"""
Approve Task Handler.
POST /tasks/{taskId}/approve
Body: { "approval": "approved" | "rejected" }
Admin only; the task must be completed.
"""
from taskhub.auth import get_caller
from taskhub.errors import TaskHubError
from taskhub.lifecycle import TaskLifecycleManager
from taskhub.logging import logger, log_event
from taskhub.store import get_store
from taskhub.utils import error_response, format_response, parse_body, require_path_param
from taskhub.views import ViewResolver


def handler(event, context):
    log_event(event)

    try:
        _, role = get_caller(event)
        task_id = require_path_param(event, 'taskId')
        body = parse_body(event)
        decision = body.get('approval')

        store = get_store()
        manager = TaskLifecycleManager(store)
        task = manager.approve_task(task_id, role, decision)

        return format_response(200, {
            'message': f'Task {decision} successfully.',
            'task': ViewResolver(store).task_view(task)
        })

    except TaskHubError as e:
        logger.warning(f"Approve task rejected: {e.message}")
        return error_response(e)
    except Exception as e:
        logger.exception(f"Error approving task: {e}")
        return format_response(500, {'error': 'Internal Server Error'})
