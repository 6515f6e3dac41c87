"""
Delete Task Handler.
DELETE /tasks/{taskId}
Admin only. Time logs recorded against the task are kept.
"""
from taskhub.auth import get_caller
from taskhub.errors import TaskHubError
from taskhub.lifecycle import TaskLifecycleManager
from taskhub.logging import logger, log_event
from taskhub.store import get_store
from taskhub.utils import error_response, format_response, require_path_param


def handler(event, context):
    log_event(event)

    try:
        _, role = get_caller(event)
        task_id = require_path_param(event, 'taskId')

        manager = TaskLifecycleManager(get_store())
        manager.delete_task(task_id, role)

        return format_response(200, {'message': 'Task deleted successfully.'})

    except TaskHubError as e:
        logger.warning(f"Delete task rejected: {e.message}")
        return error_response(e)
    except Exception as e:
        logger.exception(f"Error deleting task: {e}")
        return format_response(500, {'error': 'Internal Server Error'})
