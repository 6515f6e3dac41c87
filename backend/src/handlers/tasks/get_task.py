"""
Get Task Handler.
GET /tasks/{taskId}
Teachers can only read tasks assigned to them or still unassigned.
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
        task = manager.get_task(task_id, user_id, role)

        return format_response(200, {'task': ViewResolver(store).task_view(task)})

    except TaskHubError as e:
        logger.warning(f"Get task rejected: {e.message}")
        return error_response(e)
    except Exception as e:
        logger.exception(f"Error getting task: {e}")
        return format_response(500, {'error': 'Internal Server Error'})
