"""
List Tasks Handler.
GET /tasks
Admins see every task; teachers see their own tasks plus unassigned ones they can claim.
"""
from taskhub.auth import get_caller
from taskhub.errors import TaskHubError
from taskhub.lifecycle import TaskLifecycleManager
from taskhub.logging import logger, log_event
from taskhub.store import get_store
from taskhub.utils import error_response, format_response
from taskhub.views import ViewResolver


def handler(event, context):
    log_event(event)

    try:
        user_id, role = get_caller(event)

        store = get_store()
        manager = TaskLifecycleManager(store)
        tasks = manager.list_tasks(user_id, role)
        views = ViewResolver(store)

        return format_response(200, {
            'tasks': [views.task_view(t) for t in tasks],
            'totalTasks': len(tasks)
        })

    except TaskHubError as e:
        logger.warning(f"List tasks rejected: {e.message}")
        return error_response(e)
    except Exception as e:
        logger.exception(f"Error listing tasks: {e}")
        return format_response(500, {'error': 'Internal Server Error'})
