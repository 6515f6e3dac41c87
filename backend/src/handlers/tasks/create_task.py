"""
Create Task Handler.
POST /tasks
Body: { "title": "...", "description": "...", "assignedTo": "<teacher sub>" }
Admin only.
"""
from taskhub.auth import get_caller
from taskhub.errors import TaskHubError
from taskhub.lifecycle import TaskLifecycleManager
from taskhub.logging import logger, log_event
from taskhub.store import get_store
from taskhub.utils import error_response, format_response, parse_body
from taskhub.views import ViewResolver


def handler(event, context):
    log_event(event)

    try:
        user_id, role = get_caller(event)
        body = parse_body(event)

        store = get_store()
        manager = TaskLifecycleManager(store)
        task = manager.create_task(
            caller_id=user_id,
            caller_role=role,
            title=body.get('title'),
            description=body.get('description'),
            assigned_to=body.get('assignedTo')
        )

        return format_response(201, {
            'message': 'Task created successfully.',
            'task': ViewResolver(store).task_view(task)
        })

    except TaskHubError as e:
        logger.warning(f"Create task rejected: {e.message}")
        return error_response(e)
    except Exception as e:
        logger.exception(f"Error creating task: {e}")
        return format_response(500, {'error': 'Internal Server Error'})
