"""
Update Task Handler.
PUT /tasks/{taskId}
  - Teacher: body { "status": "completed" } on a task assigned to them
  - Admin: any of title, description, assignedTo, status
Moving a task to 'completed' stops its timer.
"""
from taskhub.auth import get_caller
from taskhub.errors import Forbidden, TaskHubError, ValidationError
from taskhub.lifecycle import TaskLifecycleManager
from taskhub.logging import logger, log_event
from taskhub.models import Role, UPDATABLE_TASK_FIELDS
from taskhub.store import get_store
from taskhub.utils import error_response, format_response, parse_body, require_path_param
from taskhub.views import ViewResolver


def handler(event, context):
    log_event(event)

    try:
        user_id, role = get_caller(event)
        task_id = require_path_param(event, 'taskId')
        body = parse_body(event)

        store = get_store()
        manager = TaskLifecycleManager(store)
        fields = {k: body[k] for k in UPDATABLE_TASK_FIELDS if k in body}

        if role == Role.ADMIN and set(fields) != {'status'}:
            task = manager.update_task_fields(task_id, role, fields)
        else:
            if 'status' not in fields:
                raise ValidationError('Status is required for teachers.')
            if set(fields) != {'status'}:
                raise Forbidden('Teachers can only change the status of a task.')
            task = manager.update_task_status(task_id, user_id, role, fields['status'])

        return format_response(200, {
            'message': 'Task updated successfully.',
            'task': ViewResolver(store).task_view(task)
        })

    except TaskHubError as e:
        logger.warning(f"Update task rejected: {e.message}")
        return error_response(e)
    except Exception as e:
        logger.exception(f"Error updating task: {e}")
        return format_response(500, {'error': 'Internal Server Error'})
