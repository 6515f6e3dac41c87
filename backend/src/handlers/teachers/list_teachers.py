"""
List Teachers Handler.
GET /teachers
Admin only. Used to pick an assignee when creating or reassigning tasks.
"""
from taskhub.auth import get_caller
from taskhub.errors import TaskHubError
from taskhub.logging import logger, log_event
from taskhub.store import get_store
from taskhub.teachers import list_teachers
from taskhub.utils import error_response, format_response


def handler(event, context):
    log_event(event)

    try:
        _, role = get_caller(event)
        teachers = list_teachers(get_store(), role)
        return format_response(200, {'teachers': teachers})

    except TaskHubError as e:
        logger.warning(f"List teachers rejected: {e.message}")
        return error_response(e)
    except Exception as e:
        logger.exception(f"Error listing teachers: {e}")
        return format_response(500, {'error': 'Internal Server Error'})
