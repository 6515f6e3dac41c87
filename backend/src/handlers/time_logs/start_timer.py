"""
Start Timer Handler.
POST /time-logs/start
Body (optional): { "taskId": "..." }  -- only an accepted task assigned to the caller
Teacher only; fails with 409 if the teacher already has an active timer.
"""
from taskhub.auth import get_caller
from taskhub.errors import TaskHubError
from taskhub.logging import logger, log_event
from taskhub.store import get_store
from taskhub.timer import TimerCoordinator
from taskhub.utils import error_response, format_response, parse_body
from taskhub.views import ViewResolver


def handler(event, context):
    log_event(event)

    try:
        user_id, role = get_caller(event)
        body = parse_body(event)

        store = get_store()
        timer = TimerCoordinator(store)
        time_log = timer.start_explicit(user_id, role, task_id=body.get('taskId'))

        return format_response(201, {
            'message': 'Timer started successfully.',
            'timeLog': ViewResolver(store).time_log_view(time_log)
        })

    except TaskHubError as e:
        logger.warning(f"Start timer rejected: {e.message}")
        return error_response(e)
    except Exception as e:
        logger.exception(f"Error starting timer: {e}")
        return format_response(500, {'error': 'Internal Server Error'})
