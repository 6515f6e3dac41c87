"""
Stop Timer Handler.
POST /time-logs/stop
Closes the caller's active timer and records its duration in whole minutes.
Teacher only.
"""
from taskhub.auth import get_caller
from taskhub.errors import TaskHubError
from taskhub.logging import logger, log_event
from taskhub.store import get_store
from taskhub.timer import TimerCoordinator
from taskhub.utils import error_response, format_response
from taskhub.views import ViewResolver


def handler(event, context):
    log_event(event)

    try:
        user_id, role = get_caller(event)

        store = get_store()
        timer = TimerCoordinator(store)
        time_log = timer.stop_explicit(user_id, role)

        return format_response(200, {
            'message': 'Timer stopped successfully.',
            'timeLog': ViewResolver(store).time_log_view(time_log)
        })

    except TaskHubError as e:
        logger.warning(f"Stop timer rejected: {e.message}")
        return error_response(e)
    except Exception as e:
        logger.exception(f"Error stopping timer: {e}")
        return format_response(500, {'error': 'Internal Server Error'})
