"""
Get Active Timer Handler.
GET /time-logs/active
Teacher only. Returns { "activeTimer": null } when nothing is running.
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
        active = TimerCoordinator(store).get_active(user_id, role)

        return format_response(200, {'activeTimer': ViewResolver(store).time_log_view(active)})

    except TaskHubError as e:
        logger.warning(f"Get active timer rejected: {e.message}")
        return error_response(e)
    except Exception as e:
        logger.exception(f"Error getting active timer: {e}")
        return format_response(500, {'error': 'Internal Server Error'})
