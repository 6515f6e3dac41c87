"""
List Time Logs Handler.
GET /time-logs?startDate=YYYY-MM-DD&endDate=YYYY-MM-DD&teacherId=...
  - Admin: all logs, optionally for one teacher
  - Teacher: own logs only (teacherId is ignored)
Dates are inclusive and apply to the log's start time.
"""
from taskhub.auth import get_caller
from taskhub.errors import TaskHubError
from taskhub.logging import logger, log_event
from taskhub.models import Role
from taskhub.store import get_store
from taskhub.timer import TimerCoordinator
from taskhub.utils import error_response, format_response, get_query_param
from taskhub.views import ViewResolver


def handler(event, context):
    log_event(event)

    try:
        user_id, role = get_caller(event)

        store = get_store()
        timer = TimerCoordinator(store)
        time_logs = timer.list_time_logs(
            user_id,
            role,
            start_date=get_query_param(event, 'startDate'),
            end_date=get_query_param(event, 'endDate'),
            teacher_id=get_query_param(event, 'teacherId')
        )

        # Teacher name and email only matter on the admin view of everyone's logs
        views = ViewResolver(store)
        include_teacher = role == Role.ADMIN

        return format_response(200, {
            'timeLogs': [views.time_log_view(t, include_teacher=include_teacher) for t in time_logs],
            'totalLogs': len(time_logs)
        })

    except TaskHubError as e:
        logger.warning(f"List time logs rejected: {e.message}")
        return error_response(e)
    except Exception as e:
        logger.exception(f"Error listing time logs: {e}")
        return format_response(500, {'error': 'Internal Server Error'})
