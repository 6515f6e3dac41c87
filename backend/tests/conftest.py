"""
Shared fixtures: an in-memory store seeded with users, a controllable clock,
and a builder for API Gateway events carrying Cognito claims.
"""
import datetime
import json
import os
import sys

import pytest

# Add src to path for import
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from taskhub.lifecycle import TaskLifecycleManager  # noqa: E402
from taskhub.memory_store import MemoryStore  # noqa: E402
from taskhub.timer import TimerCoordinator  # noqa: E402

T0 = datetime.datetime(2024, 3, 4, 9, 0, 0, tzinfo=datetime.timezone.utc)

USERS = [
    {'userId': 'admin-1', 'name': 'Ada Admin', 'email': 'ada@example.com', 'role': 'admin'},
    {'userId': 'teacher-1', 'name': 'Tom Teacher', 'email': 'tom@example.com', 'role': 'teacher'},
    {'userId': 'teacher-2', 'name': 'Bea Teacher', 'email': 'bea@example.com', 'role': 'teacher'},
]


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime.datetime = T0):
        self.now = start

    def __call__(self) -> datetime.datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += datetime.timedelta(seconds=seconds)


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def store():
    return MemoryStore(users=USERS)


@pytest.fixture()
def timer(store, clock):
    return TimerCoordinator(store, clock)


@pytest.fixture()
def manager(store, timer, clock):
    return TaskLifecycleManager(store, timer, clock)


@pytest.fixture()
def api_event():
    """Build an API Gateway proxy event for a Cognito-authenticated caller."""

    def build(user_id='teacher-1', groups='teacher', body=None, path=None, query=None):
        event = {
            'requestContext': {
                'authorizer': {
                    'claims': {'sub': user_id, 'cognito:groups': groups}
                }
            },
            'headers': {'Authorization': 'Bearer secret-token'},
            'pathParameters': path,
            'queryStringParameters': query,
        }
        if user_id is None:
            event['requestContext'] = {}
        if body is not None:
            event['body'] = json.dumps(body)
        return event

    return build
