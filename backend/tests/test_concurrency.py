"""
Race tests against the in-memory store: threads released together by a
barrier hit the same conditional writes the Lambdas would.
"""
import threading

import pytest

from conftest import USERS
from taskhub.errors import Conflict, TaskHubError
from taskhub.lifecycle import TaskLifecycleManager
from taskhub.memory_store import MemoryStore
from taskhub.models import TaskStatus
from taskhub.timer import TimerCoordinator


def run_together(callables):
    """Run each callable on its own thread, all released at once. Returns (results, errors)."""
    barrier = threading.Barrier(len(callables))
    results, errors = [], []
    lock = threading.Lock()

    def worker(fn):
        barrier.wait()
        try:
            result = fn()
            with lock:
                results.append(result)
        except TaskHubError as e:
            with lock:
                errors.append(e)

    threads = [threading.Thread(target=worker, args=(fn,)) for fn in callables]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)
    return results, errors


@pytest.fixture()
def crowded_store():
    users = list(USERS) + [
        {'userId': f'teacher-{n}', 'name': f'Teacher {n}', 'role': 'teacher'} for n in range(3, 9)
    ]
    return MemoryStore(users=users)


@pytest.mark.parametrize('rounds', range(5))
def test_claim_race_has_one_winner(crowded_store, rounds):
    manager = TaskLifecycleManager(crowded_store)
    task = manager.create_task('admin-1', 'admin', 'Unassigned task')
    teachers = [f'teacher-{n}' for n in range(1, 9)]

    results, errors = run_together([
        (lambda t=teacher: manager.claim_task(task['taskId'], t, 'teacher')) for teacher in teachers
    ])

    assert len(results) == 1
    assert len(errors) == len(teachers) - 1
    assert all(isinstance(e, Conflict) for e in errors)

    winner = results[0]['assignedTo']
    stored = crowded_store.get_task(task['taskId'])
    assert stored['assignedTo'] == winner
    assert stored['status'] == TaskStatus.ACCEPTED

    active = crowded_store.get_active_time_log_for_task(task['taskId'])
    assert active['teacherId'] == winner
    assert len(crowded_store.list_time_logs()) == 1


@pytest.mark.parametrize('rounds', range(5))
def test_concurrent_starts_by_one_teacher(store, rounds):
    timer = TimerCoordinator(store)

    results, errors = run_together([
        (lambda: timer.start_explicit('teacher-1', 'teacher')) for _ in range(8)
    ])

    assert len(results) == 1
    assert len(errors) == 7
    assert all(isinstance(e, Conflict) for e in errors)
    assert store.get_active_time_log('teacher-1')['timeLogId'] == results[0]['timeLogId']
    assert len(store.list_time_logs(teacher_id='teacher-1')) == 1


def test_concurrent_stop_closes_once(store):
    timer = TimerCoordinator(store)
    timer.start_explicit('teacher-1', 'teacher')

    results, errors = run_together([
        (lambda: timer.stop_explicit('teacher-1', 'teacher')) for _ in range(4)
    ])

    assert len(results) == 1
    assert len(errors) == 3
    assert store.get_active_time_log('teacher-1') is None


def test_completion_racing_explicit_stop(store):
    manager = TaskLifecycleManager(store)
    task = manager.create_task('admin-1', 'admin', 'Grade essays', assigned_to='teacher-1')
    manager.claim_task(task['taskId'], 'teacher-1', 'teacher')

    results, errors = run_together([
        lambda: manager.update_task_status(task['taskId'], 'teacher-1', 'teacher', TaskStatus.COMPLETED),
        lambda: manager.timer.stop_explicit('teacher-1', 'teacher'),
    ])

    # The completion always succeeds; the explicit stop may lose the close
    assert len(results) + len(errors) == 2
    assert store.get_task(task['taskId'])['status'] == TaskStatus.COMPLETED
    assert store.get_active_time_log('teacher-1') is None
    assert store.get_active_time_log_for_task(task['taskId']) is None
    closed = [log for log in store.list_time_logs() if log.get('endTime')]
    assert len(closed) == 1
