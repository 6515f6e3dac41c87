"""
Tests for timer coordination: explicit start/stop, completion stop,
duration arithmetic and history queries.
"""
import pytest

from taskhub.errors import Conflict, Forbidden, InvalidTask, NoActiveTimer, ValidationError
from taskhub.models import duration_minutes, to_timestamp
from taskhub.timer import date_bounds


def accepted_task(manager, teacher='teacher-1'):
    task = manager.create_task('admin-1', 'admin', 'Lesson plan', assigned_to=teacher)
    manager.claim_task(task['taskId'], teacher, 'teacher')
    return task


class TestDuration:

    @pytest.mark.parametrize('seconds,expected', [
        (0, 0),
        (59, 0),
        (60, 1),
        (125, 2),
        (3599, 59),
        (7200, 120),
    ])
    def test_floor_of_elapsed_minutes(self, clock, seconds, expected):
        start = to_timestamp(clock())
        clock.advance(seconds)
        assert duration_minutes(start, clock()) == expected

    def test_clock_skew_never_negative(self, clock):
        start = to_timestamp(clock())
        clock.advance(-30)
        assert duration_minutes(start, clock()) == 0


class TestStartExplicit:

    def test_free_floating_timer(self, timer, store):
        time_log = timer.start_explicit('teacher-1', 'teacher')

        assert time_log['teacherId'] == 'teacher-1'
        assert 'taskId' not in time_log
        assert 'endTime' not in time_log
        assert store.get_active_time_log('teacher-1')['timeLogId'] == time_log['timeLogId']

    def test_second_start_conflicts(self, timer):
        timer.start_explicit('teacher-1', 'teacher')
        with pytest.raises(Conflict):
            timer.start_explicit('teacher-1', 'teacher')

    def test_other_teachers_are_independent(self, timer):
        timer.start_explicit('teacher-1', 'teacher')
        assert timer.start_explicit('teacher-2', 'teacher')['teacherId'] == 'teacher-2'

    def test_timer_on_own_accepted_task(self, manager, timer):
        task = accepted_task(manager)
        timer.stop_explicit('teacher-1', 'teacher')

        time_log = timer.start_explicit('teacher-1', 'teacher', task_id=task['taskId'])

        assert time_log['taskId'] == task['taskId']

    def test_pending_task_cannot_be_timed(self, manager, timer):
        task = manager.create_task('admin-1', 'admin', 'Lesson plan', assigned_to='teacher-1')
        with pytest.raises(InvalidTask):
            timer.start_explicit('teacher-1', 'teacher', task_id=task['taskId'])

    def test_other_teachers_task_cannot_be_timed(self, manager, timer):
        task = accepted_task(manager, teacher='teacher-2')
        with pytest.raises(InvalidTask):
            timer.start_explicit('teacher-1', 'teacher', task_id=task['taskId'])

    def test_missing_task_cannot_be_timed(self, timer):
        with pytest.raises(InvalidTask):
            timer.start_explicit('teacher-1', 'teacher', task_id='missing')

    @pytest.mark.parametrize('task_id', [5, '', ['task-1'], {'id': 'task-1'}])
    def test_task_id_must_be_a_string(self, timer, store, task_id):
        with pytest.raises(ValidationError):
            timer.start_explicit('teacher-1', 'teacher', task_id=task_id)
        assert store.get_active_time_log('teacher-1') is None

    def test_stale_ownership_read_is_caught_by_guarded_write(self, manager, timer, store, monkeypatch):
        task = accepted_task(manager)
        timer.stop_explicit('teacher-1', 'teacher')
        stale = store.get_task(task['taskId'])
        manager.update_task_fields(task['taskId'], 'admin', {'assignedTo': 'teacher-2'})

        monkeypatch.setattr(store, 'get_task', lambda task_id: dict(stale))
        with pytest.raises(InvalidTask):
            timer.start_explicit('teacher-1', 'teacher', task_id=task['taskId'])
        monkeypatch.undo()

        assert store.get_active_time_log('teacher-1') is None

    def test_admin_cannot_start(self, timer):
        with pytest.raises(Forbidden):
            timer.start_explicit('admin-1', 'admin')


class TestStartImplicit:

    def test_noop_when_task_already_timed(self, manager, timer, store):
        task = accepted_task(manager)
        existing = store.get_active_time_log_for_task(task['taskId'])

        result = timer.start_implicit('teacher-1', task['taskId'])

        assert result['timeLogId'] == existing['timeLogId']
        assert len(store.list_time_logs(teacher_id='teacher-1')) == 1

    def test_never_raises_conflict(self, timer, store):
        timer.start_explicit('teacher-1', 'teacher')

        result = timer.start_implicit('teacher-1', 'task-x')

        assert result['taskId'] == 'task-x'
        assert store.get_active_time_log('teacher-1')['taskId'] == 'task-x'


class TestStop:

    def test_stop_records_duration(self, timer, clock):
        timer.start_explicit('teacher-1', 'teacher')
        clock.advance(45 * 60 + 59)

        stopped = timer.stop_explicit('teacher-1', 'teacher')

        assert stopped['durationMinutes'] == 45
        assert stopped['endTime'] == to_timestamp(clock())
        assert timer.get_active('teacher-1', 'teacher') is None

    def test_under_a_minute_is_zero(self, timer, clock):
        timer.start_explicit('teacher-1', 'teacher')
        clock.advance(30)
        assert timer.stop_explicit('teacher-1', 'teacher')['durationMinutes'] == 0

    def test_stop_without_timer(self, timer):
        with pytest.raises(NoActiveTimer):
            timer.stop_explicit('teacher-1', 'teacher')

    def test_stop_lost_to_concurrent_stop(self, timer, store, monkeypatch):
        timer.start_explicit('teacher-1', 'teacher')
        active = store.get_active_time_log('teacher-1')
        timer.stop_explicit('teacher-1', 'teacher')

        monkeypatch.setattr(store, 'get_active_time_log', lambda teacher_id: dict(active))
        with pytest.raises(NoActiveTimer):
            timer.stop_explicit('teacher-1', 'teacher')

    def test_stopped_log_is_history(self, timer, store):
        started = timer.start_explicit('teacher-1', 'teacher')
        stopped = timer.stop_explicit('teacher-1', 'teacher')

        assert store.get_time_log(started['timeLogId']) == stopped

    def test_stop_for_task_completion_without_timer(self, timer):
        assert timer.stop_for_task_completion('task-x') is None

    def test_stop_for_task_completion(self, manager, timer, clock):
        task = accepted_task(manager)
        clock.advance(125)

        stopped = timer.stop_for_task_completion(task['taskId'])

        assert stopped['durationMinutes'] == 2
        assert timer.get_active('teacher-1', 'teacher') is None


class TestGetActive:

    def test_none_when_idle(self, timer):
        assert timer.get_active('teacher-1', 'teacher') is None

    def test_returns_running_timer(self, timer):
        started = timer.start_explicit('teacher-1', 'teacher')
        assert timer.get_active('teacher-1', 'teacher')['timeLogId'] == started['timeLogId']

    def test_teacher_only(self, timer):
        with pytest.raises(Forbidden):
            timer.get_active('admin-1', 'admin')


class TestListTimeLogs:

    def seed(self, timer, clock):
        # One closed log per day, March 4th to 6th, for both teachers
        for _ in range(3):
            for teacher in ('teacher-1', 'teacher-2'):
                timer.start_explicit(teacher, 'teacher')
                clock.advance(600)
                timer.stop_explicit(teacher, 'teacher')
            clock.advance(24 * 3600 - 1200)

    def test_teacher_sees_only_own_logs_newest_first(self, timer, clock):
        self.seed(timer, clock)

        logs = timer.list_time_logs('teacher-1', 'teacher', teacher_id='teacher-2')

        assert len(logs) == 3
        assert {log['teacherId'] for log in logs} == {'teacher-1'}
        assert [log['startTime'][:10] for log in logs] == ['2024-03-06', '2024-03-05', '2024-03-04']

    def test_admin_sees_all_or_filters(self, timer, clock):
        self.seed(timer, clock)

        assert len(timer.list_time_logs('admin-1', 'admin')) == 6
        filtered = timer.list_time_logs('admin-1', 'admin', teacher_id='teacher-2')
        assert {log['teacherId'] for log in filtered} == {'teacher-2'}

    def test_date_range_is_inclusive(self, timer, clock):
        self.seed(timer, clock)

        logs = timer.list_time_logs('admin-1', 'admin', start_date='2024-03-05', end_date='2024-03-05')
        assert len(logs) == 2
        assert {log['startTime'][:10] for log in logs} == {'2024-03-05'}

        assert len(timer.list_for_worker('teacher-1', start_date='2024-03-05')) == 2
        assert len(timer.list_all(end_date='2024-03-04')) == 2

    def test_last_representable_end_date(self, timer, clock):
        self.seed(timer, clock)

        logs = timer.list_time_logs('teacher-1', 'teacher', end_date='9999-12-31')
        assert len(logs) == 3

        logs = timer.list_time_logs('admin-1', 'admin', start_date='2024-03-06', end_date='9999-12-31')
        assert len(logs) == 2

    def test_invalid_dates(self, timer):
        with pytest.raises(ValidationError):
            timer.list_time_logs('admin-1', 'admin', start_date='04/03/2024')
        with pytest.raises(ValidationError):
            timer.list_time_logs('admin-1', 'admin', start_date='2024-03-06', end_date='2024-03-05')


def test_date_bounds():
    start, end = date_bounds('2024-03-05', '2024-03-05')
    assert start == '2024-03-05T00:00:00.000000+00:00'
    assert end == '2024-03-06T00:00:00.000000+00:00'
    assert date_bounds() == (None, None)
    assert date_bounds(end_date='9999-12-31') == (None, None)
