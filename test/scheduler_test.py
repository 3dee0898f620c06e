from datetime import datetime, timedelta, timezone

import pytest

from imtahan_push.scheduler import CronParseError, Scheduler


class RecordingTask:
    name = 'recording_task'

    def __init__(self, fail=False):
        self.fail = fail
        self.calls = []

    def run(self, clock, firestore_db):
        self.calls.append((clock(), firestore_db))
        if self.fail:
            raise RuntimeError('commit aborted')
        return 'done'


def test_job_is_scheduled_for_the_next_cron_tick(fake_db, clock):
    scheduler = Scheduler(fake_db, timezone='UTC', clock=clock)

    job = scheduler.add_job(RecordingTask(), '0 2 * * *')

    assert job.next_run == datetime(2026, 10, 19, 2, 0, tzinfo=timezone.utc)


def test_run_pending_runs_due_jobs_and_reschedules(fake_db, clock):
    scheduler = Scheduler(fake_db, timezone='UTC', clock=clock)
    task = RecordingTask()
    job = scheduler.add_job(task, '0 2 * * *')

    assert scheduler.run_pending() == {}
    assert task.calls == []

    clock.now = datetime(2026, 10, 19, 2, 0, 5, tzinfo=timezone.utc)
    assert scheduler.run_pending() == {'recording_task': 'done'}
    assert task.calls == [(clock.now, fake_db)]
    assert job.next_run == datetime(2026, 10, 20, 2, 0, tzinfo=timezone.utc)


def test_failing_job_is_logged_not_raised(fake_db, clock):
    scheduler = Scheduler(fake_db, timezone='UTC', clock=clock)
    job = scheduler.add_job(RecordingTask(fail=True), '0 3 * * *')
    clock.now = job.next_run + timedelta(seconds=1)

    assert scheduler.run_pending() == {'recording_task': None}
    assert job.next_run > clock.now


def test_schedule_follows_the_configured_timezone(fake_db, clock):
    scheduler = Scheduler(fake_db, timezone='Asia/Baku', clock=clock)

    job = scheduler.add_job(RecordingTask(), '0 3 * * *')

    # 03:00 in Baku (UTC+4)
    assert job.next_run.astimezone(timezone.utc) == datetime(2026, 10, 18, 23, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize('cron', ['not a cron', '0 2 * *', '61 2 * * *'])
def test_invalid_cron_is_rejected(fake_db, clock, cron):
    scheduler = Scheduler(fake_db, clock=clock)

    with pytest.raises(CronParseError):
        scheduler.add_job(RecordingTask(), cron)


def test_sleep_is_bounded(fake_db, clock):
    scheduler = Scheduler(fake_db, clock=clock)
    scheduler.add_job(RecordingTask(), '0 2 * * *')

    assert scheduler.seconds_until_next_run() == 60


def test_stopped_scheduler_returns_without_running(fake_db, clock):
    scheduler = Scheduler(fake_db, clock=clock)
    task = RecordingTask()
    job = scheduler.add_job(task, '0 2 * * *')
    clock.now = job.next_run
    scheduler.stop()

    scheduler.run_forever()

    assert task.calls == []
