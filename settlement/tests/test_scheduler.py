"""
Settlement - T+1 Scheduler Tests

Test Coverage:
1. NextFireTimeTestCase - next occurrence of the configured time
2. T1SchedulerTestCase - arming, disabling, re-arming, firing, single-run guard
3. SchedulerThreadTestCase - background thread lifecycle
4. EntryPointTestCase - management command and Celery task
"""
from datetime import datetime, timedelta
from io import StringIO
from unittest.mock import Mock, patch
import threading
import pytz
from django.core.management import call_command
from django.test import TestCase, SimpleTestCase

from settlement.models import CronSettings
from settlement.services.scheduler import (
    T1Scheduler,
    RunGuard,
    next_fire_time,
    ALREADY_RUNNING_MESSAGE,
)
from settlement.services.sweep_service import RunResult
from settlement.constants import (
    SCHEDULER_STATE_IDLE,
    SCHEDULER_STATE_SCHEDULED,
    SCHEDULER_STATE_RUNNING,
    RUN_STATUS_SUCCESS,
)
from settlement.tasks import run_t1_settlement_task


KOLKATA = pytz.timezone('Asia/Kolkata')


def kolkata_time(hour, minute, second=0, day=10):
    return KOLKATA.localize(datetime(2024, 5, day, hour, minute, second))


def successful_sweep():
    sweep = Mock()
    sweep.run.return_value = RunResult(
        started=True,
        message="Settled 1 transaction(s) in 1 batch(es), 0 failed, 0 paused retailer(s) skipped",
        processed=1,
        status=RUN_STATUS_SUCCESS,
        batches=1
    )
    return sweep


class NextFireTimeTestCase(SimpleTestCase):
    """Test case for next_fire_time"""

    def test_later_today(self):
        fire = next_fire_time(7, 0, 'Asia/Kolkata', kolkata_time(6, 30))

        self.assertEqual(fire, kolkata_time(7, 0))

    def test_tomorrow_when_time_has_passed(self):
        fire = next_fire_time(7, 0, 'Asia/Kolkata', kolkata_time(8, 0))

        self.assertEqual(fire, kolkata_time(7, 0, day=11))

    def test_strictly_after_now(self):
        fire = next_fire_time(7, 0, 'Asia/Kolkata', kolkata_time(7, 0))

        self.assertEqual(fire, kolkata_time(7, 0, day=11))

    def test_now_in_other_timezone(self):
        # 00:00 UTC is 05:30 IST
        now = pytz.utc.localize(datetime(2024, 5, 10, 0, 0))

        fire = next_fire_time(7, 0, 'Asia/Kolkata', now)

        self.assertEqual(fire, kolkata_time(7, 0))
        self.assertEqual(fire - now, timedelta(hours=1, minutes=30))


class T1SchedulerTestCase(TestCase):
    """Test case for T1Scheduler arming and firing"""

    def setUp(self):
        self.cron_settings = CronSettings.objects.load()
        self.cron_settings.schedule_hour = 7
        self.cron_settings.schedule_minute = 0
        self.cron_settings.timezone = 'Asia/Kolkata'
        self.cron_settings.is_enabled = True
        self.cron_settings.save()
        self.sweep = successful_sweep()
        self.scheduler = T1Scheduler(sweep=self.sweep, poll_interval=60)

    def update_settings(self, **fields):
        for key, value in fields.items():
            setattr(self.cron_settings, key, value)
        self.cron_settings.save()

    def test_starts_idle(self):
        self.assertEqual(self.scheduler.state, SCHEDULER_STATE_IDLE)

    def test_sync_arms_timer(self):
        fire = self.scheduler.sync_schedule(kolkata_time(6, 0))

        self.assertEqual(fire, kolkata_time(7, 0))
        self.assertEqual(self.scheduler.state, SCHEDULER_STATE_SCHEDULED)

    def test_tick_before_fire_time_does_nothing(self):
        result = self.scheduler.tick(kolkata_time(6, 59))

        self.assertIsNone(result)
        self.sweep.run.assert_not_called()

    def test_tick_fires_and_rearms_for_next_day(self):
        self.scheduler.tick(kolkata_time(6, 59))

        result = self.scheduler.tick(kolkata_time(7, 0, 30))

        self.assertTrue(result.started)
        self.sweep.run.assert_called_once()
        self.assertEqual(self.scheduler.next_fire, kolkata_time(7, 0, day=11))
        self.assertEqual(self.scheduler.state, SCHEDULER_STATE_SCHEDULED)

    def test_fires_once_per_day(self):
        self.scheduler.tick(kolkata_time(6, 59))
        self.scheduler.tick(kolkata_time(7, 0, 30))
        self.scheduler.tick(kolkata_time(7, 1, 30))
        self.scheduler.tick(kolkata_time(23, 0))

        self.sweep.run.assert_called_once()

    def test_disabled_mid_day_never_fires(self):
        """Disabled at the scheduled minute: nothing runs, timer cancelled"""
        self.scheduler.tick(kolkata_time(6, 59))
        self.update_settings(is_enabled=False)

        result = self.scheduler.tick(kolkata_time(7, 0))

        self.assertIsNone(result)
        self.sweep.run.assert_not_called()
        self.assertIsNone(self.scheduler.next_fire)
        self.assertEqual(self.scheduler.state, SCHEDULER_STATE_IDLE)

    def test_reenabled_arms_on_next_poll_without_restart(self):
        self.update_settings(is_enabled=False, schedule_minute=1)
        self.scheduler.tick(kolkata_time(7, 0))
        self.assertEqual(self.scheduler.state, SCHEDULER_STATE_IDLE)

        self.update_settings(is_enabled=True)
        self.scheduler.tick(kolkata_time(7, 0, 30))

        self.assertEqual(self.scheduler.state, SCHEDULER_STATE_SCHEDULED)
        self.assertEqual(self.scheduler.next_fire, kolkata_time(7, 1))

        self.scheduler.tick(kolkata_time(7, 1))
        self.sweep.run.assert_called_once()

    def test_schedule_change_rearms(self):
        self.scheduler.tick(kolkata_time(6, 0))
        self.update_settings(schedule_hour=9, schedule_minute=30)

        self.scheduler.tick(kolkata_time(6, 1))

        self.assertEqual(self.scheduler.next_fire, kolkata_time(9, 30))
        self.assertEqual(self.scheduler.armed_key, (9, 30, 'Asia/Kolkata'))

    def test_timezone_change_rearms(self):
        self.scheduler.tick(kolkata_time(6, 0))
        self.update_settings(timezone='UTC')

        self.scheduler.tick(kolkata_time(6, 1))

        self.assertEqual(self.scheduler.next_fire, pytz.utc.localize(datetime(2024, 5, 10, 7, 0)))

    def test_trigger_while_running_is_rejected(self):
        self.assertTrue(self.scheduler.guard.try_acquire())
        try:
            self.assertEqual(self.scheduler.state, SCHEDULER_STATE_RUNNING)
            result = self.scheduler.trigger(source='test')
        finally:
            self.scheduler.guard.release()

        self.assertFalse(result.started)
        self.assertEqual(result.message, ALREADY_RUNNING_MESSAGE)
        self.sweep.run.assert_not_called()

    def test_guard_released_after_failed_run(self):
        self.sweep.run.side_effect = RuntimeError('boom')

        with self.assertRaises(RuntimeError):
            self.scheduler.trigger()

        self.assertFalse(self.scheduler.guard.is_running)

    def test_manual_trigger_while_scheduled_run_in_progress(self):
        """A manual run started while the sweep is running gets the busy result"""
        results = []

        def run_with_nested_trigger():
            results.append(self.scheduler.trigger(source='manual'))
            return RunResult(started=True, message='done', status=RUN_STATUS_SUCCESS)

        self.sweep.run.side_effect = run_with_nested_trigger

        outer = self.scheduler.trigger(source='schedule')

        self.assertTrue(outer.started)
        self.assertFalse(results[0].started)
        self.assertEqual(self.sweep.run.call_count, 1)

    def test_seconds_until_next_check(self):
        self.assertEqual(self.scheduler.seconds_until_next_check(kolkata_time(6, 0)), 60)

        self.scheduler.sync_schedule(kolkata_time(6, 59, 30))

        self.assertEqual(self.scheduler.seconds_until_next_check(kolkata_time(6, 59, 30)), 30)
        self.assertEqual(self.scheduler.seconds_until_next_check(kolkata_time(7, 0, 30)), 1)


class RunGuardTestCase(SimpleTestCase):
    """Test case for RunGuard"""

    def test_single_holder(self):
        guard = RunGuard()

        self.assertTrue(guard.try_acquire())
        self.assertFalse(guard.try_acquire())
        self.assertTrue(guard.is_running)

        guard.release()

        self.assertFalse(guard.is_running)
        self.assertTrue(guard.try_acquire())

    def test_single_holder_across_threads(self):
        guard = RunGuard()
        guard.try_acquire()
        acquired = []

        worker = threading.Thread(target=lambda: acquired.append(guard.try_acquire()))
        worker.start()
        worker.join()

        self.assertEqual(acquired, [False])


class SchedulerThreadTestCase(SimpleTestCase):
    """Test case for the background thread lifecycle"""

    def test_start_and_stop(self):
        scheduler = T1Scheduler(sweep=Mock(), poll_interval=3600)
        scheduler.tick = Mock(return_value=None)

        self.assertTrue(scheduler.start())
        self.assertFalse(scheduler.start())
        self.assertTrue(scheduler.is_alive)

        scheduler.stop(timeout=5)

        self.assertFalse(scheduler.is_alive)

    def test_tick_errors_do_not_stop_loop(self):
        scheduler = T1Scheduler(sweep=Mock(), poll_interval=3600)
        scheduler.tick = Mock(side_effect=RuntimeError('db down'))

        scheduler.start()
        scheduler.stop(timeout=5)

        self.assertFalse(scheduler.is_alive)


class EntryPointTestCase(SimpleTestCase):
    """Test case for the management command and the Celery task"""

    def setUp(self):
        self.scheduler = Mock()
        self.scheduler.trigger.return_value = RunResult(
            started=True,
            message="No eligible transactions to settle",
            status=RUN_STATUS_SUCCESS
        )

    def test_command_runs_sweep(self):
        out = StringIO()

        with patch('settlement.management.commands.run_t1_settlement.get_scheduler', return_value=self.scheduler):
            call_command('run_t1_settlement', stdout=out)

        self.scheduler.trigger.assert_called_once_with(source='command')
        self.assertIn('No eligible transactions to settle', out.getvalue())

    def test_command_reports_busy(self):
        self.scheduler.trigger.return_value = RunResult(started=False, message=ALREADY_RUNNING_MESSAGE)
        out = StringIO()

        with patch('settlement.management.commands.run_t1_settlement.get_scheduler', return_value=self.scheduler):
            call_command('run_t1_settlement', stdout=out)

        self.assertIn(ALREADY_RUNNING_MESSAGE, out.getvalue())

    def test_task_returns_result(self):
        with patch('settlement.tasks.get_scheduler', return_value=self.scheduler):
            result = run_t1_settlement_task('beat')

        self.scheduler.trigger.assert_called_once_with(source='beat')
        self.assertTrue(result['started'])
        self.assertEqual(result['status'], RUN_STATUS_SUCCESS)
