"""
Settlement - T+1 Scheduler

Drives the T+1 sweep from a single background thread. The schedule is
re-read from CronSettings every poll interval, so enabling, disabling or
moving the run time takes effect without a restart.

States: idle (nothing armed) -> scheduled (next fire armed) -> running.
"""
import logging
import threading
from datetime import datetime, time, timedelta

import pytz
from django.db import close_old_connections
from django.utils import timezone

from settlement.models import CronSettings
from settlement.constants import (
    SCHEDULER_STATE_IDLE,
    SCHEDULER_STATE_SCHEDULED,
    SCHEDULER_STATE_RUNNING,
)
from settlement.services.sweep_service import T1SweepService, RunResult
from settlement.settings import get_settlement_setting


logger = logging.getLogger(__name__)

ALREADY_RUNNING_MESSAGE = "Settlement is already running"


def next_fire_time(hour, minute, tz_name, now):
    """
    Next occurrence of hour:minute in tz_name strictly after now

    Returns:
        datetime: Aware datetime
    """
    tz = pytz.timezone(tz_name)
    local_now = now.astimezone(tz)
    candidate = tz.localize(datetime.combine(local_now.date(), time(hour, minute)))
    if candidate <= local_now:
        candidate = tz.localize(datetime.combine(local_now.date() + timedelta(days=1), time(hour, minute)))
    return candidate


class RunGuard:
    """Non-blocking single-run flag shared by scheduled and manual runs"""

    def __init__(self):
        self._lock = threading.Lock()

    def try_acquire(self):
        return self._lock.acquire(blocking=False)

    def release(self):
        self._lock.release()

    @property
    def is_running(self):
        return self._lock.locked()


class T1Scheduler:
    """
    Arms, fires and re-arms the daily T+1 sweep

    Args:
        sweep: T1SweepService instance (optional)
        guard: RunGuard instance (optional)
        poll_interval: Seconds between schedule reloads (optional)
    """

    def __init__(self, sweep=None, guard=None, poll_interval=None):
        self.sweep = sweep or T1SweepService()
        self.guard = guard or RunGuard()
        self.poll_interval = poll_interval or get_settlement_setting('POLL_INTERVAL')
        self.armed_key = None
        self.next_fire = None
        self._stop_event = threading.Event()
        self._thread = None

    def __repr__(self):
        return f"<T1Scheduler state={self.state} next_fire={self.next_fire}>"

    @property
    def state(self):
        if self.guard.is_running:
            return SCHEDULER_STATE_RUNNING
        if self.next_fire is not None:
            return SCHEDULER_STATE_SCHEDULED
        return SCHEDULER_STATE_IDLE

    # ==========================================
    # SCHEDULING
    # ==========================================

    def disarm(self):
        if self.next_fire is not None:
            logger.info("[T1-Scheduler] T+1 settlement disabled, timer cancelled")
        self.armed_key = None
        self.next_fire = None

    def sync_schedule(self, now=None):
        """
        Reload CronSettings and arm, re-arm or disarm the timer

        Returns:
            datetime: Next fire time, or None when disabled
        """
        now = now or timezone.now()
        cron_settings = CronSettings.objects.load()

        if not cron_settings.is_enabled:
            self.disarm()
            return None

        if cron_settings.schedule_key != self.armed_key or self.next_fire is None:
            hour, minute, tz_name = cron_settings.schedule_key
            self.next_fire = next_fire_time(hour, minute, tz_name, now)
            self.armed_key = cron_settings.schedule_key
            logger.info(
                f"[T1-Scheduler] Armed for {hour:02d}:{minute:02d} {tz_name}, "
                f"next run at {self.next_fire.isoformat()}"
            )
        return self.next_fire

    def tick(self, now=None):
        """
        Reload the schedule and fire the sweep if its time has come

        Returns:
            RunResult: When a run was attempted, otherwise None
        """
        now = now or timezone.now()
        self.sync_schedule(now)
        if self.next_fire is None or now < self.next_fire:
            return None

        result = self.trigger(source='schedule')

        hour, minute, tz_name = self.armed_key
        self.next_fire = next_fire_time(hour, minute, tz_name, now)
        logger.info(f"[T1-Scheduler] Re-armed, next run at {self.next_fire.isoformat()}")
        return result

    def trigger(self, source='manual'):
        """
        Run the sweep now unless one is already running

        Args:
            source: Who asked for the run, for logging

        Returns:
            RunResult
        """
        if not self.guard.try_acquire():
            logger.info(f"[T1-Scheduler] {source} trigger ignored, a run is in progress")
            return RunResult(started=False, message=ALREADY_RUNNING_MESSAGE)

        logger.info(f"[T1-Scheduler] Starting T+1 settlement ({source})")
        try:
            return self.sweep.run()
        finally:
            self.guard.release()

    # ==========================================
    # BACKGROUND THREAD
    # ==========================================

    def seconds_until_next_check(self, now=None):
        now = now or timezone.now()
        wait = self.poll_interval
        if self.next_fire is not None:
            wait = min(wait, (self.next_fire - now).total_seconds())
        return max(wait, 1)

    def _run_loop(self):
        logger.info(f"[T1-Scheduler] Started, polling every {self.poll_interval}s")
        while not self._stop_event.is_set():
            close_old_connections()
            try:
                self.tick()
            except Exception as e:
                logger.error(f"[T1-Scheduler] Tick failed: {str(e)}", exc_info=True)
            finally:
                close_old_connections()
            self._stop_event.wait(self.seconds_until_next_check())
        logger.info("[T1-Scheduler] Stopped")

    @property
    def is_alive(self):
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        """Start the scheduler thread if it is not running yet"""
        if self.is_alive:
            return False
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name='t1-settlement-scheduler',
            daemon=True
        )
        self._thread.start()
        return True

    def stop(self, timeout=None):
        """Signal the scheduler thread to stop and wait for it"""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
        self._thread = None
        self.disarm()

    def run_forever(self):
        """Run the loop in the calling thread until stop() is called"""
        self._stop_event.clear()
        self._run_loop()


_scheduler = None
_scheduler_lock = threading.Lock()


def get_scheduler():
    """The process-wide scheduler instance"""
    global _scheduler
    with _scheduler_lock:
        if _scheduler is None:
            _scheduler = T1Scheduler()
        return _scheduler
