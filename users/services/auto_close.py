"""Deferred APPROVED -> CLOSED transitions, one job per ticket."""
import atexit
import logging
import threading
from datetime import timedelta

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.date import DateTrigger
from django.conf import settings
from django.db import close_old_connections
from django.utils import timezone


logger = logging.getLogger(__name__)


class AutoCloseScheduler:
    JOB_PREFIX = 'auto_close'

    def __init__(self, job, scheduler=None):
        self.job = job
        self.scheduler = scheduler or BackgroundScheduler(daemon=True, timezone='UTC')
        self._shutdown_registered = False
        self._start_lock = threading.Lock()

    @classmethod
    def job_id(cls, ticket_id):
        return f'{cls.JOB_PREFIX}:{ticket_id}'

    @property
    def delay_seconds(self):
        return getattr(settings, 'TICKET_AUTO_CLOSE_SECONDS', 30)

    def start(self):
        # Request threads may race to start the scheduler on first approval.
        with self._start_lock:
            if self.scheduler.running:
                return
            self.scheduler.start()
            if not self._shutdown_registered:
                atexit.register(self.shutdown)
                self._shutdown_registered = True
        logger.info('Auto-close scheduler started')

    def shutdown(self):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)

    def next_run_date(self):
        return timezone.now() + timedelta(seconds=self.delay_seconds)

    def schedule(self, ticket_id, run_date=None):
        if getattr(settings, 'TICKET_AUTO_CLOSE_AUTOSTART', True):
            self.start()

        # A stopped scheduler keeps jobs in a pending list without deduplication.
        self.cancel(ticket_id)

        run_date = run_date or self.next_run_date()
        self.scheduler.add_job(
            func=self._run,
            trigger=DateTrigger(run_date=run_date),
            args=[ticket_id],
            id=self.job_id(ticket_id),
            name=f'Auto close ticket #{ticket_id}',
            replace_existing=True,
            misfire_grace_time=None
        )
        logger.info('Ticket %s scheduled to auto-close at %s', ticket_id, run_date.isoformat())
        return run_date

    def _run(self, ticket_id):
        try:
            self.job(ticket_id)
        finally:
            close_old_connections()

    def cancel(self, ticket_id):
        try:
            self.scheduler.remove_job(self.job_id(ticket_id))
        except JobLookupError:
            return False
        logger.info('Auto-close cancelled for ticket %s', ticket_id)
        return True

    def is_scheduled(self, ticket_id):
        return self.scheduler.get_job(self.job_id(ticket_id)) is not None

    def run_date(self, ticket_id):
        job = self.scheduler.get_job(self.job_id(ticket_id))
        if job is None:
            return None
        return job.trigger.run_date

    def clear(self):
        for job in self.scheduler.get_jobs():
            if job.id.startswith(f'{self.JOB_PREFIX}:'):
                self.scheduler.remove_job(job.id)
