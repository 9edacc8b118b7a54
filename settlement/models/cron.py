import pytz
from django.core.exceptions import ValidationError
from django.db import models
from django.db import transaction as db_transaction
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from settlement.models.base import TimestampedModel
from settlement.settings import get_settlement_setting
from settlement.constants import RUN_STATUSES


SINGLETON_ID = 1


class CronSettingsManager(models.Manager):
    """Custom Manager for the CronSettings singleton"""

    def load(self):
        """
        Return the settings row, creating it with the configured defaults

        Returns:
            CronSettings: The singleton instance
        """
        instance, _created = self.get_or_create(
            id=SINGLETON_ID,
            defaults={
                'schedule_hour': get_settlement_setting('DEFAULT_SCHEDULE_HOUR'),
                'schedule_minute': get_settlement_setting('DEFAULT_SCHEDULE_MINUTE'),
                'timezone': get_settlement_setting('DEFAULT_TIMEZONE'),
                'is_enabled': True,
            }
        )
        return instance


class CronSettings(TimestampedModel):
    """
    Schedule and last outcome of the T+1 auto-settlement sweep

    There is only ever one row. Use ``CronSettings.objects.load()``.
    """

    id = models.PositiveSmallIntegerField(
        primary_key=True,
        default=SINGLETON_ID,
        editable=False
    )

    schedule_hour = models.PositiveSmallIntegerField(
        default=7,
        verbose_name=_('Hour'),
        help_text=_('0-23, in the configured timezone')
    )

    schedule_minute = models.PositiveSmallIntegerField(
        default=0,
        verbose_name=_('Minute'),
        help_text=_('0-59')
    )

    timezone = models.CharField(
        max_length=64,
        default='Asia/Kolkata',
        verbose_name=_('Timezone')
    )

    is_enabled = models.BooleanField(
        default=True,
        verbose_name=_('Enabled')
    )

    updated_by = models.CharField(
        max_length=100,
        blank=True,
        null=True,
        verbose_name=_('Updated by')
    )

    # ==========================================
    # LAST RUN
    # ==========================================

    last_run_at = models.DateTimeField(
        blank=True,
        null=True,
        verbose_name=_('Last run at')
    )

    last_run_status = models.CharField(
        max_length=10,
        choices=RUN_STATUSES,
        blank=True,
        null=True,
        verbose_name=_('Last run status')
    )

    last_run_message = models.TextField(
        blank=True,
        null=True,
        verbose_name=_('Last run message')
    )

    last_run_processed = models.PositiveIntegerField(
        default=0,
        verbose_name=_('Last run processed')
    )

    last_run_failed = models.PositiveIntegerField(
        default=0,
        verbose_name=_('Last run failed')
    )

    objects = CronSettingsManager()

    class Meta:
        verbose_name = _('T+1 cron settings')
        verbose_name_plural = _('T+1 cron settings')

    def __str__(self):
        state = _('enabled') if self.is_enabled else _('disabled')
        return f"T+1 settlement at {self.schedule_hour:02d}:{self.schedule_minute:02d} {self.timezone} ({state})"

    def clean(self):
        errors = {}
        if self.schedule_hour is None or not 0 <= self.schedule_hour <= 23:
            errors['schedule_hour'] = _("Hour must be between 0 and 23")
        if self.schedule_minute is None or not 0 <= self.schedule_minute <= 59:
            errors['schedule_minute'] = _("Minute must be between 0 and 59")
        if self.timezone not in pytz.all_timezones_set:
            errors['timezone'] = _("Unknown timezone: {tz}").format(tz=self.timezone)
        if errors:
            raise ValidationError(errors)

    def save(self, *args, **kwargs):
        self.id = SINGLETON_ID
        super().save(*args, **kwargs)

    @property
    def schedule_key(self):
        """What the scheduler compares to decide whether to re-arm"""
        return (self.schedule_hour, self.schedule_minute, self.timezone)

    @property
    def tzinfo(self):
        return pytz.timezone(self.timezone)

    @db_transaction.atomic
    def record_run(self, status, message, processed=0, failed=0):
        """
        Persist the outcome of a sweep

        Args:
            status: RUN_STATUS_SUCCESS, RUN_STATUS_PARTIAL or RUN_STATUS_FAILED
            message: Human readable summary
            processed: Transactions settled
            failed: Transactions not settled

        Returns:
            CronSettings: Updated instance
        """
        self.last_run_at = timezone.now()
        self.last_run_status = status
        self.last_run_message = message
        self.last_run_processed = processed
        self.last_run_failed = failed
        self.save_changes(
            'last_run_at', 'last_run_status', 'last_run_message', 'last_run_processed', 'last_run_failed'
        )
        return self
