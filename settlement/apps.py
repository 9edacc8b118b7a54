from django.apps import AppConfig
from django.utils.translation import gettext_lazy as _


class SettlementConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'settlement'
    verbose_name = _("Settlement")

    def ready(self):
        """Initialize the settlement app"""
        from settlement.settings import get_settlement_setting

        # Optional: run the T+1 scheduler inside this process
        if get_settlement_setting('AUTO_START_SCHEDULER'):
            start_scheduler()


def start_scheduler():
    """Start the process-wide T+1 scheduler thread"""
    from settlement.services.scheduler import get_scheduler
    import logging

    logger = logging.getLogger(__name__)

    if get_scheduler().start():
        logger.info("T+1 settlement scheduler started")
