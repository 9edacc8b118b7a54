from django.core.management.base import BaseCommand

from settlement.services.scheduler import get_scheduler


class Command(BaseCommand):
    help = 'Run the T+1 auto-settlement sweep once'

    def handle(self, *args, **options):
        self.stdout.write("Starting T+1 settlement run")

        result = get_scheduler().trigger(source='command')

        if not result.started:
            self.stdout.write(self.style.WARNING(result.message))
            return

        self.stdout.write(
            f"Processed: {result.processed}, failed: {result.failed}, "
            f"paused retailers skipped: {result.skipped_retailers}"
        )
        style = self.style.SUCCESS if result.failed == 0 else self.style.WARNING
        self.stdout.write(style(f"\nT+1 settlement {result.status}: {result.message}"))
