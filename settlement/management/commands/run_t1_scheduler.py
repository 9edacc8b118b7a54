from django.core.management.base import BaseCommand

from settlement.services.scheduler import T1Scheduler


class Command(BaseCommand):
    help = 'Run the T+1 settlement scheduler in the foreground'

    def add_arguments(self, parser):
        parser.add_argument(
            '--poll-interval',
            type=int,
            default=None,
            help='Seconds between schedule reloads (default: SETTLEMENT_POLL_INTERVAL)'
        )

    def handle(self, *args, **options):
        scheduler = T1Scheduler(poll_interval=options['poll_interval'])
        self.stdout.write(f"T+1 scheduler polling every {scheduler.poll_interval}s, Ctrl+C to stop")

        try:
            scheduler.run_forever()
        except KeyboardInterrupt:
            scheduler.stop()
            self.stdout.write(self.style.SUCCESS("\nT+1 scheduler stopped"))
