from datetime import datetime

from django.core.management.base import BaseCommand, CommandError

from bloodbank import services


class Command(BaseCommand):
    help = "Mark every Available blood unit past its expiry date as Expired and update inventory."

    def add_arguments(self, parser):
        parser.add_argument(
            '--date',
            help="Treat this day (YYYY-MM-DD) as today. Defaults to the current local date.",
        )

    def handle(self, *args, **options):
        today = None
        if options['date']:
            try:
                today = datetime.strptime(options['date'], "%Y-%m-%d").date()
            except ValueError:
                raise CommandError("--date must be YYYY-MM-DD")
        count = services.expire_blood_units(today=today)
        self.stdout.write(self.style.SUCCESS(f"Expired {count} blood unit(s)."))
