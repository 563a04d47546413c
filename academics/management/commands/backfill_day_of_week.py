from django.core.management.base import BaseCommand

from academics.models import DAY_NAMES, ClassSession


class Command(BaseCommand):
    help = "Fill in day_of_week on sessions where it is missing or wrong."

    def add_arguments(self, parser):
        parser.add_argument('--dry-run', action='store_true', help='Report without saving.')

    def handle(self, *args, **options):
        fixed = []
        for session in ClassSession.objects.only('id', 'scheduled_date', 'day_of_week').iterator():
            expected = DAY_NAMES[session.scheduled_date.weekday()]
            if session.day_of_week != expected:
                session.day_of_week = expected
                fixed.append(session)
        if fixed and not options['dry_run']:
            ClassSession.objects.bulk_update(fixed, ['day_of_week'], batch_size=500)
        verb = 'Would update' if options['dry_run'] else 'Updated'
        self.stdout.write(f"{verb} {len(fixed)} session(s).")
