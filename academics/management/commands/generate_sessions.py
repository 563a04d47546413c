from django.core.management.base import BaseCommand, CommandError

from academics.exceptions import AcademicsError
from academics.models import Class
from academics.sessions import create_sessions_for_class, regenerate_sessions_for_class


class Command(BaseCommand):
    help = "Generate class sessions for classes that do not have any yet."

    def add_arguments(self, parser):
        parser.add_argument('--class', dest='class_ids', type=int, action='append', default=[],
                            help='Only this class id (repeatable).')
        parser.add_argument('--force', action='store_true',
                            help='Delete existing sessions (and their attendance) and generate again.')

    def handle(self, *args, **options):
        classes = Class.objects.select_related('course', 'semester').order_by('pk')
        if options['class_ids']:
            classes = classes.filter(pk__in=options['class_ids'])
            missing = set(options['class_ids']) - set(classes.values_list('pk', flat=True))
            if missing:
                raise CommandError(f"Unknown class id(s): {', '.join(str(m) for m in sorted(missing))}")

        generated = skipped = failed = 0
        for klass in classes:
            if not klass.schedule:
                self.stdout.write(f"{klass}: skipped (no schedule)")
                skipped += 1
                continue
            existing = klass.sessions.count()
            if existing and not options['force']:
                self.stdout.write(f"{klass}: skipped ({existing} sessions exist)")
                skipped += 1
                continue
            try:
                if existing:
                    created = regenerate_sessions_for_class(klass)
                else:
                    created = create_sessions_for_class(klass)
            except (AcademicsError, ValueError) as exc:
                self.stderr.write(f"{klass}: failed ({exc})")
                failed += 1
                continue
            self.stdout.write(self.style.SUCCESS(f"{klass}: generated {len(created)} sessions"))
            generated += 1

        self.stdout.write(f"Done. generated={generated} skipped={skipped} failed={failed}")
