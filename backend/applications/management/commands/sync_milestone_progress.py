from django.core.management.base import BaseCommand, CommandError

from applications.reconcile import sync_missing_progress
from calls.models import Call


class Command(BaseCommand):
    help = "Create PENDING progress rows for milestones applications are missing."

    def add_arguments(self, parser):
        parser.add_argument("--call", type=int, help="Only this call id")

    def handle(self, *args, **opts):
        call = None
        if opts.get("call"):
            try:
                call = Call.objects.get(pk=opts["call"])
            except Call.DoesNotExist:
                raise CommandError(f"Call {opts['call']} does not exist")
        n = sync_missing_progress(call)
        self.stdout.write(self.style.SUCCESS(f"Created {n} progress rows."))
