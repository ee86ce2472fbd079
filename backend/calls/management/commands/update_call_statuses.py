from django.core.management.base import BaseCommand
from calls.services import update_call_statuses


class Command(BaseCommand):
    help = "Open/close auto-managed calls according to their start/end dates."

    def handle(self, *args, **kwargs):
        r = update_call_statuses()
        self.stdout.write(self.style.SUCCESS(
            f"Checked {r['checked']} calls: {r['activated']} opened, {r['closed']} closed."))
