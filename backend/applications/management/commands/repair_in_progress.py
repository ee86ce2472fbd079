from django.core.management.base import BaseCommand

from applications.reconcile import repair_in_progress


class Command(BaseCommand):
    help = "Demote IN_PROGRESS milestones that are not the application's current milestone."

    def handle(self, *args, **kwargs):
        n = repair_in_progress()
        self.stdout.write(self.style.SUCCESS(f"Repaired {n} progress rows."))
