from django.core.management.base import BaseCommand, CommandError

from applications.reconcile import merge_duplicate_applications


class Command(BaseCommand):
    help = "Merge duplicate applications for the same applicant and call (destructive)."

    def add_arguments(self, parser):
        parser.add_argument("--yes", action="store_true", help="Confirm deletion of the duplicates")

    def handle(self, *args, **opts):
        if not opts["yes"]:
            raise CommandError("This deletes duplicate applications; re-run with --yes to proceed.")
        r = merge_duplicate_applications()
        self.stdout.write(self.style.SUCCESS(
            f"{r['duplicate_groups']} duplicate groups: removed {r['applications_deleted']} applications, "
            f"moved {r['submissions_moved']} submissions."))
