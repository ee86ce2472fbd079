from django.core.management.base import BaseCommand

from applications.reconcile import fix_cascade_drift


class Command(BaseCommand):
    help = "Re-apply rejection cascades that were left incomplete."

    def handle(self, *args, **kwargs):
        fixed = fix_cascade_drift()
        for f in fixed:
            self.stdout.write(f"application {f['application_id']}: {f['from_status']} -> NOT_SELECTED, "
                              f"{f['blocked']} milestones blocked")
        self.stdout.write(self.style.SUCCESS(f"Fixed {len(fixed)} applications."))
