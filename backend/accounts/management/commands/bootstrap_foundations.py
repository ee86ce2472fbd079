from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone
from django.utils.crypto import get_random_string
from accounts.models import User, Role
from calls.models import Call, Milestone


DEFAULT_MILESTONES = [
    ("Postulación inicial", Milestone.WhoCanFill.APPLICANT, False),
    ("Revisión documental", Milestone.WhoCanFill.STAFF, True),
    ("Entrevista", Milestone.WhoCanFill.STAFF, True),
]


class Command(BaseCommand):
    help = "Create an admin user and an open call with the default milestone sequence."

    def add_arguments(self, parser):
        parser.add_argument("--admin-email", default="admin@becas.local")
        parser.add_argument("--admin-password", default=None)
        parser.add_argument("--call-name", default="Becas")
        parser.add_argument("--year", type=int, default=None)

    @transaction.atomic
    def handle(self, *args, **opts):
        email = opts["admin_email"]
        password = opts["admin_password"] or get_random_string(16)
        year = opts["year"] or timezone.now().year

        su, created = User.objects.get_or_create(
            email=email, defaults={"is_staff": True, "is_superuser": True, "role": Role.ADMIN}
        )
        if created:
            su.set_password(password)
            su.save()
            self.stdout.write(self.style.SUCCESS(f"Created admin {email} / {password}"))
        else:
            self.stdout.write(self.style.WARNING(f"Admin {email} already exists"))

        call, created = Call.objects.get_or_create(
            name=opts["call_name"], year=year,
            defaults={"status": Call.Status.OPEN, "is_active": True},
        )
        if not created:
            self.stdout.write(self.style.WARNING(f"Call {call} already exists"))
            return

        for idx, (name, who, review) in enumerate(DEFAULT_MILESTONES, start=1):
            Milestone.objects.create(call=call, name=name, order_index=idx,
                                     who_can_fill=who, requires_review=review)
        self.stdout.write(self.style.SUCCESS(f"Call ready: {call} with {len(DEFAULT_MILESTONES)} milestones"))
