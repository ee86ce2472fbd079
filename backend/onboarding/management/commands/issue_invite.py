from django.core.management.base import BaseCommand, CommandError

from calls.models import Call
from onboarding.services import issue_invite
from scholarship.exceptions import CodeCollision


class Command(BaseCommand):
    help = "Issue an invite code for a call. The code is printed once and cannot be recovered."

    def add_arguments(self, parser):
        parser.add_argument("--call", type=int, help="Call id (default: the call currently open for onboarding)")
        parser.add_argument("--email", default="")
        parser.add_argument("--name", default="")
        parser.add_argument("--code", help="Use this code instead of a generated one")
        parser.add_argument("--ttl-days", type=int)
        parser.add_argument("--no-email", action="store_true", help="Do not send the invite email")

    def handle(self, *args, **opts):
        if opts.get("call"):
            call = Call.objects.filter(pk=opts["call"]).first()
        else:
            call = Call.objects.current_open()
        if call is None:
            raise CommandError("No such call (and none open for onboarding)")

        meta = {}
        if opts["email"]:
            meta["email"] = opts["email"]
        if opts["name"]:
            meta["full_name"] = opts["name"]
        try:
            issued = issue_invite(call, metadata=meta, code=opts.get("code"),
                                  ttl_days=opts.get("ttl_days"), notify=not opts["no_email"])
        except (CodeCollision, ValueError) as exc:
            raise CommandError(str(exc))

        self.stdout.write(self.style.SUCCESS(
            f"Invite {issued.invite.pk} for {call.name}, expires {issued.invite.expires_at:%Y-%m-%d}"))
        self.stdout.write(f"Code: {issued.raw_code}")
