import logging

from django.conf import settings

from audit.utils import audit_log

log = logging.getLogger(__name__)


# provider picker
def _provider():
    prov = (settings.INVITE_EMAIL_PROVIDER or "mock").lower()
    if prov == "django":
        from .providers.django_mail import DjangoMailProvider
        return DjangoMailProvider()
    from .providers.mock import MockProvider
    return MockProvider()


def render_invite_email(invite, raw_code: str):
    name = (invite.meta or {}).get("full_name") or ""
    subject = f"Tu código de invitación para {invite.call.name}"
    lines = [
        f"Hola {name}," if name else "Hola,",
        "",
        f"Has sido invitado/a a postular a {invite.call.name}.",
        f"Tu código de invitación es: {raw_code}",
        f"El código vence el {invite.expires_at:%d-%m-%Y}.",
    ]
    return subject, "\n".join(lines)


def send_invite_notification(invite, raw_code: str) -> bool:
    """
    Email the raw code to the invite's suggested address. Delivery failures
    are logged and audited; the invite stays valid either way.
    """
    to_email = invite.email
    if not to_email:
        return False
    subject, body = render_invite_email(invite, raw_code)
    try:
        msg_id = _provider().send(to_email, subject, body)
    except Exception as exc:  # any provider failure
        log.warning("invite %s email failed: %s", invite.pk, exc)
        audit_log(None, "INVITE_EMAIL_FAILED", target=invite, payload={"error": str(exc)[:255]})
        return False
    audit_log(None, "INVITE_EMAIL_SENT", target=invite, payload={"provider_msg_id": msg_id})
    return True
