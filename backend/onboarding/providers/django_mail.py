from django.conf import settings
from django.core.mail import send_mail

from .base import EmailProvider


class DjangoMailProvider(EmailProvider):
    """Delivers through whatever EMAIL_BACKEND the project is configured with."""

    def send(self, to_email: str, subject: str, body: str) -> str:
        send_mail(subject, body, settings.DEFAULT_FROM_EMAIL, [to_email], fail_silently=False)
        return ""
