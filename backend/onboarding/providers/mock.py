import logging
import uuid

from .base import EmailProvider

log = logging.getLogger(__name__)


class MockProvider(EmailProvider):
    def send(self, to_email: str, subject: str, body: str) -> str:
        # pretend it was delivered; the body holds the raw code, never log it
        log.info("mock invite email queued: %s", subject)
        return f"mock-{uuid.uuid4()}"
