"""Invite code hashing strategies.

Codes are stored only as a one-way digest of the normalized code. The
strategy is chosen with settings.INVITE_CODE_HASHER so the algorithm can be
swapped without touching the registry.
"""

import hashlib
import hmac
from abc import ABC, abstractmethod

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.utils.module_loading import import_string


class CodeHasher(ABC):
    # True when hash() is stable for a given input, so lookups can filter on
    # the digest instead of verifying every candidate.
    deterministic = False

    @abstractmethod
    def hash(self, normalized: str) -> str:
        raise NotImplementedError

    def verify(self, digest: str, normalized: str) -> bool:
        return hmac.compare_digest(digest, self.hash(normalized))


class HmacCodeHasher(CodeHasher):
    """HMAC-SHA256 keyed with the INVITE_CODE_PEPPER secret."""
    deterministic = True

    def __init__(self, pepper=None):
        pepper = settings.INVITE_CODE_PEPPER if pepper is None else pepper
        if not pepper:
            raise ImproperlyConfigured("INVITE_CODE_PEPPER is not set")
        self.pepper = pepper.encode("utf-8")

    def hash(self, normalized: str) -> str:
        return hmac.new(self.pepper, normalized.encode("utf-8"), hashlib.sha256).hexdigest()


def get_hasher() -> CodeHasher:
    return import_string(settings.INVITE_CODE_HASHER)()
