import json
import logging
import os
import time

from django.utils.deprecation import MiddlewareMixin
from django.utils.timezone import now

log = logging.getLogger("request")
REDACT = os.getenv("REDACT_PII_IN_LOGS", "1") == "1"
LOG_REQUESTS = os.getenv("LOG_REQUESTS", "1") == "1"

# invite codes are bearer secrets until used
REDACT_KEYS = {"password", "email", "code", "full_name", "invite_code"}


def _scrub(d: dict):
    if not REDACT or not d:
        return d
    return {k: ("***redacted***" if k.lower() in REDACT_KEYS else v) for k, v in d.items()}


def _body_keys(request):
    if request.content_type == "application/json":
        try:
            data = json.loads(request.body.decode("utf-8") or "{}")
        except (UnicodeDecodeError, ValueError):
            return []
        return sorted(data) if isinstance(data, dict) else []
    return sorted(getattr(request, "POST", {}).keys())


class RequestLogMiddleware(MiddlewareMixin):
    def process_request(self, request):
        if not LOG_REQUESTS:
            return
        request._ts = time.time()

    def process_response(self, request, response):
        if not LOG_REQUESTS:
            return response
        dur = time.time() - getattr(request, "_ts", time.time())
        u = getattr(request, "user", None)
        payload = {
            "ts": now().isoformat(),
            "method": request.method,
            "path": request.path,
            "status": response.status_code,
            "duration_ms": int(dur * 1000),
            "user": (u.pk if u is not None and u.is_authenticated else None),
            "ip": request.META.get("REMOTE_ADDR"),
            "ua": request.META.get("HTTP_USER_AGENT", ""),
            "query": _scrub(request.GET.dict()),
        }
        # only key names of bodies, never values
        if request.method in ("POST", "PUT", "PATCH"):
            payload["body_keys"] = _body_keys(request)
        log.info(json.dumps(payload))
        return response
