import json
import logging
from functools import wraps

from django.http import JsonResponse

from .exceptions import WorkflowError

log = logging.getLogger(__name__)


def json_body(request) -> dict:
    if not request.body:
        return {}
    try:
        data = json.loads(request.body.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        return request.POST.dict()
    return data if isinstance(data, dict) else {}


def error_response(exc: WorkflowError) -> JsonResponse:
    # retried actions that already took effect are not failures for the caller
    if exc.benign:
        return JsonResponse({"ok": True, "already_done": True, "detail": str(exc)})
    return JsonResponse(exc.as_dict(), status=exc.http_status)


def workflow_view(view_func):
    """Map WorkflowError raised by the wrapped view to its JSON response."""
    @wraps(view_func)
    def _wrapped(request, *args, **kwargs):
        try:
            return view_func(request, *args, **kwargs)
        except WorkflowError as exc:
            log.info("%s %s -> %s: %s", request.method, request.path, exc.code, exc)
            return error_response(exc)
    return _wrapped
