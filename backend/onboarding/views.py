from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from scholarship.http import json_body, workflow_view
from .ratelimit import RateLimitExceeded, check_redeem_per_ip
from .services import redeem_invite, validate_invite


def _client_ip(request):
    fwd = request.META.get("HTTP_X_FORWARDED_FOR", "")
    return fwd.split(",")[0].strip() if fwd else request.META.get("REMOTE_ADDR", "")


def _rate_limited(request):
    try:
        check_redeem_per_ip(_client_ip(request))
    except RateLimitExceeded:
        return JsonResponse({"error": "rate_limited"}, status=429)
    return None


@csrf_exempt
@require_POST
@workflow_view
def invite_validate(request):
    """Check a code without consuming it."""
    limited = _rate_limited(request)
    if limited:
        return limited
    code = json_body(request).get("code")
    if not code:
        return JsonResponse({"error": "code_required"}, status=400)
    invite = validate_invite(code)
    return JsonResponse({
        "ok": True,
        "used": invite.is_used,
        "expires_at": invite.expires_at.isoformat(),
        "call": {"id": invite.call_id, "name": invite.call.name, "year": invite.call.year},
    })


@csrf_exempt
@require_POST
@workflow_view
def invite_redeem(request):
    limited = _rate_limited(request)
    if limited:
        return limited
    data = json_body(request)
    code = data.get("code")
    if not code:
        return JsonResponse({"error": "code_required"}, status=400)
    r = redeem_invite(code, email=data.get("email"), full_name=data.get("full_name"),
                      password=data.get("password"), request=request)
    return JsonResponse({
        "ok": True,
        "first_redemption": r.first_redemption,
        "applicant_id": r.applicant.pk,
        "account_id": r.account.pk,
        "application_id": r.application.pk,
        "call_id": r.invite.call_id,
    })
