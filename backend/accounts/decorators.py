from functools import wraps
from django.http import JsonResponse


def require_roles(*roles, allow_superuser=False):
    """
    Usage:
    @require_roles("REVIEWER", "ADMIN", allow_superuser=True)
    def view(request): ...
    """
    def decorator(view_func):
        @wraps(view_func)
        def _wrapped(request, *args, **kwargs):
            u = request.user
            if not u.is_authenticated:
                return JsonResponse({"error": "auth_required"}, status=401)
            if allow_superuser and u.is_superuser:
                return view_func(request, *args, **kwargs)
            if u.role in roles:
                return view_func(request, *args, **kwargs)
            return JsonResponse({"error": "insufficient_role"}, status=403)
        return _wrapped
    return decorator
