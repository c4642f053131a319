import logging
from functools import wraps

from django.shortcuts import render
from django.core.cache import cache
from django.core.exceptions import PermissionDenied
from django.http import JsonResponse

logger = logging.getLogger(__name__)


def ratelimit(key='user', rate='100/h', block=True):
    """
    Simple cache-based rate limiter decorator.

    Args:
        key: 'user' for user-based, 'ip' for IP-based limiting
        rate: Format "number/period" where period is s/m/h/d (second/minute/hour/day),
            or a callable returning it
        block: If True, return 429 error; if False, just log warning

    Only POST requests are counted.

    Usage:
        @ratelimit(key='user', rate='100/h')
        def my_view(request):
            ...
    """
    def decorator(view_func):
        @wraps(view_func)
        def wrapper(request, *args, **kwargs):
            if request.method != 'POST':
                return view_func(request, *args, **kwargs)

            # Parse rate limit
            current_rate = rate() if callable(rate) else rate
            try:
                limit, period = current_rate.split('/')
                limit = int(limit)
                period_seconds = {
                    's': 1, 'm': 60, 'h': 3600, 'd': 86400
                }.get(period, 3600)
            except (ValueError, AttributeError):
                limit, period_seconds = 100, 3600  # Default: 100/hour

            # Build cache key
            if key == 'user' and request.user.is_authenticated:
                cache_key = f"ratelimit:{view_func.__name__}:user:{request.user.pk}"
            else:
                cache_key = f"ratelimit:{view_func.__name__}:ip:{get_client_ip(request)}"

            # Atomically create the key if it doesn't exist
            if not cache.add(cache_key, 1, period_seconds):
                try:
                    current = cache.incr(cache_key)
                except ValueError:
                    # Key expired between add and incr, recreate
                    cache.set(cache_key, 1, period_seconds)
                    current = 1

                if current > limit:
                    logger.warning(f"Rate limit exceeded for {cache_key}")
                    if block:
                        return JsonResponse(
                            {'error': 'Too many requests. Please try again later.'},
                            status=429
                        )

            return view_func(request, *args, **kwargs)
        return wrapper
    return decorator


def get_client_ip(request):
    """Get client IP address from request."""
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        return x_forwarded_for.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR')


def is_school_admin(user):
    """Check if user is a school admin or superuser."""
    return user.is_superuser or getattr(user, 'is_school_admin', False)


def has_grade_perm(user, codename):
    """School admins and superusers hold every gradebook permission."""
    return is_school_admin(user) or user.has_perm(f'gradebook.{codename}')


def require_grade_perms(*codenames):
    """Decorator raising PermissionDenied unless the user has all the given permissions."""
    def decorator(view_func):
        @wraps(view_func)
        def wrapper(request, *args, **kwargs):
            missing = [c for c in codenames if not has_grade_perm(request.user, c)]
            if missing:
                logger.warning(
                    f"User {request.user.pk} denied {view_func.__name__}: missing {', '.join(missing)}"
                )
                raise PermissionDenied
            return view_func(request, *args, **kwargs)
        return wrapper
    return decorator


def can_view_preferences(user):
    """The preferences tab is shown to users who can manage, edit or view grades."""
    return any(
        has_grade_perm(user, codename)
        for codename in ('manage_grades', 'edit_grades', 'view_all_grades')
    )


def htmx_render(request, full_template, partial_template, context=None):
    """Render full template for regular requests, partial for HTMX requests."""
    context = context or {}
    template = partial_template if request.htmx else full_template
    return render(request, template, context)
