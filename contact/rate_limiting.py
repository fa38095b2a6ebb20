"""
Rate Limiting Utilities for Contact Form

Prevents spam and abuse of the contact form. Counters are kept in the
Django cache, so every worker must share one cache backend (Redis).
"""
import logging
from collections.abc import Mapping
from datetime import timedelta
from functools import wraps

from django.conf import settings
from django.core.cache import cache
from django.utils import timezone
from rest_framework import status

from .responses import error_response

logger = logging.getLogger(__name__)


def get_client_ip(request):
    """Get client IP address from request."""
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        ip = x_forwarded_for.split(',')[0].strip()
    else:
        ip = request.META.get('REMOTE_ADDR')
    return ip


def _cache_key(identifier, identifier_type):
    return f'contact-rate:{identifier_type}:{identifier}'


def check_rate_limit(identifier, identifier_type, max_count, window_hours):
    """
    Check if identifier has exceeded rate limit.

    Args:
        identifier: IP address or email
        identifier_type: 'ip' or 'email'
        max_count: Maximum allowed submissions
        window_hours: Time window in hours

    Returns:
        tuple: (is_allowed, retry_after_seconds)
    """
    key = _cache_key(identifier, identifier_type)
    entry = cache.get(key)
    if entry is None:
        return True, 0

    now = timezone.now()
    window_end = entry['window_start'] + timedelta(hours=window_hours)

    # Window expired
    if window_end <= now:
        cache.delete(key)
        return True, 0

    if entry['count'] >= max_count:
        return False, int((window_end - now).total_seconds())

    return True, 0


def increment_rate_limit(identifier, identifier_type, window_hours):
    """Increment the rate limit counter, opening a new window if needed."""
    key = _cache_key(identifier, identifier_type)
    now = timezone.now()
    entry = cache.get(key)
    if entry is None or entry['window_start'] + timedelta(hours=window_hours) <= now:
        entry = {'count': 0, 'window_start': now}

    entry['count'] += 1
    remaining = entry['window_start'] + timedelta(hours=window_hours) - now
    cache.set(key, entry, timeout=max(int(remaining.total_seconds()), 1))


def rate_limit_contact_form(max_per_hour=None, max_per_day_email=None):
    """
    Decorator for rate limiting contact form submissions.

    Only successful (201) submissions are counted. Limits default to the
    CONTACT_FORM_RATE_LIMIT_* settings and are skipped entirely unless
    CONTACT_FORM_RATE_LIMIT_ENABLED is set.

    Args:
        max_per_hour: Maximum submissions per IP per hour
        max_per_day_email: Maximum submissions per email per day
    """
    def decorator(view_func):
        @wraps(view_func)
        def wrapped_view(self, request, *args, **kwargs):
            if not settings.CONTACT_FORM_RATE_LIMIT_ENABLED:
                return view_func(self, request, *args, **kwargs)

            per_hour = max_per_hour or settings.CONTACT_FORM_RATE_LIMIT_PER_HOUR
            per_day = max_per_day_email or settings.CONTACT_FORM_RATE_LIMIT_PER_DAY

            ip = get_client_ip(request)
            data = request.data if isinstance(request.data, Mapping) else {}
            email = str(data.get('email') or '').strip().lower()

            # Check IP rate limit (per hour)
            ip_allowed, ip_retry = check_rate_limit(ip, 'ip', per_hour, 1)
            if not ip_allowed:
                logger.warning(f"Contact form rate limit hit for IP {ip}")
                return error_response(
                    'Too many submissions. Please try again later.',
                    status.HTTP_429_TOO_MANY_REQUESTS,
                    headers={'Retry-After': str(ip_retry)},
                    retry_after=ip_retry,
                )

            # Check email rate limit (per day)
            if email:
                email_allowed, email_retry = check_rate_limit(email, 'email', per_day, 24)
                if not email_allowed:
                    logger.warning(f"Contact form rate limit hit for {email}")
                    return error_response(
                        'Too many submissions from this email. Please try again tomorrow.',
                        status.HTTP_429_TOO_MANY_REQUESTS,
                        headers={'Retry-After': str(email_retry)},
                        retry_after=email_retry,
                    )

            response = view_func(self, request, *args, **kwargs)

            # If submission successful, increment counters
            if response.status_code == status.HTTP_201_CREATED:
                increment_rate_limit(ip, 'ip', 1)
                if email:
                    increment_rate_limit(email, 'email', 24)

            return response

        return wrapped_view
    return decorator
