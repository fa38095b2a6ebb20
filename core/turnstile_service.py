"""
Cloudflare Turnstile CAPTCHA Verification Service

Verifies the Turnstile token posted with the contact form against the
Cloudflare API. Verification is skipped while TURNSTILE_ENABLED is off.

Documentation: https://developers.cloudflare.com/turnstile/
"""

import logging

import requests
from django.conf import settings

logger = logging.getLogger(__name__)


class TurnstileService:
    """
    Service for verifying Cloudflare Turnstile CAPTCHA tokens.

    Usage:
        is_valid = turnstile_service.verify_token(token, user_ip='192.168.1.1')
    """

    VERIFY_URL = 'https://challenges.cloudflare.com/turnstile/v0/siteverify'
    TOKEN_FIELD = 'cf-turnstile-response'
    TIMEOUT = 10

    @property
    def enabled(self):
        return getattr(settings, 'TURNSTILE_ENABLED', False)

    @property
    def secret_key(self):
        return getattr(settings, 'TURNSTILE_SECRET_KEY', '')

    def verify_token(self, token: str, user_ip: str = None) -> bool:
        """
        Verify a Turnstile token.

        Args:
            token: The Turnstile response token from the form
            user_ip: Optional user IP address for additional verification

        Returns:
            True if token is valid (or verification is disabled), False otherwise
        """
        if not self.enabled:
            return True

        if not token:
            logger.warning("No Turnstile token provided")
            return False

        if not self.secret_key:
            logger.error("TURNSTILE_SECRET_KEY not configured")
            return False

        payload = {
            'secret': self.secret_key,
            'response': token,
        }
        if user_ip:
            payload['remoteip'] = user_ip

        try:
            response = requests.post(self.VERIFY_URL, data=payload, timeout=self.TIMEOUT)
            response.raise_for_status()
            result = response.json()
        except requests.exceptions.Timeout:
            logger.error("Turnstile verification timeout")
            return False  # Fail closed
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.error(f"Turnstile verification error: {e}")
            return False  # Fail closed

        if result.get('success'):
            return True

        logger.warning(f"Turnstile verification failed: {result.get('error-codes', [])}")
        return False


# Singleton instance
turnstile_service = TurnstileService()
