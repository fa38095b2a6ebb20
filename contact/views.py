"""
Contact Form Views

Public endpoint for contact form submissions. Responses are rendered
as HTML pages, or as JSON when the client asks for application/json.
"""
import logging
import uuid
from collections.abc import Mapping

from django.conf import settings
from kombu.exceptions import OperationalError
from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from core.turnstile_service import turnstile_service
from .emails import send_owner_notification
from .rate_limiting import rate_limit_contact_form, get_client_ip
from .responses import error_response
from .serializers import ContactFormSubmitSerializer
from .signals import contact_submitted
from .tasks import send_contact_auto_reply

logger = logging.getLogger(__name__)

VALIDATION_ERROR = 'Please fill in your name, email, subject and message.'
DELIVERY_ERROR = 'Sorry, your message could not be sent. Please try again later.'
CAPTCHA_ERROR = 'CAPTCHA verification failed. Please try again.'


def generate_reference():
    """Reference id quoted to the submitter, e.g. CNT-1A2B3C4D."""
    return f"CNT-{uuid.uuid4().hex[:8].upper()}"


class ContactFormSubmitView(APIView):
    """
    Public endpoint for contact form submissions.

    POST /contact

    No authentication required. Rate limited when enabled in settings.
    """

    permission_classes = [AllowAny]

    @rate_limit_contact_form()
    def post(self, request):
        """Submit a contact form."""
        if not isinstance(request.data, Mapping):
            logger.info(f"Contact form rejected: body is {type(request.data).__name__}, not a form")
            return error_response(VALIDATION_ERROR, status.HTTP_400_BAD_REQUEST)

        client_ip = get_client_ip(request)

        token = request.data.get(turnstile_service.TOKEN_FIELD, '')
        if not turnstile_service.verify_token(token, user_ip=client_ip):
            logger.warning(f"Contact form CAPTCHA rejected for {client_ip}")
            return error_response(CAPTCHA_ERROR, status.HTTP_400_BAD_REQUEST)

        serializer = ContactFormSubmitSerializer(data=request.data)
        if not serializer.is_valid():
            logger.info(f"Contact form rejected: {sorted(serializer.errors)}")
            return error_response(
                VALIDATION_ERROR,
                status.HTTP_400_BAD_REQUEST,
                fields=serializer.errors,
            )

        submission = serializer.submission
        reference = generate_reference()

        try:
            send_owner_notification(submission, reference)
        except OSError:
            # SMTPException is an OSError, as are connection failures
            logger.exception(f"Failed to deliver contact message {reference}")
            return error_response(
                DELIVERY_ERROR,
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                reference=reference,
            )

        contact_submitted.send(
            sender=self.__class__,
            submission=submission,
            reference=reference,
        )

        if settings.CONTACT_AUTO_REPLY_ENABLED:
            try:
                send_contact_auto_reply.delay(
                    submission['name'],
                    submission['email'],
                    submission['subject'],
                    reference,
                )
            except OperationalError:
                # Owner notification is already sent at this point
                logger.exception(f"Could not queue auto-reply for {reference}")

        return Response(
            {
                'success': True,
                'message': "Your message has been sent. We'll get back to you soon.",
                'reference': reference,
                'name': submission['name'],
                'subject': submission['subject'],
            },
            status=status.HTTP_201_CREATED,
            template_name='contact/confirmation.html',
        )
