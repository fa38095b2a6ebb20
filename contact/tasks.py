"""
Contact Form Email Tasks

Celery tasks for emails that must not block the request.
"""
import logging

from celery import shared_task

from .emails import build_auto_reply

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=3)
def send_contact_auto_reply(self, name, email, subject, reference):
    """
    Send auto-reply email to contact form submitter.

    Args:
        name: Submitter's name
        email: Submitter's email address
        subject: Subject of the original message
        reference: Reference id of the submission
    """
    try:
        build_auto_reply(name, email, subject, reference).send(fail_silently=False)
    except OSError as exc:
        logger.warning(f"Auto-reply for {reference} failed, retrying: {exc}")
        raise self.retry(exc=exc, countdown=60)

    return f"Auto-reply sent to {email}"
