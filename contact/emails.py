"""
Contact Form Emails

Builds and sends the messages generated by a contact form submission.
"""
import logging

from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.template.loader import render_to_string

logger = logging.getLogger(__name__)


def build_owner_notification(submission, reference):
    """
    Build the email that delivers a submission to the site owner.

    Args:
        submission: Validated form data (name, email, subject, message)
        reference: Reference id shown to the submitter

    Returns:
        EmailMultiAlternatives with a plain text body and an HTML alternative
    """
    context = {
        **submission,
        'reference': reference,
        'site_name': settings.SITE_NAME,
    }

    email = EmailMultiAlternatives(
        subject=f"{settings.CONTACT_EMAIL_SUBJECT_PREFIX}{submission['subject']}",
        body=render_to_string('contact/emails/owner_notification.txt', context),
        from_email=settings.CONTACT_EMAIL_FROM,
        to=[settings.CONTACT_EMAIL_TO],
        reply_to=[submission['email']],
    )
    email.attach_alternative(
        render_to_string('contact/emails/owner_notification.html', context),
        "text/html"
    )
    return email


def send_owner_notification(submission, reference):
    """
    Send a submission to the site owner.

    Transport errors (SMTPException, socket errors) propagate to the caller.
    """
    email = build_owner_notification(submission, reference)
    email.send(fail_silently=False)
    logger.info(f"Owner notification sent for {reference} to {settings.CONTACT_EMAIL_TO}")


def build_auto_reply(name, email, subject, reference):
    """Build the thank-you email sent back to the submitter."""
    context = {
        'name': name,
        'subject': subject,
        'reference': reference,
        'site_name': settings.SITE_NAME,
    }

    return EmailMultiAlternatives(
        subject=f"We've received your message - {settings.SITE_NAME}",
        body=render_to_string('contact/emails/auto_reply.txt', context),
        from_email=settings.CONTACT_EMAIL_FROM,
        to=[email],
        reply_to=[settings.CONTACT_EMAIL_TO],
    )
