"""
Contact Form Signals

Fired after a submission has been delivered to the site owner.
"""
import logging

from django.dispatch import Signal, receiver

logger = logging.getLogger(__name__)

# Sent with keyword arguments: submission (dict), reference (str)
contact_submitted = Signal()


@receiver(contact_submitted)
def log_contact_submission(sender, submission, reference, **kwargs):
    """
    Log every delivered submission.

    Further integrations (Slack, CRM, ...) can hook the same signal.
    """
    logger.info(f"New contact message: {reference} from {submission['email']}")
