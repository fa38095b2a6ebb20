"""
Contact Form Serializers

Validates and sanitizes user input from the contact form.
"""
from django.conf import settings
from django.utils.html import strip_tags
from rest_framework import serializers


def clean_text(value):
    """Strip HTML tags and surrounding whitespace, rejecting empty results."""
    cleaned = strip_tags(value).strip()
    if not cleaned:
        raise serializers.ValidationError("This field may not be blank.")
    return cleaned


class ContactFormSubmitSerializer(serializers.Serializer):
    """
    Public contact form submission serializer.

    All four visible fields are required; ``website`` is a honeypot that
    humans never see and must stay empty.
    """

    name = serializers.CharField(
        max_length=100,
        help_text="Name of the person contacting us"
    )

    email = serializers.EmailField(
        max_length=255,
        help_text="Valid email address for follow-up"
    )

    subject = serializers.CharField(
        max_length=200,
        help_text="Subject line of the message"
    )

    message = serializers.CharField(
        max_length=5000,
        help_text="Message content"
    )

    # Honeypot field for spam prevention (should be empty)
    website = serializers.CharField(
        required=False,
        allow_blank=True,
        write_only=True,
        help_text="Honeypot field - should be empty"
    )

    def validate_name(self, value):
        return clean_text(value)

    def validate_subject(self, value):
        """Subject becomes an email header, so it must stay on one line."""
        if '\n' in value or '\r' in value:
            raise serializers.ValidationError("Subject must be a single line.")
        return clean_text(value)

    def validate_website(self, value):
        """Honeypot validation - should be empty."""
        if value:
            raise serializers.ValidationError("Spam detected")
        return value

    def validate_email(self, value):
        """Reject disposable email domains and normalise the domain part."""
        local_part, domain = value.rsplit('@', 1)
        domain = domain.lower()
        if domain in settings.CONTACT_BLOCKED_EMAIL_DOMAINS:
            raise serializers.ValidationError(
                "Disposable email addresses are not allowed"
            )

        return f"{local_part}@{domain}"

    @property
    def submission(self):
        """The validated form fields, without the honeypot."""
        data = dict(self.validated_data)
        data.pop('website', None)
        return data
