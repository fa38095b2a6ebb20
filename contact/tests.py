"""
Tests for the contact form.
"""
import re
from smtplib import SMTPException
from unittest.mock import patch, MagicMock

import pytest
import requests
from kombu.exceptions import OperationalError

from contact.emails import build_owner_notification, send_owner_notification
from contact.rate_limiting import check_rate_limit, increment_rate_limit, get_client_ip
from contact.signals import contact_submitted
from contact.tasks import send_contact_auto_reply
from contact.views import generate_reference, DELIVERY_ERROR

REQUIRED_FIELDS = ['name', 'email', 'subject', 'message']


@pytest.fixture
def contact_data():
    return {
        'name': 'Ada Lovelace',
        'email': 'ada@example.com',
        'subject': 'Analytical engine',
        'message': 'I would like to know more about your work.\nThanks!',
    }


@pytest.fixture
def contact_settings(settings):
    settings.SITE_NAME = 'Test Site'
    settings.CONTACT_EMAIL_TO = 'owner@example.com'
    settings.CONTACT_EMAIL_FROM = 'mailer@example.com'
    settings.CONTACT_EMAIL_SUBJECT_PREFIX = ''
    settings.CONTACT_AUTO_REPLY_ENABLED = False
    settings.CONTACT_FORM_RATE_LIMIT_ENABLED = False
    settings.TURNSTILE_ENABLED = False
    return settings


class TestContactFormSubmission:
    """Test public contact form submission."""

    def test_submit_valid_contact_form(self, post_form, contact_data, contact_settings, mailoutbox):
        """Test successful contact form submission."""
        response = post_form('/contact', contact_data)

        assert response.status_code == 201
        assert 'Ada Lovelace' in response.content.decode()
        assert len(mailoutbox) == 1

    def test_confirmation_page_shows_reference(self, post_form, contact_data, contact_settings):
        response = post_form('/contact', contact_data)

        assert re.search(r'CNT-[0-9A-F]{8}', response.content.decode())

    def test_trailing_slash_accepted(self, post_form, contact_data, contact_settings):
        response = post_form('/contact/', contact_data)

        assert response.status_code == 201

    def test_name_is_escaped_in_page(self, post_form, contact_data, contact_settings):
        contact_data['name'] = 'Tom & Jerry'

        response = post_form('/contact', contact_data)

        assert response.status_code == 201
        assert 'Tom &amp; Jerry' in response.content.decode()

    def test_html_tags_stripped(self, post_form, contact_data, contact_settings, mailoutbox):
        contact_data['name'] = '<b>Ada</b> Lovelace'

        response = post_form('/contact', contact_data)

        assert response.status_code == 201
        assert '<b>' not in mailoutbox[0].body
        assert 'Ada Lovelace' in mailoutbox[0].body

    def test_message_forwarded_verbatim(self, post_form, contact_data, contact_settings, mailoutbox):
        """Test angle brackets in the message reach the owner unchanged."""
        contact_data['message'] = 'Use <div> and a<b then b>c & more'

        response = post_form('/contact', contact_data)

        assert response.status_code == 201
        assert 'Use <div> and a<b then b>c & more' in mailoutbox[0].body

    def test_message_escaped_in_html_alternative(self, post_form, contact_data, contact_settings, mailoutbox):
        contact_data['message'] = 'Use <div> please'

        post_form('/contact', contact_data)

        html, _ = mailoutbox[0].alternatives[0]
        assert 'Use &lt;div&gt; please' in html

    def test_email_local_part_preserved(self, post_form, contact_data, contact_settings, mailoutbox):
        contact_data['email'] = 'Ada.Lovelace@Example.COM'

        post_form('/contact', contact_data)

        assert mailoutbox[0].reply_to == ['Ada.Lovelace@example.com']

    def test_json_response(self, post_form, contact_data, contact_settings):
        """Test clients asking for JSON get JSON."""
        response = post_form('/contact', contact_data, HTTP_ACCEPT='application/json')

        assert response.status_code == 201
        data = response.json()
        assert data['success'] is True
        assert data['name'] == 'Ada Lovelace'
        assert data['reference'].startswith('CNT-')

    def test_get_not_allowed(self, api_client, contact_settings):
        response = api_client.get('/contact')

        assert response.status_code == 405


class TestContactFormValidation:
    """Test rejected submissions."""

    @pytest.mark.parametrize('missing', REQUIRED_FIELDS)
    def test_missing_required_field(self, post_form, contact_data, contact_settings, mailoutbox, missing):
        """Test submission with a missing field."""
        del contact_data[missing]

        response = post_form('/contact', contact_data)

        assert response.status_code == 400
        assert len(mailoutbox) == 0

    def test_all_fields_missing(self, post_form, contact_settings, mailoutbox):
        response = post_form('/contact', {})

        assert response.status_code == 400
        assert len(mailoutbox) == 0

    @pytest.mark.parametrize('blank', REQUIRED_FIELDS)
    def test_blank_field(self, post_form, contact_data, contact_settings, blank):
        contact_data[blank] = '   '

        response = post_form('/contact', contact_data)

        assert response.status_code == 400

    def test_tags_only_field_is_blank(self, post_form, contact_data, contact_settings):
        contact_data['name'] = '<p></p>'

        response = post_form('/contact', contact_data)

        assert response.status_code == 400

    @pytest.mark.parametrize('subject', [
        'Hi\nBcc: victim@example.com',
        'Hi\r\nBcc: victim@example.com',
        'Hi\rthere',
    ])
    def test_multiline_subject_rejected(self, post_form, contact_data, contact_settings, mailoutbox, subject):
        """Test line breaks cannot reach the email Subject header."""
        contact_data['subject'] = subject

        response = post_form('/contact', contact_data, HTTP_ACCEPT='application/json')

        assert response.status_code == 400
        assert 'subject' in response.json()['fields']
        assert len(mailoutbox) == 0

    @pytest.mark.parametrize('body', ['[1]', '"hello"', '42', 'null'])
    def test_non_object_json_body_rejected(self, api_client, contact_settings, mailoutbox, body):
        """Test a JSON body that is not an object is a bad request."""
        response = api_client.post('/contact', body, content_type='application/json')

        assert response.status_code == 400
        assert len(mailoutbox) == 0

    def test_non_object_json_body_with_rate_limit(self, api_client, contact_settings):
        contact_settings.CONTACT_FORM_RATE_LIMIT_ENABLED = True

        response = api_client.post('/contact', '[1]', content_type='application/json')

        assert response.status_code == 400

    def test_non_string_json_email_with_rate_limit(self, api_client, contact_data, contact_settings):
        contact_settings.CONTACT_FORM_RATE_LIMIT_ENABLED = True
        contact_data['email'] = 12345

        response = api_client.post('/contact', contact_data, format='json')

        assert response.status_code == 400

    def test_missing_field_json_errors(self, post_form, contact_data, contact_settings):
        del contact_data['subject']

        response = post_form('/contact', contact_data, HTTP_ACCEPT='application/json')

        assert response.status_code == 400
        data = response.json()
        assert data['success'] is False
        assert 'subject' in data['fields']

    def test_error_page_rendered(self, post_form, contact_settings):
        response = post_form('/contact', {'name': 'Ada'})

        assert 'Your message was not sent' in response.content.decode()

    def test_submit_invalid_email(self, post_form, contact_data, contact_settings):
        """Test submission with invalid email."""
        contact_data['email'] = 'invalid-email'

        response = post_form('/contact', contact_data)

        assert response.status_code == 400

    def test_disposable_email_rejected(self, post_form, contact_data, contact_settings):
        contact_data['email'] = 'someone@mailinator.com'

        response = post_form('/contact', contact_data)

        assert response.status_code == 400

    def test_honeypot_spam_detection(self, post_form, contact_data, contact_settings, mailoutbox):
        """Test honeypot field for spam detection."""
        contact_data['website'] = 'http://spam.com'

        response = post_form('/contact', contact_data)

        assert response.status_code == 400
        assert len(mailoutbox) == 0


class TestMailFailure:
    """Test transport failures reach the submitter as a 500."""

    def test_smtp_failure_returns_500(self, post_form, contact_data, contact_settings):
        with patch('contact.views.send_owner_notification', side_effect=SMTPException('auth failed')):
            response = post_form('/contact', contact_data)

        assert response.status_code == 500
        assert DELIVERY_ERROR in response.content.decode()

    def test_connection_failure_returns_500(self, post_form, contact_data, contact_settings):
        with patch('contact.views.send_owner_notification', side_effect=ConnectionRefusedError()):
            response = post_form('/contact', contact_data, HTTP_ACCEPT='application/json')

        assert response.status_code == 500
        assert response.json()['success'] is False

    def test_no_signal_on_failure(self, post_form, contact_data, contact_settings):
        receiver = MagicMock()
        contact_submitted.connect(receiver, weak=False)
        try:
            with patch('contact.views.send_owner_notification', side_effect=SMTPException()):
                post_form('/contact', contact_data)
        finally:
            contact_submitted.disconnect(receiver)

        receiver.assert_not_called()


class TestOwnerNotification:
    """Test the email delivered to the site owner."""

    def test_single_message_with_expected_fields(self, contact_settings, contact_data, mailoutbox):
        send_owner_notification(contact_data, 'CNT-0000ABCD')

        assert len(mailoutbox) == 1
        email = mailoutbox[0]
        assert email.subject == 'Analytical engine'
        assert email.from_email == 'mailer@example.com'
        assert email.to == ['owner@example.com']
        assert email.reply_to == ['ada@example.com']
        assert contact_data['message'] in email.body
        assert 'Ada Lovelace' in email.body
        assert 'CNT-0000ABCD' in email.body

    def test_html_alternative(self, contact_settings, contact_data):
        email = build_owner_notification(contact_data, 'CNT-0000ABCD')

        html, mimetype = email.alternatives[0]
        assert mimetype == 'text/html'
        assert 'Ada Lovelace' in html

    def test_subject_prefix(self, contact_settings, contact_data):
        contact_settings.CONTACT_EMAIL_SUBJECT_PREFIX = '[Website] '

        email = build_owner_notification(contact_data, 'CNT-0000ABCD')

        assert email.subject == '[Website] Analytical engine'

    def test_text_body_not_escaped(self, contact_settings, contact_data):
        contact_data['message'] = 'Fish & chips <3'

        email = build_owner_notification(contact_data, 'CNT-0000ABCD')

        assert 'Fish & chips <3' in email.body

    def test_submitted_form_reaches_owner(self, post_form, contact_data, contact_settings, mailoutbox):
        post_form('/contact', contact_data)

        email = mailoutbox[0]
        assert email.subject == contact_data['subject']
        assert email.to == ['owner@example.com']
        assert contact_data['message'] in email.body


class TestAutoReply:
    """Test the optional thank-you email."""

    def test_disabled_by_default(self, post_form, contact_data, contact_settings):
        with patch('contact.views.send_contact_auto_reply') as task:
            post_form('/contact', contact_data)

        task.delay.assert_not_called()

    def test_queued_when_enabled(self, post_form, contact_data, contact_settings):
        contact_settings.CONTACT_AUTO_REPLY_ENABLED = True

        with patch('contact.views.send_contact_auto_reply') as task:
            response = post_form('/contact', contact_data, HTTP_ACCEPT='application/json')

        task.delay.assert_called_once_with(
            'Ada Lovelace', 'ada@example.com', 'Analytical engine', response.json()['reference']
        )

    def test_broker_down_still_succeeds(self, post_form, contact_data, contact_settings, mailoutbox):
        contact_settings.CONTACT_AUTO_REPLY_ENABLED = True

        with patch('contact.views.send_contact_auto_reply') as task:
            task.delay.side_effect = OperationalError('broker unavailable')
            response = post_form('/contact', contact_data)

        assert response.status_code == 201
        assert len(mailoutbox) == 1

    def test_auto_reply_task(self, contact_settings, mailoutbox):
        result = send_contact_auto_reply('Ada Lovelace', 'ada@example.com', 'Hello', 'CNT-0000ABCD')

        assert result == 'Auto-reply sent to ada@example.com'
        assert len(mailoutbox) == 1
        email = mailoutbox[0]
        assert email.to == ['ada@example.com']
        assert email.reply_to == ['owner@example.com']
        assert 'CNT-0000ABCD' in email.body
        assert 'Test Site' in email.subject


class TestRateLimiting:
    """Test rate limiting for contact form."""

    def test_rate_limit_per_hour(self, post_form, contact_data, contact_settings):
        """Test IP-based rate limiting."""
        contact_settings.CONTACT_FORM_RATE_LIMIT_ENABLED = True
        contact_settings.CONTACT_FORM_RATE_LIMIT_PER_HOUR = 3

        for i in range(3):
            contact_data['email'] = f'user{i}@example.com'
            response = post_form('/contact', contact_data)
            assert response.status_code == 201

        contact_data['email'] = 'user4@example.com'
        response = post_form('/contact', contact_data)
        assert response.status_code == 429
        assert int(response['Retry-After']) > 0

    def test_rate_limit_per_email(self, post_form, contact_data, contact_settings):
        contact_settings.CONTACT_FORM_RATE_LIMIT_ENABLED = True
        contact_settings.CONTACT_FORM_RATE_LIMIT_PER_HOUR = 100
        contact_settings.CONTACT_FORM_RATE_LIMIT_PER_DAY = 2

        for _ in range(2):
            assert post_form('/contact', contact_data).status_code == 201

        response = post_form('/contact', contact_data, HTTP_ACCEPT='application/json')
        assert response.status_code == 429
        assert response.json()['retry_after'] > 0

    def test_rejected_submissions_not_counted(self, post_form, contact_data, contact_settings):
        contact_settings.CONTACT_FORM_RATE_LIMIT_ENABLED = True
        contact_settings.CONTACT_FORM_RATE_LIMIT_PER_HOUR = 1

        for _ in range(3):
            assert post_form('/contact', {'name': 'Ada'}).status_code == 400

        assert post_form('/contact', contact_data).status_code == 201

    def test_disabled_by_default(self, post_form, contact_data, contact_settings):
        for _ in range(10):
            assert post_form('/contact', contact_data).status_code == 201

    def test_check_and_increment(self):
        assert check_rate_limit('10.0.0.1', 'ip', 2, 1) == (True, 0)

        increment_rate_limit('10.0.0.1', 'ip', 1)
        assert check_rate_limit('10.0.0.1', 'ip', 2, 1) == (True, 0)

        increment_rate_limit('10.0.0.1', 'ip', 1)
        allowed, retry_after = check_rate_limit('10.0.0.1', 'ip', 2, 1)
        assert allowed is False
        assert 0 < retry_after <= 3600

    def test_client_ip_from_forwarded_header(self, rf):
        request = rf.get('/', HTTP_X_FORWARDED_FOR='203.0.113.7, 10.0.0.1')

        assert get_client_ip(request) == '203.0.113.7'


class TestTurnstile:
    """Test the optional CAPTCHA check."""

    @pytest.fixture
    def turnstile_on(self, contact_settings):
        contact_settings.TURNSTILE_ENABLED = True
        contact_settings.TURNSTILE_SECRET_KEY = 'secret'
        return contact_settings

    def _verify_response(self, success):
        response = MagicMock()
        response.json.return_value = {'success': success, 'error-codes': []}
        return response

    def test_missing_token_rejected(self, post_form, contact_data, turnstile_on, mailoutbox):
        response = post_form('/contact', contact_data)

        assert response.status_code == 400
        assert len(mailoutbox) == 0

    def test_valid_token_accepted(self, post_form, contact_data, turnstile_on):
        contact_data['cf-turnstile-response'] = 'token'

        with patch('core.turnstile_service.requests.post', return_value=self._verify_response(True)) as post:
            response = post_form('/contact', contact_data)

        assert response.status_code == 201
        assert post.call_args.kwargs['data']['response'] == 'token'

    def test_invalid_token_rejected(self, post_form, contact_data, turnstile_on):
        contact_data['cf-turnstile-response'] = 'token'

        with patch('core.turnstile_service.requests.post', return_value=self._verify_response(False)):
            response = post_form('/contact', contact_data)

        assert response.status_code == 400

    def test_network_error_fails_closed(self, post_form, contact_data, turnstile_on):
        contact_data['cf-turnstile-response'] = 'token'

        with patch('core.turnstile_service.requests.post', side_effect=requests.exceptions.ConnectionError()):
            response = post_form('/contact', contact_data)

        assert response.status_code == 400


class TestContactSignal:

    def test_signal_sent_on_success(self, post_form, contact_data, contact_settings):
        receiver = MagicMock()
        contact_submitted.connect(receiver, weak=False)
        try:
            post_form('/contact', contact_data)
        finally:
            contact_submitted.disconnect(receiver)

        receiver.assert_called_once()
        kwargs = receiver.call_args.kwargs
        assert kwargs['submission']['name'] == 'Ada Lovelace'
        assert kwargs['reference'].startswith('CNT-')


def test_reference_format():
    reference = generate_reference()

    assert re.fullmatch(r'CNT-[0-9A-F]{8}', reference)
    assert len(reference) == 12
