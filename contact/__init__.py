"""
Contact Form App

Handles contact form submissions from the public website:
- Validation and sanitising of the submitted fields
- Email notification to the site owner
- Optional auto-reply to the submitter (Celery)
- Optional rate limiting and Turnstile CAPTCHA for spam prevention
"""
