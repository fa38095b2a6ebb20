"""
Shared pytest fixtures.
"""
from urllib.parse import urlencode

import pytest
from django.core.cache import cache
from rest_framework.test import APIClient


@pytest.fixture(autouse=True)
def clear_cache():
    """Clear cache before and after each test to prevent pollution."""
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def api_client():
    """API client for making requests."""
    return APIClient()


@pytest.fixture
def post_form(api_client):
    """POST a URL-encoded form, the way a browser submits the contact form."""
    def _post(path, data, **extra):
        return api_client.post(
            path,
            urlencode(data),
            content_type='application/x-www-form-urlencoded',
            **extra
        )
    return _post
