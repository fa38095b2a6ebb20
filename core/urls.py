"""
URL configuration for the static site and contact form server.

Routes are matched in order: the contact endpoint and health check come
first, everything else is looked up in the public website directory.
"""
from django.urls import path, re_path, include

from core.views import health_check, site_file

urlpatterns = [
    path('', include('contact.urls')),
    path('health', health_check, name='health'),
    re_path(r'^(?P<path>.*)$', site_file, name='site-file'),
]
