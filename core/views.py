"""
Public website views.

Files under SITE_ROOT are returned byte-for-byte; directories resolve to
their index.html.
"""
import logging
import posixpath
from pathlib import Path

from django.conf import settings
from django.core.exceptions import SuspiciousFileOperation
from django.http import Http404, JsonResponse
from django.utils._os import safe_join
from django.views.decorators.http import require_safe
from django.views.static import serve

logger = logging.getLogger(__name__)

INDEX_FILE = 'index.html'


def resolve_site_path(path):
    """
    Map a request path onto a file path relative to SITE_ROOT.

    Raises Http404 for paths that escape SITE_ROOT.
    """
    path = posixpath.normpath(path).lstrip('/')
    if path in ('', '.'):
        return INDEX_FILE

    try:
        fullpath = Path(safe_join(settings.SITE_ROOT, path))
    except SuspiciousFileOperation:
        logger.warning(f"Rejected path outside site root: {path!r}")
        raise Http404('Page not found')

    if fullpath.is_dir():
        return posixpath.join(path, INDEX_FILE)
    return path


def site_file(request, path=''):
    """
    Serve a file from the public website directory.

    Only GET and HEAD reach a file; any other method has no route here.
    """
    if request.method not in ('GET', 'HEAD'):
        raise Http404('Page not found')
    return serve(request, resolve_site_path(path), document_root=settings.SITE_ROOT)


@require_safe
def health_check(request):
    """Health check endpoint."""
    return JsonResponse({
        'status': 'ok',
        'site_root_exists': Path(settings.SITE_ROOT).is_dir(),
    })
