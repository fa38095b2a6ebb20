"""
Response helpers shared by the contact views and decorators.
"""
from rest_framework.response import Response

ERROR_TEMPLATE = 'contact/error.html'


def error_response(error, status_code, fields=None, headers=None, **extra):
    """
    Build an error response rendered as the contact error page, or as JSON
    when the client asks for it.
    """
    data = {
        'success': False,
        'error': error,
        **extra,
    }
    if fields:
        data['fields'] = fields

    return Response(
        data,
        status=status_code,
        template_name=ERROR_TEMPLATE,
        headers=headers,
    )
