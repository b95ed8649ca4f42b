"""
Core middleware for request processing.
"""
import uuid
import time
import logging
import threading
from django.utils.deprecation import MiddlewareMixin

logger = logging.getLogger(__name__)

_request_context = threading.local()


class RequestIDMiddleware(MiddlewareMixin):
    """
    Inject a unique request_id into each request for tracing.

    The request_id is attached to the request, echoed in the X-Request-ID
    response header and made available to log records through LoggingFilter.
    """

    def process_request(self, request):
        """Generate and attach request_id to the request."""
        request_id = request.META.get('HTTP_X_REQUEST_ID') or str(uuid.uuid4())
        request.request_id = request_id
        request.start_time = time.monotonic()
        _request_context.request_id = request_id

    def process_response(self, request, response):
        """Add request_id to response headers and clear the logging context."""
        if hasattr(request, 'request_id'):
            response['X-Request-ID'] = request.request_id
            duration_ms = (time.monotonic() - getattr(request, 'start_time', time.monotonic())) * 1000
            logger.debug(
                f"{request.method} {request.path} -> {response.status_code}",
                extra={
                    'status_code': response.status_code,
                    'duration_ms': round(duration_ms, 2),
                }
            )
        clear_request_context()
        return response


def clear_request_context():
    for attr in ('request_id', 'project_id', 'user_id'):
        if hasattr(_request_context, attr):
            delattr(_request_context, attr)


def set_request_context(**values):
    """Attach project_id / user_id to log records for the current request."""
    for key, value in values.items():
        setattr(_request_context, key, value)


class LoggingFilter(logging.Filter):
    """
    Add request_id, project_id and user_id to log records from thread-local storage.
    """

    def filter(self, record):
        for attr in ('request_id', 'project_id', 'user_id'):
            value = getattr(_request_context, attr, None)
            if value is not None and not hasattr(record, attr):
                setattr(record, attr, value)
        return True
