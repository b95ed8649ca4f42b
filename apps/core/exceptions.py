"""
Domain exceptions and the DRF exception handler.
"""
import logging
from rest_framework.views import exception_handler
from rest_framework.response import Response
from rest_framework import status

logger = logging.getLogger(__name__)


class PMSException(Exception):
    """Base exception for PMS-specific errors."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code = 'ERROR'

    def __init__(self, message, details=None, code=None):
        self.message = message
        self.details = details or {}
        self.code = code or self.default_code
        super().__init__(self.message)


class ValidationError(PMSException):
    """Raised when a required identifier is missing or invalid."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = 'VALIDATION_ERROR'


class NotFoundError(PMSException):
    """Raised when a referenced project, user or template does not exist."""
    status_code = status.HTTP_404_NOT_FOUND
    default_code = 'NOT_FOUND'


class AuthenticationError(PMSException):
    """Raised when authentication fails."""
    status_code = status.HTTP_401_UNAUTHORIZED
    default_code = 'AUTHENTICATION_FAILED'


class PermissionDeniedError(PMSException):
    """Raised when the caller lacks the required module permission."""
    status_code = status.HTTP_403_FORBIDDEN
    default_code = 'FORBIDDEN'


class StoreUnavailableError(PMSException):
    """
    Raised when the persistence layer fails during a permission read or write.

    Never converted into an empty override: a failed read must fail the
    request instead of resolving a matrix from partial data.
    """
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_code = 'STORE_UNAVAILABLE'


def custom_exception_handler(exc, context):
    """
    Custom exception handler that logs errors and returns consistent format.
    """
    request = context.get('request')
    request_id = getattr(request, 'request_id', None) if request else None

    if isinstance(exc, PMSException):
        log_method = logger.error if exc.status_code >= 500 else logger.warning
        log_method(
            f"API Exception: {exc.__class__.__name__}: {exc.message}",
            extra={
                'code': exc.code,
                'request_id': request_id,
                'path': request.path if request else None,
                'method': request.method if request else None,
            },
            exc_info=exc.status_code >= 500,
        )
        return Response(
            {
                'error': exc.message,
                'code': exc.code,
                'details': exc.details,
                'request_id': request_id,
            },
            status=exc.status_code
        )

    # Call DRF's default exception handler first
    response = exception_handler(exc, context)

    logger.error(
        f"API Exception: {exc.__class__.__name__}",
        extra={
            'exception': str(exc),
            'request_id': request_id,
            'path': request.path if request else None,
            'method': request.method if request else None,
        },
        exc_info=response is None
    )

    # If DRF didn't handle it, return a generic 500 error
    if response is None:
        return Response(
            {
                'error': 'Internal server error',
                'code': 'INTERNAL_ERROR',
                'request_id': request_id,
            },
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    # Add request_id to all error responses
    if request_id and isinstance(response.data, dict):
        response.data['request_id'] = request_id

    return response
