"""
Tests for domain exceptions and the API exception handler.
"""
from unittest.mock import Mock
from rest_framework.exceptions import NotAuthenticated

from apps.core.exceptions import (
    NotFoundError, PermissionDeniedError, StoreUnavailableError, ValidationError,
    custom_exception_handler,
)


def context(request_id='req-1'):
    request = Mock(path='/v1/x', method='GET', request_id=request_id)
    return {'request': request, 'view': Mock()}


class TestExceptionHandler:

    def test_validation_error(self):
        response = custom_exception_handler(
            ValidationError('project_id is required', details={'field': 'project_id'}), context()
        )

        assert response.status_code == 400
        assert response.data == {
            'error': 'project_id is required',
            'code': 'VALIDATION_ERROR',
            'details': {'field': 'project_id'},
            'request_id': 'req-1',
        }

    def test_status_codes(self):
        assert custom_exception_handler(NotFoundError('x'), context()).status_code == 404
        assert custom_exception_handler(PermissionDeniedError('x'), context()).status_code == 403
        assert custom_exception_handler(StoreUnavailableError('x'), context()).status_code == 503

    def test_custom_code(self):
        response = custom_exception_handler(ValidationError('x', code='UNKNOWN_ROLE'), context())

        assert response.data['code'] == 'UNKNOWN_ROLE'

    def test_drf_exception_gets_request_id(self):
        response = custom_exception_handler(NotAuthenticated(), context('req-2'))

        assert response.status_code == 401
        assert response.data['request_id'] == 'req-2'

    def test_unhandled_exception(self):
        response = custom_exception_handler(RuntimeError('boom'), context())

        assert response.status_code == 500
        assert response.data['code'] == 'INTERNAL_ERROR'
        assert 'boom' not in str(response.data)
