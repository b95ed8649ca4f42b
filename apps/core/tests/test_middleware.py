"""
Tests for request ID middleware.
"""
from django.http import HttpResponse
from django.test import RequestFactory

from apps.core.middleware import RequestIDMiddleware, _request_context


def make_middleware():
    return RequestIDMiddleware(lambda request: HttpResponse('ok'))


class TestRequestIDMiddleware:

    def test_generates_request_id(self):
        request = RequestFactory().get('/v1/health')

        response = make_middleware()(request)

        assert request.request_id
        assert response['X-Request-ID'] == request.request_id

    def test_keeps_incoming_request_id(self):
        request = RequestFactory().get('/v1/health', HTTP_X_REQUEST_ID='upstream-123')

        response = make_middleware()(request)

        assert response['X-Request-ID'] == 'upstream-123'

    def test_clears_context_after_response(self):
        make_middleware()(RequestFactory().get('/v1/health'))

        assert not hasattr(_request_context, 'request_id')
