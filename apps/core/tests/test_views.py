"""
Tests for core views.
"""
import pytest
from unittest.mock import patch
from django.db import DatabaseError
from django.urls import reverse
from rest_framework.test import APIClient


@pytest.mark.django_db
class TestHealthCheckView:
    """Test health check endpoint."""

    def test_health_check_success(self):
        response = APIClient().get(reverse('health-check'))

        assert response.status_code == 200
        assert response.data == {'status': 'healthy', 'database': 'healthy'}

    def test_health_check_ignores_bad_token(self):
        client = APIClient()
        client.credentials(HTTP_AUTHORIZATION='Bearer garbage')

        response = client.get(reverse('health-check'))

        assert response.status_code == 200

    def test_health_check_database_down(self):
        with patch('apps.core.views.connection.cursor', side_effect=DatabaseError('connection refused')):
            response = APIClient().get(reverse('health-check'))

        assert response.status_code == 503
        assert response.data['status'] == 'unhealthy'
        assert response.data['database'] == 'unhealthy'
        assert 'connection refused' in response.data['errors'][0]

    def test_response_carries_request_id(self):
        response = APIClient().get(reverse('health-check'), HTTP_X_REQUEST_ID='req-abc')

        assert response['X-Request-ID'] == 'req-abc'
