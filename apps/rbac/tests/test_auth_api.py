"""
Tests for login, token authentication and the current user endpoint.
"""
from datetime import datetime, timedelta, timezone as dt_timezone
import jwt
import pytest
from django.conf import settings
from django.urls import reverse

from apps.rbac.models import AuditLog
from apps.rbac.services import AuthService


@pytest.mark.django_db
class TestLogin:
    """Test POST /v1/auth/login."""

    def test_login_success(self, api_client, user):
        response = api_client.post(reverse('auth:login'), {
            'email': 'engineer@Example.COM',
            'password': 'testpass123',
        }, format='json')

        assert response.status_code == 200
        assert response.data['user']['email'] == 'engineer@example.com'
        assert response.data['user']['full_name'] == 'Site Engineer'
        assert AuthService.validate_jwt(response.data['token'])['user_id'] == str(user.id)

        user.refresh_from_db()
        assert user.last_login_at is not None
        assert AuditLog.objects.filter(action='user_login', user=user).exists()

    def test_wrong_password(self, api_client, user):
        response = api_client.post(reverse('auth:login'), {
            'email': 'engineer@example.com',
            'password': 'wrong',
        }, format='json')

        assert response.status_code == 401
        assert response.data == {'error': 'Invalid email or password'}

    def test_unknown_email(self, api_client, db):
        response = api_client.post(reverse('auth:login'), {
            'email': 'nobody@example.com',
            'password': 'testpass123',
        }, format='json')

        assert response.status_code == 401

    def test_inactive_user(self, api_client, user):
        user.is_active = False
        user.save()

        response = api_client.post(reverse('auth:login'), {
            'email': 'engineer@example.com',
            'password': 'testpass123',
        }, format='json')

        assert response.status_code == 401

    def test_invalid_payload(self, api_client, db):
        response = api_client.post(reverse('auth:login'), {'email': 'not-an-email'}, format='json')

        assert response.status_code == 400
        assert response.data['error'] == 'Validation error'
        assert 'password' in response.data['details']


@pytest.mark.django_db
class TestTokenAuthentication:
    """Test bearer token handling on authenticated endpoints."""

    def test_me_with_token(self, api_client, user):
        token = AuthService.generate_jwt(user)
        api_client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')

        response = api_client.get(reverse('auth:profile'))

        assert response.status_code == 200
        assert response.data['id'] == str(user.id)
        assert response.data['is_superuser'] is False

    def test_me_without_token(self, api_client, db):
        response = api_client.get(reverse('auth:profile'))

        assert response.status_code == 401

    def test_garbage_token(self, api_client, db):
        api_client.credentials(HTTP_AUTHORIZATION='Bearer not.a.token')

        response = api_client.get(reverse('auth:profile'))

        assert response.status_code == 401

    def test_expired_token(self, api_client, user):
        now = datetime.now(dt_timezone.utc)
        token = jwt.encode(
            {'user_id': str(user.id), 'exp': now - timedelta(hours=1), 'iat': now - timedelta(hours=2)},
            settings.JWT_SECRET_KEY,
            algorithm=settings.JWT_ALGORITHM
        )
        api_client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')

        response = api_client.get(reverse('auth:profile'))

        assert response.status_code == 401

    def test_token_for_deleted_user(self, api_client, user):
        token = AuthService.generate_jwt(user)
        user.delete()
        api_client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')

        response = api_client.get(reverse('auth:profile'))

        assert response.status_code == 401

    def test_malformed_header(self, api_client, db):
        api_client.credentials(HTTP_AUTHORIZATION='Bearer')

        response = api_client.get(reverse('auth:profile'))

        assert response.status_code == 401
