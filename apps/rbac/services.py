"""
Authentication services.

Implements:
- AuthService: JWT issue and validation, email/password login
"""
import logging
from typing import Optional, Dict, Any
from datetime import datetime, timedelta, timezone as dt_timezone
from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
import jwt

from apps.core.logging import SecurityLogger
from apps.rbac.models import User, AuditLog

logger = logging.getLogger(__name__)


class AuthService:
    """
    Service for authentication operations: JWT and login.
    """

    @classmethod
    def generate_jwt(cls, user: User) -> str:
        """
        Generate JWT token for a user.

        Args:
            user: User instance

        Returns:
            JWT token string
        """
        now = datetime.now(dt_timezone.utc)
        payload = {
            'user_id': str(user.id),
            'email': user.email,
            'exp': now + timedelta(hours=getattr(settings, 'JWT_EXPIRATION_HOURS', 24)),
            'iat': now,
        }

        return jwt.encode(
            payload,
            settings.JWT_SECRET_KEY,
            algorithm=getattr(settings, 'JWT_ALGORITHM', 'HS256')
        )

    @classmethod
    def validate_jwt(cls, token: str) -> Optional[Dict[str, Any]]:
        """
        Validate JWT token and return payload.

        Args:
            token: JWT token string

        Returns:
            Decoded payload dict or None if invalid
        """
        try:
            return jwt.decode(
                token,
                settings.JWT_SECRET_KEY,
                algorithms=[getattr(settings, 'JWT_ALGORITHM', 'HS256')]
            )
        except jwt.ExpiredSignatureError:
            logger.info("JWT expired")
            return None
        except jwt.InvalidTokenError:
            return None

    @classmethod
    def get_user_from_payload(cls, payload: Dict[str, Any]) -> Optional[User]:
        """Return the active user named by a decoded token payload."""
        user_id = payload.get('user_id')
        if not user_id:
            return None

        try:
            return User.objects.get(id=user_id, is_active=True)
        except (User.DoesNotExist, DjangoValidationError, ValueError):
            return None

    @classmethod
    def login(cls, email: str, password: str, request=None) -> Optional[Dict[str, Any]]:
        """
        Authenticate user and return JWT token.

        Args:
            email: User email
            password: User password
            request: Optional request, used for audit and security logs

        Returns:
            Dict with user and token, or None if authentication failed
        """
        ip_address = request.META.get('REMOTE_ADDR') if request is not None else None
        user_agent = request.META.get('HTTP_USER_AGENT') if request is not None else None

        user = User.objects.active().filter(email=User.objects.normalize_email(email)).first()
        if user is None or not user.check_password(password):
            SecurityLogger.log_failed_login(
                email=email,
                ip_address=ip_address,
                user_agent=user_agent,
                reason='unknown_user' if user is None else 'invalid_password'
            )
            return None

        user.update_last_login()
        token = cls.generate_jwt(user)

        AuditLog.log_action(
            action='user_login',
            user=user,
            target_type='User',
            target_id=user.id,
            request=request,
        )

        return {
            'user': user,
            'token': token,
        }
