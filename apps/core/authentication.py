"""
Custom DRF authentication classes.
"""
import logging
from rest_framework.authentication import BaseAuthentication, get_authorization_header
from rest_framework import exceptions

logger = logging.getLogger(__name__)


class JWTAuthentication(BaseAuthentication):
    """
    Authenticate requests carrying ``Authorization: Bearer <token>``.

    Tokens are issued by ``AuthService.login`` and decoded with the
    ``JWT_SECRET_KEY`` setting. Requests without a bearer header are left
    unauthenticated so public endpoints keep working.
    """

    keyword = 'Bearer'

    def authenticate(self, request):
        """
        Return (user, payload) for a valid token, None when no token is sent.

        Raises:
            AuthenticationFailed: header present but malformed, token invalid
                or expired, or the user is inactive.
        """
        auth = get_authorization_header(request).split()

        if not auth or auth[0].lower() != self.keyword.lower().encode():
            return None

        if len(auth) != 2:
            raise exceptions.AuthenticationFailed('Invalid Authorization header. Expected "Bearer <token>".')

        try:
            token = auth[1].decode()
        except UnicodeError:
            raise exceptions.AuthenticationFailed('Invalid token encoding.')

        # Local import: rbac models need the app registry
        from apps.rbac.services import AuthService

        payload = AuthService.validate_jwt(token)
        if payload is None:
            raise exceptions.AuthenticationFailed('Invalid or expired token.')

        user = AuthService.get_user_from_payload(payload)
        if user is None:
            logger.info(
                "JWT rejected: user missing or inactive",
                extra={'token_user_id': payload.get('user_id')}
            )
            raise exceptions.AuthenticationFailed('User not found or inactive.')

        return (user, payload)

    def authenticate_header(self, request):
        return self.keyword
