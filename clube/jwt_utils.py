"""
JWT utilities for the Clube application.

Tokens are issued by the hosted identity provider; this module only
validates them and, for tests, mints tokens signed with the same secret.
"""

import logging
import time

import jwt
from django.conf import settings

logger = logging.getLogger(__name__)


class JWTManager:
    """
    JWT Manager for token generation and validation.
    """

    def __init__(self):
        # Don't access settings immediately
        self._secret = None
        self._algorithm = None

    def _get_secret(self):
        """Get the signing secret, with lazy loading."""
        if self._secret is None:
            self._secret = getattr(settings, 'JWT_SECRET', 'test_jwt_secret_key')
        return self._secret

    def _get_algorithm(self):
        """Get the JWT algorithm, with lazy loading."""
        if self._algorithm is None:
            self._algorithm = getattr(settings, 'JWT_ALGORITHM', 'HS256')
        return self._algorithm

    def _get_verification_key(self):
        # HS* shares the secret; asymmetric algorithms use the provider's public key
        if self._get_algorithm().startswith('HS'):
            return self._get_secret()
        return getattr(settings, 'JWT_PUBLIC_KEY', None) or self._get_secret()

    def generate_token(self, user_id, expires_in_hours=24):
        """
        Generate a JWT token for testing purposes.

        Args:
            user_id (str): The user ID to include in the token
            expires_in_hours (int): Token expiration time in hours

        Returns:
            str: JWT token string
        """
        now = int(time.time())
        payload = {
            'sub': user_id,
            'iat': now,
            'exp': now + (expires_in_hours * 3600),
        }
        audience = getattr(settings, 'JWT_AUDIENCE', None)
        issuer = getattr(settings, 'JWT_ISSUER', None)
        if audience:
            payload['aud'] = audience
        if issuer:
            payload['iss'] = issuer

        return jwt.encode(payload, self._get_secret(), algorithm=self._get_algorithm())

    def validate_token(self, token):
        """
        Validate a JWT token and extract the payload.

        Raises:
            jwt.InvalidTokenError: If token is invalid or expired
        """
        audience = getattr(settings, 'JWT_AUDIENCE', None)
        issuer = getattr(settings, 'JWT_ISSUER', None)
        try:
            return jwt.decode(
                token,
                self._get_verification_key(),
                algorithms=[self._get_algorithm()],
                audience=audience,
                issuer=issuer,
                options={'verify_aud': bool(audience), 'verify_iss': bool(issuer)},
            )
        except jwt.ExpiredSignatureError:
            raise jwt.InvalidTokenError("Token has expired")
        except jwt.InvalidTokenError as e:
            raise jwt.InvalidTokenError(f"Invalid token: {str(e)}")

    def extract_user_id(self, token):
        """
        Extract user ID from a JWT token.

        Returns:
            str: User ID from token, or None if invalid
        """
        try:
            payload = self.validate_token(token)
        except jwt.InvalidTokenError as e:
            logger.warning(f"JWT validation failed: {e}")
            return None
        return payload.get('sub') or payload.get('user_id')


_jwt_manager = None


def _get_jwt_manager():
    """Get the global JWT manager instance, creating it if needed."""
    global _jwt_manager
    if _jwt_manager is None:
        _jwt_manager = JWTManager()
    return _jwt_manager


def generate_test_token(user_id, expires_in_hours=24):
    """Generate a test JWT token for the given user ID."""
    return _get_jwt_manager().generate_token(user_id, expires_in_hours)


def validate_jwt_token(token):
    """Validate a JWT token and return the payload."""
    return _get_jwt_manager().validate_token(token)


def get_user_id_from_token(token):
    """Extract user ID from JWT token."""
    return _get_jwt_manager().extract_user_id(token)
