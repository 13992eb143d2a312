import logging

from django.http import JsonResponse

from clube.jwt_utils import get_user_id_from_token

logger = logging.getLogger(__name__)


class TokenAuthMiddleware:
    """
    Resolve the current user from the identity provider's bearer token.

    Sets ``request.user_id`` and ``request.is_authenticated`` for downstream
    views; every non-exempt path requires a valid token. Browsers cannot set
    headers on an EventSource, so event stream paths also accept the token
    as a ``token`` query parameter.
    """

    def __init__(self, get_response):
        self.get_response = get_response
        # URLs that don't require authentication
        self.exempt_urls = [
            '/ping/',
            '/admin/',
            '/static/',
        ]

    def __call__(self, request):
        request.user_id = None
        request.is_authenticated = False

        if self._is_exempt_url(request.path):
            return self.get_response(request)

        token = self._get_token(request)
        if not token:
            return JsonResponse({'error': 'Authentication required'}, status=401)

        user_id = get_user_id_from_token(token)
        if not user_id:
            logger.info(f"Rejected request to {request.path}: invalid token")
            return JsonResponse({'error': 'Invalid authentication token'}, status=401)

        request.user_id = user_id
        request.is_authenticated = True

        return self.get_response(request)

    def _get_token(self, request):
        auth_header = request.META.get('HTTP_AUTHORIZATION', '')
        parts = auth_header.split()
        if len(parts) == 2 and parts[0] == 'Bearer':
            return parts[1]

        if not auth_header and request.path.endswith('/events/'):
            return request.GET.get('token')

        return None

    def _is_exempt_url(self, path):
        """Check if the URL path is exempt from authentication"""
        return any(path.startswith(exempt_url) for exempt_url in self.exempt_urls)
