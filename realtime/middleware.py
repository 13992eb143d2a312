import logging
from urllib.parse import parse_qs

from channels.middleware import BaseMiddleware

from clube.jwt_utils import get_user_id_from_token

logger = logging.getLogger(__name__)


class WebSocketAuthMiddleware(BaseMiddleware):
    """
    Authenticate websocket connections from a ``token`` query parameter.

    Browsers cannot set headers on a websocket handshake. Sets
    ``scope['user_id']`` or closes the connection with code 4001.
    """

    async def __call__(self, scope, receive, send):
        query_params = parse_qs(scope.get('query_string', b'').decode())
        token = query_params.get('token', [None])[0]

        user_id = get_user_id_from_token(token) if token else None
        if not user_id:
            logger.info(f"Rejected websocket connection to {scope.get('path')}: missing or invalid token")
            await send({
                'type': 'websocket.close',
                'code': 4001,
                'reason': 'Authentication required'
            })
            return

        scope['user_id'] = user_id
        return await super().__call__(scope, receive, send)
