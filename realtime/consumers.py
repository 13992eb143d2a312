import asyncio
import json
import logging

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncWebsocketConsumer

from .subscriber import LiveUpdateSubscriber
from .views import check_stream_access

logger = logging.getLogger(__name__)

# Close code sent when the layer stops delivering; clients reconnect on it
STALLED_CLOSE_CODE = 4503


class ChannelEventsConsumer(AsyncWebsocketConsumer):
    """
    WebSocket feed of new messages in one chat channel.

    The same access rules as the event stream apply; a refused connection
    is closed with ``4000 + <http status>`` (4402, 4403, 4404, 4429).
    Messages are sent as ``{"type": "chat_message", "message": {...}}``.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.user_id = None
        self.chat_channel_id = None
        self.subscriber = None

    async def connect(self):
        self.user_id = self.scope.get('user_id')
        if not self.user_id:
            await self.close(code=4001)
            return

        self.chat_channel_id = self.scope['url_route']['kwargs']['channel_id']
        denied = await database_sync_to_async(check_stream_access)(self.user_id, self.chat_channel_id)
        if denied:
            status, body = denied
            logger.info(f"Refused websocket for channel {self.chat_channel_id} to {self.user_id}: {body['error']}")
            await self.close(code=4000 + status)
            return

        await self.accept()

        self.subscriber = LiveUpdateSubscriber(
            self.chat_channel_id,
            self.send_chat_message,
            on_stall=self.handle_stall,
        )
        await self.subscriber.subscribe()

        await self.send(text_data=json.dumps({
            'type': 'channel_joined',
            'channel_id': self.chat_channel_id
        }))

    async def disconnect(self, code):
        if self.subscriber:
            await self.subscriber.unsubscribe()

    async def receive(self, text_data=None, bytes_data=None):
        try:
            data = json.loads(text_data or '')
        except json.JSONDecodeError:
            await self.send_error("Invalid JSON format")
            return

        if data.get('type') == 'heartbeat':
            await self.send(text_data=json.dumps({'type': 'heartbeat_ack'}))
        else:
            await self.send_error("Unknown message type")

    async def send_chat_message(self, message):
        await self.send(text_data=json.dumps({
            'type': 'chat_message',
            'message': message
        }))

    async def send_error(self, message):
        await self.send(text_data=json.dumps({
            'type': 'error',
            'message': message
        }))

    def handle_stall(self):
        asyncio.ensure_future(self.close(code=STALLED_CLOSE_CODE))
