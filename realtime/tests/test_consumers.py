from channels.db import database_sync_to_async
from channels.routing import URLRouter
from channels.testing import WebsocketCommunicator
from django.core.cache import cache
from django.test import TransactionTestCase

from chats.services import ChannelResolver, MessageStore
from clube.jwt_utils import generate_test_token
from realtime.middleware import WebSocketAuthMiddleware
from realtime.routing import websocket_urlpatterns
from users.models import Profile

application = WebSocketAuthMiddleware(URLRouter(websocket_urlpatterns))


class ChannelEventsConsumerTest(TransactionTestCase):
    def setUp(self):
        cache.clear()
        Profile.objects.create(user_id='alice', name='Alice', is_paid=True)
        Profile.objects.create(user_id='bob', name='Bob', is_paid=True)
        Profile.objects.create(user_id='dave', name='Dave', is_paid=True)
        self.channel = ChannelResolver().open_channel('alice', 'bob').channel

    def communicator(self, user_id=None, channel_id=None):
        path = f"/ws/chats/{channel_id or self.channel.pk}/events/"
        if user_id:
            path += f"?token={generate_test_token(user_id)}"
        return WebsocketCommunicator(application, path)

    async def test_missing_token_rejected(self):
        communicator = self.communicator()
        connected, code = await communicator.connect()

        self.assertFalse(connected)
        self.assertEqual(code, 4001)

    async def test_non_participant_rejected(self):
        communicator = self.communicator('dave')
        connected, code = await communicator.connect()

        self.assertFalse(connected)
        self.assertEqual(code, 4403)

    async def test_unpaid_member_rejected(self):
        await database_sync_to_async(Profile.objects.filter(user_id='bob').update)(is_paid=False)

        communicator = self.communicator('bob')
        connected, code = await communicator.connect()

        self.assertFalse(connected)
        self.assertEqual(code, 4402)

    async def test_unknown_channel_rejected(self):
        communicator = self.communicator('alice', channel_id=self.channel.pk + 100)
        connected, code = await communicator.connect()

        self.assertFalse(connected)
        self.assertEqual(code, 4404)

    async def test_receives_messages_from_the_other_participant(self):
        communicator = self.communicator('alice')
        connected, _ = await communicator.connect()
        self.assertTrue(connected)

        joined = await communicator.receive_json_from()
        self.assertEqual(joined, {'type': 'channel_joined', 'channel_id': self.channel.pk})

        message = await database_sync_to_async(MessageStore().append)(self.channel.pk, 'bob', 'hi')

        event = await communicator.receive_json_from(timeout=1)
        self.assertEqual(event['type'], 'chat_message')
        self.assertEqual(event['message']['id'], message.pk)
        self.assertEqual(event['message']['content'], 'hi')
        self.assertTrue(await communicator.receive_nothing())

        await communicator.disconnect()

    async def test_heartbeat(self):
        communicator = self.communicator('alice')
        await communicator.connect()
        await communicator.receive_json_from()

        await communicator.send_json_to({'type': 'heartbeat'})
        self.assertEqual(await communicator.receive_json_from(), {'type': 'heartbeat_ack'})

        await communicator.send_to(text_data='not json')
        error = await communicator.receive_json_from()
        self.assertEqual(error['type'], 'error')

        await communicator.disconnect()
