"""
Live updates for one chat channel.

The channel layer is used as a plain message queue: the store sends an
insert event to the channel's group after each committed message, and a
``LiveUpdateSubscriber`` owns a private layer channel in that group plus a
pump task that hands each new message to a callback. The merge logic only
sees layer messages, so it runs the same against the in-memory layer in
tests.
"""

import asyncio
import collections
import enum
import inspect
import logging

from . import events

logger = logging.getLogger(__name__)

# Recently delivered message ids remembered per subscriber
DELIVERED_WINDOW = 1000


class SubscriptionState(enum.Enum):
    IDLE = 'idle'
    SUBSCRIBING = 'subscribing'
    ACTIVE = 'active'
    CLOSED = 'closed'


class LiveUpdateSubscriber:
    """
    Deliver messages inserted into ``channel_id`` to ``on_insert``.

    ``on_insert`` receives the serialized message dict and may be a plain
    function or a coroutine function. Each message id is delivered at most
    once, in the order the layer hands events over; callers append and
    never re-sort.

    ``on_stall`` is called once, without arguments, if the layer stops
    delivering. The subscription stays open until it is released; there is
    no polling fallback, so the owner should drop its view and reconnect.

    Lifecycle is ``IDLE -> SUBSCRIBING -> ACTIVE -> CLOSED``. ``CLOSED`` is
    final: a closed subscriber cannot be reopened, create a new one instead.
    Use it as an async context manager to guarantee release::

        async with LiveUpdateSubscriber(channel_id, view.append):
            ...
    """

    def __init__(self, channel_id, on_insert, on_stall=None, channel_layer=None):
        self.channel_id = channel_id
        self.on_insert = on_insert
        self.on_stall = on_stall
        self.group_name = events.channel_group(channel_id)
        self.state = SubscriptionState.IDLE
        self.stalled = False
        self.channel_layer = channel_layer
        self.layer_channel = None
        self._pump_task = None
        self._delivered = set()
        self._delivered_order = collections.deque()

    @property
    def is_active(self):
        return self.state is SubscriptionState.ACTIVE

    async def subscribe(self):
        if self.state is not SubscriptionState.IDLE:
            raise RuntimeError(f"Cannot subscribe a {self.state.value} subscription")

        self.state = SubscriptionState.SUBSCRIBING
        try:
            if self.channel_layer is None:
                self.channel_layer = events.get_channel_layer()
            if self.channel_layer is None:
                raise RuntimeError("No channel layer configured")
            self.layer_channel = await self.channel_layer.new_channel()
            await self.channel_layer.group_add(self.group_name, self.layer_channel)
        except BaseException:
            self.state = SubscriptionState.ACTIVE
            await self.unsubscribe()
            raise

        if self.state is SubscriptionState.CLOSED:
            # unsubscribed while group_add was in flight
            await self._release()
            return self

        self._pump_task = asyncio.create_task(self._pump())
        self.state = SubscriptionState.ACTIVE
        logger.debug(f"Subscribed to {self.group_name} as {self.layer_channel}")
        return self

    async def unsubscribe(self):
        """Release the subscription. Safe to call any number of times, from any state."""
        if self.state is SubscriptionState.CLOSED:
            return

        was_subscribing = self.state is SubscriptionState.SUBSCRIBING
        self.state = SubscriptionState.CLOSED

        task, self._pump_task = self._pump_task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        if not was_subscribing:
            await self._release()

    async def __aenter__(self):
        return await self.subscribe()

    async def __aexit__(self, exc_type, exc, tb):
        await self.unsubscribe()

    async def _release(self):
        layer_channel, self.layer_channel = self.layer_channel, None
        if layer_channel is None:
            return
        try:
            await self.channel_layer.group_discard(self.group_name, layer_channel)
        except Exception as e:
            logger.warning(f"Error while leaving {self.group_name}: {e}")
        else:
            logger.debug(f"Unsubscribed from {self.group_name}")

    async def _pump(self):
        try:
            while True:
                event = await self.channel_layer.receive(self.layer_channel)
                if event.get('type') != events.MESSAGE_CREATED:
                    continue
                await self._deliver(event.get('message') or {})
        except Exception as e:
            logger.warning(f"Live updates for {self.group_name} stalled: {e}")
            self.stalled = True
            if self.on_stall is not None:
                self.on_stall()

    async def _deliver(self, message):
        message_id = message.get('id')
        if message_id is None or message_id in self._delivered:
            return
        self._remember(message_id)

        try:
            result = self.on_insert(message)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception(f"Live update callback failed for message {message_id} on {self.group_name}")

    def _remember(self, message_id):
        # Commit order can differ from id order, so keep a window of ids
        # instead of a high-water mark
        self._delivered.add(message_id)
        self._delivered_order.append(message_id)
        if len(self._delivered_order) > DELIVERED_WINDOW:
            self._delivered.discard(self._delivered_order.popleft())
