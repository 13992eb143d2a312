import asyncio
import json
import logging

from asgiref.sync import sync_to_async
from django.conf import settings
from django.core.cache import cache
from django.http import JsonResponse, StreamingHttpResponse
from django.views.decorators.http import require_GET

from chats.models import Channel
from chats.permissions import UPGRADE_URL, PaymentRequired, is_paid_member

from .subscriber import LiveUpdateSubscriber

logger = logging.getLogger(__name__)

STALLED = object()


def format_event(message):
    """Render a message as one Server-Sent Events frame."""
    return f"event: message\nid: {message['id']}\ndata: {json.dumps(message)}\n\n"


async def event_stream(channel_id, heartbeat=None, channel_layer=None):
    """
    Yield SSE frames for messages inserted into a channel after the stream opened.

    The subscription is live by the time the ``connected`` comment is sent,
    so a client that loads history after reading it misses nothing. A
    comment line is sent every ``heartbeat`` seconds of silence to keep
    proxies from dropping the connection. If the layer stops delivering the
    stream ends, and the browser's EventSource reconnects on its own.
    """
    if heartbeat is None:
        heartbeat = settings.EVENT_STREAM_HEARTBEAT_INTERVAL

    queue = asyncio.Queue()
    subscriber = LiveUpdateSubscriber(
        channel_id,
        queue.put,
        on_stall=lambda: queue.put_nowait(STALLED),
        channel_layer=channel_layer,
    )
    async with subscriber:
        yield ": connected\n\n"
        while True:
            try:
                message = await asyncio.wait_for(queue.get(), heartbeat)
            except asyncio.TimeoutError:
                yield ": heartbeat\n\n"
                continue
            if message is STALLED:
                logger.info(f"Closing event stream for channel {channel_id}: live updates stalled")
                return
            yield format_event(message)


def check_stream_access(user_id, channel_id):
    """
    Return ``(status, body)`` for a caller that may not follow this channel, else None.

    Each allowed call counts against the caller's per-minute stream limit.
    """
    if not is_paid_member(user_id):
        return 402, {'error': PaymentRequired.default_detail, 'upgrade_url': UPGRADE_URL}

    try:
        channel = Channel.objects.get(pk=channel_id)
    except Channel.DoesNotExist:
        return 404, {'error': 'Channel not found'}

    if not channel.has_participant(user_id):
        return 403, {'error': 'Access denied'}

    if not check_rate_limit(user_id):
        logger.warning(f"Event stream rate limit hit by {user_id}")
        return 429, {'error': 'Too many connections, try again shortly'}

    return None


def check_rate_limit(user_id):
    """Count one stream opened by ``user_id`` in the current minute."""
    key = f"event_stream_rate:{user_id}"
    cache.add(key, 0, 60)
    try:
        count = cache.incr(key)
    except ValueError:
        # Window expired between add and incr
        cache.set(key, 1, 60)
        count = 1
    return count <= settings.EVENT_STREAM_RATE_LIMIT


@require_GET
async def channel_events(request, channel_id):
    """Live stream of new messages in a channel, served as text/event-stream."""
    denied = await sync_to_async(check_stream_access)(request.user_id, channel_id)
    if denied:
        status, body = denied
        return JsonResponse(body, status=status)

    logger.info(f"User {request.user_id} following channel {channel_id}")
    response = StreamingHttpResponse(event_stream(channel_id), content_type='text/event-stream')
    response['Cache-Control'] = 'no-cache'
    response['X-Accel-Buffering'] = 'no'
    return response
