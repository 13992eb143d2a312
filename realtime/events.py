"""
New-message events on the channel layer.

Every chat channel has its own layer group; anything following channel
``42`` joins ``chat_42``. Events are ``{"type": "message.created",
"message": {...}}`` with the serialized message.
"""

import logging

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

logger = logging.getLogger(__name__)

MESSAGE_CREATED = 'message.created'


def channel_group(channel_id):
    return f"chat_{channel_id}"


def publish_message_created(channel_id, message):
    """
    Fan a serialized message out to every subscriber of its channel.

    Called from synchronous code (model signals). Under ASGI the send
    runs on the server's event loop.
    """
    channel_layer = get_channel_layer()
    if channel_layer is None:
        logger.warning(f"No channel layer configured, message {message.get('id')} not announced")
        return

    try:
        async_to_sync(channel_layer.group_send)(
            channel_group(channel_id),
            {
                'type': MESSAGE_CREATED,
                'message': message,
            }
        )
    except Exception as e:
        # The message is already committed; subscribers will see it on reload
        logger.error(f"Failed to publish message {message.get('id')} to channel {channel_id}: {e}")
