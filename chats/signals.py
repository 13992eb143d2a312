from django.db import transaction
from django.db.models.signals import post_save
from django.dispatch import receiver

from realtime.events import publish_message_created

from .models import Message
from .serializers import MessageSerializer


@receiver(post_save, sender=Message)
def announce_new_message(sender, instance: Message, created: bool, **kwargs):
    """
    Publish an insert event for a new message once its transaction commits.

    Rolled back inserts are never announced.
    """
    if not created:
        return

    payload = dict(MessageSerializer(instance).data)
    channel_id = instance.channel_id
    transaction.on_commit(lambda: publish_message_created(channel_id, payload))
