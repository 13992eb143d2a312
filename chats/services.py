"""
Channel resolution and message persistence.

Both services talk to the database only through the ORM and translate
driver failures into ``StoreUnavailable`` so callers can offer a retry
without knowing which backend is configured.
"""

import logging
from dataclasses import dataclass
from typing import List

import bleach
from django.conf import settings
from django.db import DatabaseError, IntegrityError, transaction

from .exceptions import ChannelNotFound, InvalidInput, StoreUnavailable, ValidationError
from .identity import normalize
from .models import Channel, Message

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedChannel:
    channel: Channel
    # True only for the call that inserted the row
    created: bool

    @property
    def channel_id(self):
        return self.channel.pk


class ChannelResolver:
    """
    Find-or-create the single channel for a canonical participant pair.

    Two clients opening the same conversation at the same moment can both
    miss on lookup and both insert. The unique constraint lets exactly one
    insert through; the loser goes through ``resolve_or_retry`` and reads
    the winner's row, so callers always get the same channel id.
    """

    def open_channel(self, user_id, other_user_id) -> ResolvedChannel:
        """Resolve the channel between the current user and another user."""
        low, high = normalize(user_id, other_user_id)
        return self.resolve(low, high)

    def resolve(self, low, high) -> ResolvedChannel:
        if not low or not high or low >= high:
            raise InvalidInput("Participants must be a normalized pair of distinct users")

        channel = self._lookup(low, high)
        if channel is not None:
            return ResolvedChannel(channel=channel, created=False)

        try:
            with transaction.atomic():
                channel = Channel.objects.create(participant_low=low, participant_high=high)
        except IntegrityError:
            return self.resolve_or_retry(low, high)
        except DatabaseError as e:
            logger.error(f"Failed to create channel for ({low}, {high}): {e}")
            raise StoreUnavailable("Could not start the conversation, please try again") from e

        logger.info(f"Created channel {channel.pk} for ({low}, {high})")
        return ResolvedChannel(channel=channel, created=True)

    def resolve_or_retry(self, low, high) -> ResolvedChannel:
        """Lost the insert race: return the row the other client created."""
        logger.info(f"Channel insert for ({low}, {high}) conflicted, reading existing row")
        channel = self._lookup(low, high)
        if channel is None:
            raise StoreUnavailable("Could not start the conversation, please try again")
        return ResolvedChannel(channel=channel, created=False)

    def _lookup(self, low, high):
        try:
            return Channel.objects.filter(participant_low=low, participant_high=high).first()
        except DatabaseError as e:
            logger.error(f"Channel lookup for ({low}, {high}) failed: {e}")
            raise StoreUnavailable("Could not reach the chat store, please try again") from e


class MessageStore:
    """Append and ordered reads of the messages of one channel."""

    def append(self, channel_id, sender_id, content) -> Message:
        """
        Store a message sent by one of the channel's participants.

        Content is stripped of markup before it is saved. The insert is
        announced to live subscribers by ``chats.signals`` once committed.

        Raises:
            ValidationError: Content is empty, blank or too long.
            InvalidInput: The sender is not a participant.
            ChannelNotFound: No channel with that id.
            StoreUnavailable: The database could not be reached.
        """
        text = self.clean_content(content)
        channel = self._get_channel(channel_id)

        if not channel.has_participant(sender_id):
            raise InvalidInput("Sender is not a participant of this channel")

        try:
            with transaction.atomic():
                message = Message.objects.create(channel=channel, sender_id=sender_id, content=text)
                Channel.objects.filter(pk=channel.pk).update(updated_at=message.created_at)
        except DatabaseError as e:
            logger.error(f"Failed to append message to channel {channel.pk}: {e}")
            raise StoreUnavailable("Message could not be sent, please try again") from e

        logger.debug(f"Appended message {message.pk} to channel {channel.pk}")
        return message

    def list_ordered(self, channel_id) -> List[Message]:
        try:
            return list(Message.objects.filter(channel_id=channel_id).order_by('created_at', 'id'))
        except DatabaseError as e:
            logger.error(f"Failed to load messages for channel {channel_id}: {e}")
            raise StoreUnavailable("Messages could not be loaded, please try again") from e

    def clean_content(self, content):
        if not isinstance(content, str) or not content.strip():
            raise ValidationError("Message content cannot be empty")

        text = bleach.clean(content.strip(), tags=set(), attributes={}, strip=True).strip()
        if not text:
            raise ValidationError("Message content cannot be empty")

        max_length = getattr(settings, 'CHAT_MAX_MESSAGE_LENGTH', 4000)
        if len(text) > max_length:
            raise ValidationError(f"Message content cannot exceed {max_length} characters")
        return text

    def _get_channel(self, channel_id):
        try:
            return Channel.objects.get(pk=channel_id)
        except (Channel.DoesNotExist, ValueError, TypeError):
            raise ChannelNotFound(f"Channel {channel_id} not found")
        except DatabaseError as e:
            logger.error(f"Channel lookup {channel_id} failed: {e}")
            raise StoreUnavailable("Could not reach the chat store, please try again") from e
