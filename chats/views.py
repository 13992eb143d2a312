from django.conf import settings
from django.db.models import Q
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from users.models import Profile

from .exceptions import ChannelNotFound, InvalidInput, StoreUnavailable
from .models import Channel
from .permissions import IsPaidMember
from .serializers import ChannelSerializer, MessageSerializer
from .services import ChannelResolver, MessageStore


def retention_notice():
    days = getattr(settings, 'CHAT_RETENTION_DAYS', 7)
    return (
        f"For your privacy and safety, all messages in this chat are "
        f"permanently deleted after {days} days."
    )


class ParticipantChannelMixin:
    """Load a channel the current user takes part in, or the error response explaining why not."""

    def get_participant_channel(self, request, channel_id):
        try:
            channel = Channel.objects.get(pk=channel_id)
        except Channel.DoesNotExist:
            return None, Response({'error': 'Channel not found'}, status=status.HTTP_404_NOT_FOUND)

        if not channel.has_participant(request.user_id):
            return None, Response({'error': 'Access denied'}, status=status.HTTP_403_FORBIDDEN)

        return channel, None

    def profile_map(self, channels, user_id):
        other_ids = {channel.other_participant(user_id) for channel in channels}
        return Profile.objects.in_bulk(list(other_ids))


class ChannelListView(ParticipantChannelMixin, APIView):
    """List the current user's channels, most recently active first"""

    def get(self, request):
        user_id = request.user_id
        query = request.GET.get('q', '').strip().lower()

        channels = list(
            Channel.objects.filter(
                Q(participant_low=user_id) | Q(participant_high=user_id)
            ).order_by('-updated_at', '-id')
        )
        profiles = self.profile_map(channels, user_id)

        if query:
            channels = [
                channel for channel in channels
                if query in getattr(profiles.get(channel.other_participant(user_id)), 'name', '').lower()
            ]

        serializer = ChannelSerializer(
            channels,
            many=True,
            context={'request': request, 'user_id': user_id, 'profiles': profiles}
        )

        return Response({
            'user_id': user_id,
            'results': serializer.data,
            'total_count': len(channels)
        })


class ChannelOpenView(ParticipantChannelMixin, APIView):
    """Find the channel with another user, creating it on first contact"""
    permission_classes = [IsPaidMember]

    def post(self, request, other_user_id):
        user_id = request.user_id

        if user_id == other_user_id:
            return Response({'error': 'You cannot open a chat with yourself'}, status=status.HTTP_400_BAD_REQUEST)

        if not Profile.objects.filter(user_id=other_user_id).exists():
            return Response({'error': 'User not found'}, status=status.HTTP_404_NOT_FOUND)

        try:
            resolved = ChannelResolver().open_channel(user_id, other_user_id)
        except InvalidInput as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        except StoreUnavailable as e:
            return Response({'error': str(e), 'retryable': True}, status=status.HTTP_503_SERVICE_UNAVAILABLE)

        channel = resolved.channel
        data = {
            'channel': ChannelSerializer(
                channel,
                context={'request': request, 'user_id': user_id, 'profiles': self.profile_map([channel], user_id)}
            ).data,
            'created': resolved.created,
        }

        if resolved.created:
            data['notice'] = retention_notice()
            return Response(data, status=status.HTTP_201_CREATED)

        return Response(data, status=status.HTTP_200_OK)


class ChannelDetailView(ParticipantChannelMixin, APIView):
    permission_classes = [IsPaidMember]

    def get(self, request, channel_id):
        channel, error = self.get_participant_channel(request, channel_id)
        if error:
            return error

        serializer = ChannelSerializer(
            channel,
            context={'request': request, 'user_id': request.user_id, 'profiles': self.profile_map([channel], request.user_id)}
        )
        return Response(serializer.data)


class ChannelMessagesView(ParticipantChannelMixin, APIView):
    """
    Get the ordered history of a channel and append new messages.

    Appended messages reach open event streams through the channel layer once the
    insert commits; the response only echoes the stored row.
    """
    permission_classes = [IsPaidMember]

    def get(self, request, channel_id):
        channel, error = self.get_participant_channel(request, channel_id)
        if error:
            return error

        try:
            messages = MessageStore().list_ordered(channel.pk)
        except StoreUnavailable as e:
            return Response({'error': str(e), 'retryable': True}, status=status.HTTP_503_SERVICE_UNAVAILABLE)

        return Response({
            'channel_id': channel.pk,
            'messages': MessageSerializer(messages, many=True).data,
            'total_messages': len(messages)
        })

    def post(self, request, channel_id):
        channel, error = self.get_participant_channel(request, channel_id)
        if error:
            return error

        try:
            message = MessageStore().append(channel.pk, request.user_id, request.data.get('content'))
        except InvalidInput as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        except ChannelNotFound as e:
            return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)
        except StoreUnavailable as e:
            return Response({'error': str(e), 'retryable': True}, status=status.HTTP_503_SERVICE_UNAVAILABLE)

        return Response(MessageSerializer(message).data, status=status.HTTP_201_CREATED)
