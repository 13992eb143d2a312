from rest_framework import serializers

from users.serializers import ProfileSummarySerializer

from .models import Channel, Message


class MessageSerializer(serializers.ModelSerializer):
    channel_id = serializers.ReadOnlyField()

    class Meta:
        model = Message
        fields = ['id', 'channel_id', 'sender_id', 'content', 'created_at']
        read_only_fields = ['id', 'sender_id', 'created_at']


class ChannelSerializer(serializers.ModelSerializer):
    """
    Channel as seen by one of its participants.

    Expects ``user_id`` in the context and optionally ``profiles``, a mapping
    of user id to ``Profile`` preloaded by the view.
    """
    participants = serializers.SerializerMethodField()
    other_participant = serializers.SerializerMethodField()
    last_message = serializers.SerializerMethodField()

    class Meta:
        model = Channel
        fields = ['id', 'participants', 'other_participant', 'created_at', 'updated_at', 'last_message']

    def get_participants(self, obj):
        return list(obj.participants)

    def get_other_participant(self, obj):
        """Profile summary of the participant who is not the current user"""
        other_id = obj.other_participant(self.context.get('user_id'))
        profile = self.context.get('profiles', {}).get(other_id)
        if profile is None:
            return {'user_id': other_id, 'name': None, 'avatar_url': None}
        return ProfileSummarySerializer(profile).data

    def get_last_message(self, obj):
        """Get only the last message preview (not full message)"""
        last_message = obj.messages.last()
        if last_message:
            return {
                'sender_id': last_message.sender_id,
                'content': last_message.content[:100] + '...' if len(last_message.content) > 100 else last_message.content,
                'created_at': last_message.created_at,
            }
        return None
