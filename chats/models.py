from django.db import models


class Channel(models.Model):
    """
    The one conversation between two users.

    Participants are stored in canonical order (see ``chats.identity.normalize``)
    so the unique constraint covers the unordered pair.
    """
    participant_low = models.CharField(max_length=100, db_index=True)
    participant_high = models.CharField(max_length=100, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'chats_channel'
        constraints = [
            models.UniqueConstraint(
                fields=['participant_low', 'participant_high'],
                name='unique_channel_participants',
            ),
            models.CheckConstraint(
                condition=models.Q(participant_low__lt=models.F('participant_high')),
                name='channel_participants_ordered',
            ),
        ]

    def __str__(self):
        return f"Channel {self.pk} ({self.participant_low}, {self.participant_high})"

    @property
    def participants(self):
        return (self.participant_low, self.participant_high)

    def has_participant(self, user_id):
        return user_id in self.participants

    def other_participant(self, user_id):
        return self.participant_high if user_id == self.participant_low else self.participant_low


class Message(models.Model):
    channel = models.ForeignKey(Channel, on_delete=models.CASCADE, related_name='messages')
    sender_id = models.CharField(max_length=100)
    content = models.TextField()
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        db_table = 'chats_message'
        ordering = ['created_at', 'id']

    def __str__(self):
        return f"{self.sender_id}: {self.content[:50]}"
