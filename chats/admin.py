from django.contrib import admin
from .models import Channel, Message


@admin.register(Channel)
class ChannelAdmin(admin.ModelAdmin):
    list_display = ['id', 'participant_low', 'participant_high', 'created_at', 'updated_at']
    list_filter = ['created_at', 'updated_at']
    search_fields = ['participant_low', 'participant_high']
    readonly_fields = ['participant_low', 'participant_high', 'created_at', 'updated_at']


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    list_display = ['id', 'channel', 'sender_id', 'content_preview', 'created_at']
    list_filter = ['created_at']
    search_fields = ['content', 'sender_id']
    readonly_fields = ['channel', 'sender_id', 'content', 'created_at']

    @admin.display(description='Content Preview')
    def content_preview(self, obj):
        return obj.content[:50] + "..." if len(obj.content) > 50 else obj.content
