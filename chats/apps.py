from django.apps import AppConfig


class ChatsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'chats'

    def ready(self) -> None:
        """Register the signal handlers that publish new messages to live subscribers."""
        import chats.signals  # noqa: F401
