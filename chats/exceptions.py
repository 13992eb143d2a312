class ChatError(Exception):
    """Base class for chat failures surfaced to callers."""


class InvalidInput(ChatError):
    """The caller passed something that can never succeed, e.g. chatting with oneself."""


class ValidationError(InvalidInput):
    """Message content rejected before anything was written."""


class ChannelNotFound(ChatError):
    pass


class StoreUnavailable(ChatError):
    """The database could not be reached. Nothing was written; the caller may retry."""
