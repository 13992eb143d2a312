from .exceptions import InvalidInput


def normalize(a, b):
    """
    Order an unordered pair of user ids into ``(low, high)``.

    The result is the uniqueness key of a channel, so ``normalize(a, b)``
    and ``normalize(b, a)`` are always equal. Ids are compared as strings.

    Raises:
        InvalidInput: If either id is empty or both ids are the same user.
    """
    if a is None or b is None:
        raise InvalidInput("Both participants are required")

    # Ids are opaque: only blank ones are rejected, never rewritten
    a, b = str(a), str(b)
    if not a.strip() or not b.strip():
        raise InvalidInput("Both participants are required")
    if a == b:
        raise InvalidInput("A user cannot open a chat with themself")

    return (a, b) if a < b else (b, a)
