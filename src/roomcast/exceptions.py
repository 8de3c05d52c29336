class ChatError(Exception):
    """Base class for every error raised by roomcast."""

    pass


class NotFound(ChatError):
    """Raised when a user or room id is unknown."""

    pass


class UserNotFound(NotFound):
    def __init__(self, user_id):
        self.user_id = user_id
        super().__init__(f"Unknown user {user_id!r}")


class RoomNotFound(NotFound):
    def __init__(self, room_id):
        self.room_id = room_id
        super().__init__(f"Unknown room {room_id!r}")


class NotMember(ChatError):
    def __init__(self, user_id, room_id):
        self.user_id = user_id
        self.room_id = room_id
        super().__init__(f"User {user_id!r} is not a member of room {room_id!r}")


class DeliveryFailure(ChatError):
    """
    A single delivery task could not be dispatched.

    Recorded by the router, never raised out of a post.
    """

    def __init__(self, task, reason):
        self.task = task
        self.reason = reason
        super().__init__(
            f"Delivery of {task.message.id} to {task.target_user_id} failed: {reason}"
        )


class MalformedInput(ChatError):
    """Raised when a payload cannot be parsed into a typed request."""

    pass


class InvalidStoreError(ChatError):
    """Raised when a store or dispatcher is misconfigured."""

    pass
