from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer


def send_to_user(user_id: str, event_type: str, data: dict | None = None):
    """Push an event to every connected socket of a user from sync code."""
    from .dispatchers import user_group_name

    data = data or {}
    channel_layer = get_channel_layer()
    async_to_sync(channel_layer.group_send)(
        user_group_name(user_id), {"type": event_type, **data}
    )
