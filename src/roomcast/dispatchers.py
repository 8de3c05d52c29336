"""
Notification dispatchers push a single delivery task to a device.

The router treats every dispatcher as an external collaborator: a call
either succeeds (returns True) or fails (returns False or raises). Retry
policy, if any, belongs to the dispatcher.
"""

import inspect
import logging

import firebase_admin
from asgiref.sync import sync_to_async
from channels.layers import get_channel_layer
from firebase_admin import credentials, messaging

from .exceptions import DeliveryFailure, InvalidStoreError

logger = logging.getLogger(__name__)

CHAT_MESSAGE_EVENT = "chat.message"


def user_group_name(user_id: str) -> str:
    """Channel layer group holding every socket of one user."""
    return f"user.{user_id}"


class BaseDispatcher:
    def __init__(self, registry=None, **kwargs):
        self.registry = registry

    async def dispatch(self, task):
        """
        Push one task to its target.

        Returns:
            bool: True when the task was handed over successfully
        """
        raise NotImplementedError("Subclasses must implement dispatch")

    async def close(self):
        pass


class ChannelLayerDispatcher(BaseDispatcher):
    """
    Delivers to connected websocket clients through a Django Channels layer.

    Every socket of the target user belongs to the ``user.<id>`` group, see
    ``roomcast.consumers.DeliveryConsumer``.
    """

    def __init__(self, registry=None, *, alias="default", **kwargs):
        super().__init__(registry=registry, **kwargs)
        self.alias = alias
        self._channel_layer = None

    @property
    def channel_layer(self):
        if self._channel_layer is None:
            self._channel_layer = get_channel_layer(self.alias)
            if self._channel_layer is None:
                raise InvalidStoreError(
                    f"No channel layer configured for alias {self.alias!r}"
                )
        return self._channel_layer

    async def dispatch(self, task):
        await self.channel_layer.group_send(
            user_group_name(task.target_user_id),
            {"type": CHAT_MESSAGE_EVENT, **task.message.as_payload()},
        )
        return True


class FirebaseDispatcher(BaseDispatcher):
    """
    Sends an FCM data message to the target's registered delivery token.

    The default Firebase app is used unless ``credentials_path`` points at a
    service account file, in which case the app is initialized on first use.
    """

    def __init__(self, registry=None, *, credentials_path=None, **kwargs):
        super().__init__(registry=registry, **kwargs)
        if registry is None:
            raise InvalidStoreError("FirebaseDispatcher needs a user registry")
        self.credentials_path = credentials_path

    def _ensure_app(self):
        if self.credentials_path and not firebase_admin._apps:
            cred = credentials.Certificate(self.credentials_path)
            firebase_admin.initialize_app(cred)

    async def dispatch(self, task):
        user = await self.registry.lookup(task.target_user_id)
        if not user.delivery_token:
            raise DeliveryFailure(task, "no delivery token")

        self._ensure_app()
        message = messaging.Message(
            token=user.delivery_token,
            data=task.message.as_payload(),
        )
        # Each send blocks on HTTP, keep targets from queueing behind each other
        response = await sync_to_async(messaging.send, thread_sensitive=False)(message)
        logger.debug("FCM accepted %s for user %s", response, user.id)
        return True


class CallbackDispatcher(BaseDispatcher):
    """Adapts a plain function or coroutine function taking a task."""

    def __init__(self, callback, registry=None, **kwargs):
        super().__init__(registry=registry, **kwargs)
        self.callback = callback

    async def dispatch(self, task):
        result = self.callback(task)
        if inspect.isawaitable(result):
            result = await result
        return result is not False
