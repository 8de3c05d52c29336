"""
Settings for roomcast, read from ``settings.ROOMCAST``.

Backends are configured the way ``CHANNEL_LAYERS`` is::

    ROOMCAST = {
        "ROOM_STORE": {
            "BACKEND": "roomcast.stores.core.DjangoRoomStore",
            "OPTIONS": {"database": "default"},
        },
    }
"""

from django.conf import settings
from django.utils.module_loading import import_string

from .exceptions import InvalidStoreError

DEFAULTS = {
    "USER_REGISTRY": {
        "BACKEND": "roomcast.stores.memory.InMemoryUserRegistry",
        "OPTIONS": {},
    },
    "ROOM_STORE": {
        "BACKEND": "roomcast.stores.memory.InMemoryRoomStore",
        "OPTIONS": {},
    },
    "DISPATCHER": {
        "BACKEND": "roomcast.dispatchers.ChannelLayerDispatcher",
        "OPTIONS": {"alias": "default"},
    },
    "DELIVERY_TIMEOUT": 5.0,
    "MAX_CONCURRENT_DELIVERIES": 100,
    "EXCLUDE_SENDER": True,
}


def get_setting(name):
    try:
        user_settings = settings.ROOMCAST
    except AttributeError:
        user_settings = {}
    return user_settings.get(name, DEFAULTS[name])


def _load_backend(name, *args):
    config = get_setting(name)
    try:
        backend_class = import_string(config["BACKEND"])
    except KeyError:
        raise InvalidStoreError(f"No BACKEND specified for {name}")
    except ImportError as e:
        raise InvalidStoreError(f"Cannot import {name} backend {config['BACKEND']!r}") from e
    return backend_class(*args, **config.get("OPTIONS", {}))


def build_chat_service():
    """Instantiate a ChatService from the configured backends."""
    from .service import ChatService

    users = _load_backend("USER_REGISTRY")
    rooms = _load_backend("ROOM_STORE", users)
    dispatcher = _load_backend("DISPATCHER", users)
    return ChatService(
        users,
        rooms,
        dispatcher,
        exclude_sender=get_setting("EXCLUDE_SENDER"),
        timeout=get_setting("DELIVERY_TIMEOUT"),
        max_concurrency=get_setting("MAX_CONCURRENT_DELIVERIES"),
    )
