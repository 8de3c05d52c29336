"""Pytest configuration for roomcast tests."""

import os
import tempfile

import django
import pytest
from django.conf import settings

# Use a temporary file database that persists during the test session
TEST_DB = os.path.join(tempfile.gettempdir(), "roomcast_test.db")


def pytest_configure():
    """Configure Django settings for tests."""
    if not settings.configured:
        # Remove old test database if it exists
        if os.path.exists(TEST_DB):
            os.remove(TEST_DB)

        settings.configure(
            DEBUG=True,
            DATABASES={
                "default": {
                    "ENGINE": "django.db.backends.sqlite3",
                    "NAME": TEST_DB,
                    "OPTIONS": {
                        "timeout": 5,
                    },
                }
            },
            INSTALLED_APPS=[
                "django.contrib.contenttypes",
                "channels",
                "roomcast",
            ],
            USE_TZ=True,
            SECRET_KEY="test-secret-key",
            CHANNEL_LAYERS={
                "default": {
                    "BACKEND": "channels.layers.InMemoryChannelLayer",
                },
            },
        )
        django.setup()

        # Create tables using migrations
        from django.core.management import call_command

        call_command("migrate", "roomcast", verbosity=0)


def pytest_unconfigure():
    """Clean up after tests."""
    if os.path.exists(TEST_DB):
        os.remove(TEST_DB)


@pytest.fixture()
def delivered():
    """Tasks handed to the recording dispatcher, in dispatch order."""
    return []


@pytest.fixture()
async def service(delivered):
    """
    ChatService on the in-memory backends with a dispatcher that records tasks.
    """
    from roomcast.dispatchers import CallbackDispatcher
    from roomcast.service import ChatService
    from roomcast.stores.memory import InMemoryRoomStore, InMemoryUserRegistry

    users = InMemoryUserRegistry()
    rooms = InMemoryRoomStore(users)
    chat = ChatService(users, rooms, CallbackDispatcher(delivered.append), timeout=1)
    yield chat
    await chat.close()
