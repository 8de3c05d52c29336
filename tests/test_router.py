import asyncio

import async_timeout
import pytest

from roomcast.dispatchers import CallbackDispatcher
from roomcast.entities import Message
from roomcast.exceptions import DeliveryFailure, RoomNotFound
from roomcast.router import DeliveryRouter
from roomcast.stores.memory import InMemoryRoomStore, InMemoryUserRegistry


@pytest.fixture()
async def room():
    """
    A room with three members: alice, bob and carol.
    """
    registry = InMemoryUserRegistry()
    rooms = InMemoryRoomStore(registry)
    general = await rooms.create_room("general")
    members = {}
    for name in ("alice", "bob", "carol"):
        user = await registry.register(name)
        await rooms.join(general.id, user.id)
        members[name] = user.id
    return rooms, general.id, members


@pytest.mark.asyncio
async def test_route_excludes_sender(room):
    rooms, room_id, members = room
    router = DeliveryRouter(rooms, CallbackDispatcher(lambda task: True))
    message = Message(sender_id=members["alice"], room_id=room_id, content="hi")

    tasks = await router.route(message)

    assert {task.target_user_id for task in tasks} == {members["bob"], members["carol"]}
    assert all(task.attempt == 0 for task in tasks)
    assert all(task.message is message for task in tasks)


@pytest.mark.asyncio
async def test_route_including_sender(room):
    rooms, room_id, members = room
    router = DeliveryRouter(
        rooms, CallbackDispatcher(lambda task: True), exclude_sender=False
    )
    message = Message(sender_id=members["alice"], room_id=room_id, content="hi")

    tasks = await router.route(message)

    assert {task.target_user_id for task in tasks} == set(members.values())


@pytest.mark.asyncio
async def test_route_uses_given_snapshot(room):
    rooms, room_id, members = room
    router = DeliveryRouter(rooms, CallbackDispatcher(lambda task: True))
    message = Message(sender_id=members["alice"], room_id=room_id, content="hi")

    tasks = await router.route(message, members=[members["alice"], members["bob"]])

    assert [task.target_user_id for task in tasks] == [members["bob"]]


@pytest.mark.asyncio
async def test_route_missing_room(room):
    rooms, _, members = room
    router = DeliveryRouter(rooms, CallbackDispatcher(lambda task: True))
    message = Message(sender_id=members["alice"], room_id="missing", content="hi")

    with pytest.raises(RoomNotFound):
        await router.route(message)


@pytest.mark.asyncio
async def test_fan_out_delivers_to_every_target(room):
    rooms, room_id, members = room
    delivered = []
    router = DeliveryRouter(rooms, CallbackDispatcher(delivered.append))
    message = Message(sender_id=members["alice"], room_id=room_id, content="hi")

    tasks = await router.fan_out(message)
    async with async_timeout.timeout(1):
        await router.wait_idle()

    assert len(tasks) == 2
    assert {task.target_user_id for task in delivered} == {members["bob"], members["carol"]}
    assert all(result.delivered for result in router.results)
    assert all(task.attempt == 1 for task in delivered)
    assert not router.failures


@pytest.mark.asyncio
async def test_failure_is_isolated_per_target(room):
    """A dispatcher error for one target does not stop the others."""
    rooms, room_id, members = room
    delivered = []

    def dispatch(task):
        if task.target_user_id == members["bob"]:
            raise ConnectionError("device unregistered")
        delivered.append(task.target_user_id)

    router = DeliveryRouter(rooms, CallbackDispatcher(dispatch))
    message = Message(sender_id=members["alice"], room_id=room_id, content="hi")

    await router.fan_out(message)
    await router.wait_idle()

    assert delivered == [members["carol"]]
    assert len(router.failures) == 1
    failure = router.failures[0]
    assert isinstance(failure, DeliveryFailure)
    assert failure.task.target_user_id == members["bob"]
    assert "device unregistered" in failure.reason


@pytest.mark.asyncio
async def test_rejected_delivery_is_a_failure(room):
    rooms, room_id, members = room
    router = DeliveryRouter(rooms, CallbackDispatcher(lambda task: False))
    message = Message(sender_id=members["alice"], room_id=room_id, content="hi")

    await router.fan_out(message)
    await router.wait_idle()

    assert len(router.failures) == 2
    assert not any(result.delivered for result in router.results)


@pytest.mark.asyncio
async def test_timeout_is_a_failure(room):
    rooms, room_id, members = room
    delivered = []

    async def dispatch(task):
        if task.target_user_id == members["bob"]:
            await asyncio.sleep(10)
        delivered.append(task.target_user_id)

    router = DeliveryRouter(rooms, CallbackDispatcher(dispatch), timeout=0.1)
    message = Message(sender_id=members["alice"], room_id=room_id, content="hi")

    await router.fan_out(message)
    async with async_timeout.timeout(2):
        await router.wait_idle()

    assert delivered == [members["carol"]]
    assert len(router.failures) == 1
    assert "timed out" in router.failures[0].reason


@pytest.mark.asyncio
async def test_discard_pending_drops_buffered_tasks(room):
    """
    With a single delivery slot, the second task waits in the buffer and
    can be dropped before it is dispatched.
    """
    rooms, room_id, members = room
    gate = asyncio.Event()
    started = []

    async def dispatch(task):
        started.append(task.target_user_id)
        await gate.wait()

    router = DeliveryRouter(rooms, CallbackDispatcher(dispatch), max_concurrency=1)
    message = Message(sender_id=members["alice"], room_id=room_id, content="hi")

    await router.fan_out(message)
    async with async_timeout.timeout(1):
        while not started:
            await asyncio.sleep(0)

    in_flight = started[0]
    (buffered,) = {members["bob"], members["carol"]} - {in_flight}
    assert router.pending_count(room_id=room_id) == 1
    assert router.discard_pending(room_id, buffered) == 1
    assert router.discard_pending(room_id, in_flight) == 0

    gate.set()
    async with async_timeout.timeout(1):
        await router.wait_idle()

    assert started == [in_flight]
    assert [result.task.target_user_id for result in router.results] == [in_flight]


@pytest.mark.asyncio
async def test_close_cancels_outstanding_deliveries(room):
    rooms, room_id, members = room

    async def dispatch(task):
        await asyncio.sleep(10)

    router = DeliveryRouter(rooms, CallbackDispatcher(dispatch), timeout=30)
    message = Message(sender_id=members["alice"], room_id=room_id, content="hi")

    await router.fan_out(message)
    async with async_timeout.timeout(1):
        await router.close()

    assert router.pending_count() == 0
    assert not router.results


@pytest.mark.asyncio
async def test_failure_log_size_bounds_history(room):
    rooms, room_id, members = room
    router = DeliveryRouter(
        rooms,
        CallbackDispatcher(lambda task: False),
        exclude_sender=False,
        failure_log_size=2,
    )
    message = Message(sender_id=members["alice"], room_id=room_id, content="hi")

    await router.fan_out(message)
    await router.wait_idle()

    assert len(router.failures) == 2
    assert len(router.results) == 2
