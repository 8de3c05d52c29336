"""
Fan-out of posted messages to room members.
"""

import asyncio
import logging
from collections import defaultdict, deque

from .entities import DeliveryResult, DeliveryTask
from .exceptions import DeliveryFailure

logger = logging.getLogger(__name__)


class DeliveryRouter:
    """
    Turns a message into one delivery task per room member and hands each
    task to the dispatcher on its own asyncio task.

    Deliveries wait for a slot in a semaphore of ``max_concurrency`` before
    they are dispatched. Until then they are pending and can be dropped with
    ``discard_pending``, which is how a member who leaves a room stops
    receiving tasks that were created but not yet handed over.
    """

    def __init__(
        self,
        rooms,
        dispatcher,
        *,
        exclude_sender=True,
        timeout=5.0,
        max_concurrency=100,
        failure_log_size=1000,
    ):
        self.rooms = rooms
        self.dispatcher = dispatcher
        self.exclude_sender = exclude_sender
        self.timeout = timeout
        self.max_concurrency = max_concurrency

        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._pending = defaultdict(list)  # Dict[(room_id, user_id), list[DeliveryTask]]
        self._tasks = set()  # Set[asyncio.Task]

        # Most recent outcomes, oldest dropped first
        self.results = deque(maxlen=failure_log_size)
        self.failures = deque(maxlen=failure_log_size)

    async def route(self, message, members=None):
        """
        Build the delivery tasks for a message.

        Args:
            message: The message to deliver
            members: A membership snapshot already taken by the caller. When
                omitted the room is read once, at call time.

        Returns:
            list[DeliveryTask]: one task per target, in no particular order

        Raises:
            RoomNotFound: If the room no longer exists
        """
        if members is None:
            members = await self.rooms.members_of(message.room_id)

        targets = set(members)
        if self.exclude_sender:
            # Senders echo their own messages locally
            targets.discard(message.sender_id)

        return [DeliveryTask(target_user_id=user_id, message=message) for user_id in targets]

    async def fan_out(self, message, members=None):
        """
        Route a message and schedule every delivery without waiting for them.
        """
        tasks = await self.route(message, members)
        for task in tasks:
            self._pending[(message.room_id, task.target_user_id)].append(task)
            delivery = asyncio.create_task(self._deliver(task))
            self._tasks.add(delivery)
            delivery.add_done_callback(self._tasks.discard)

        logger.debug(
            "Fanning out message %s in room %s to %d members",
            message.id,
            message.room_id,
            len(tasks),
        )
        return tasks

    def discard_pending(self, room_id, user_id):
        """
        Drop every delivery for user_id in room_id that was not dispatched yet.

        Deliveries already handed to the dispatcher are left to finish.

        Returns:
            int: number of dropped tasks
        """
        dropped = self._pending.pop((room_id, user_id), [])
        if dropped:
            logger.debug(
                "Dropped %d pending deliveries for user %s in room %s",
                len(dropped),
                user_id,
                room_id,
            )
        return len(dropped)

    def pending_count(self, room_id=None, user_id=None):
        return sum(
            len(tasks)
            for (pending_room, pending_user), tasks in self._pending.items()
            if (room_id is None or pending_room == room_id)
            and (user_id is None or pending_user == user_id)
        )

    async def wait_idle(self):
        """Wait until every scheduled delivery has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self):
        """Cancel outstanding deliveries."""
        for delivery in list(self._tasks):
            delivery.cancel()

        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

        self._tasks.clear()
        self._pending.clear()

    async def _deliver(self, task):
        async with self._semaphore:
            if not self._take_pending(task):
                # The member left the room after this task was created
                return None
            result = await self._dispatch(task)

        self.results.append(result)
        return result

    def _take_pending(self, task):
        key = (task.message.room_id, task.target_user_id)
        pending = self._pending.get(key)
        if not pending:
            return False

        for index, candidate in enumerate(pending):
            if candidate is task:
                del pending[index]
                if not pending:
                    del self._pending[key]
                return True
        return False

    async def _dispatch(self, task):
        task.attempt += 1
        error = None
        try:
            delivered = await asyncio.wait_for(
                self.dispatcher.dispatch(task), self.timeout
            )
            if delivered is False:
                error = DeliveryFailure(task, "rejected by dispatcher")
        except asyncio.TimeoutError:
            error = DeliveryFailure(task, f"timed out after {self.timeout}s")
        except DeliveryFailure as e:
            error = e
        except Exception as e:
            error = DeliveryFailure(task, repr(e))

        if error is not None:
            logger.warning("%s", error)
            self.failures.append(error)
            return DeliveryResult(task=task, delivered=False, error=error)

        return DeliveryResult(task=task, delivered=True)
