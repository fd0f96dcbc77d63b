"""
Real-time bed notifications.

Dashboards and floor views subscribe to bed-management events. Delivery is
best effort: a failed publish is logged and swallowed so it can never undo
or fail the database work that triggered it.
"""

from typing import Any, Dict, Optional, Set

import asyncio
import enum
import logging

from ibms.infrastructure.redis import PubSubService
from ibms.utils.datetime_utils import utc_now

logger = logging.getLogger(__name__)


class NotificationRoom(str, enum.Enum):
    """Subscriber rooms"""
    BED_MANAGEMENT = "bed_management"


class BedEvent(str, enum.Enum):
    """Events published to bed-management subscribers"""
    BED_STATUS_CHANGED = "bed:status_changed"
    BED_ASSIGNED = "bed:assigned"
    BED_RELEASED = "bed:released"
    BED_TRANSFERRED = "bed:transferred"
    ADMISSION_DISCHARGED = "admission:discharged"


class Notifier:
    """Fire-and-forget publisher.

    Subclasses implement ``_send``; ``publish`` never raises.
    """

    def __init__(self):
        self._pending: Set[asyncio.Task] = set()

    async def _send(self, room: str, event: str, message: Dict[str, Any]) -> None:
        raise NotImplementedError

    async def publish(self, room: NotificationRoom, event: BedEvent, payload: Dict[str, Any]) -> bool:
        message = {
            "event": event.value,
            "data": payload,
            "emitted_at": utc_now().isoformat(),
        }
        try:
            await self._send(room.value, event.value, message)
            return True
        except Exception as e:
            logger.error(f"Failed to publish {event.value} to {room.value}: {e}")
            return False

    def dispatch(self, room: NotificationRoom, event: BedEvent, payload: Dict[str, Any]) -> asyncio.Task:
        """Schedule ``publish`` without waiting for it"""
        task = asyncio.create_task(self.publish(room, event, payload))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def flush(self) -> None:
        """Wait for in-flight deliveries"""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


class LoggingNotifier(Notifier):
    """Used when no Redis is configured"""

    async def _send(self, room: str, event: str, message: Dict[str, Any]) -> None:
        logger.info(f"[{room}] {event}: {message['data']}")


class RedisNotifier(Notifier):
    """Publishes to ``{prefix}:{room}`` Redis channels"""

    def __init__(self, pubsub: PubSubService, channel_prefix: str = "ibms"):
        super().__init__()
        self.pubsub = pubsub
        self.channel_prefix = channel_prefix

    def channel_for(self, room: str) -> str:
        return f"{self.channel_prefix}:{room}"

    async def _send(self, room: str, event: str, message: Dict[str, Any]) -> None:
        receivers = await self.pubsub.publish(self.channel_for(room), message)
        if not receivers:
            logger.debug(f"No subscribers for {event} on {self.channel_for(room)}")


def room_snapshot(room: Optional[Any]) -> Optional[Dict[str, Any]]:
    """Room context included in every bed event"""
    if room is None:
        return None
    return {
        "room_id": room.room_id,
        "room_number": room.room_number,
        "floor_number": room.floor_number,
    }


def notify_after_commit(
    uow,
    notifier: Notifier,
    event: BedEvent,
    payload: Dict[str, Any],
    room: NotificationRoom = NotificationRoom.BED_MANAGEMENT,
) -> None:
    """Dispatch ``event`` once ``uow`` has committed; nothing is sent on rollback"""
    async def _dispatch() -> None:
        notifier.dispatch(room, event, payload)

    uow.after_commit(_dispatch)
