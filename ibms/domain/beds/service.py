"""
Bed Service Layer

Bed registry reads, the bed status state machine and the status log.
Every status change goes through a compare-and-set on the bed row and is
logged in the same transaction; notifications are sent after commit.
"""

from typing import Optional, List, Dict, Any, Callable, Iterable
from datetime import datetime
import logging

from ibms.core.config import settings
from ibms.core.exceptions import NotFoundError, ConflictError, InvalidTransitionError, handle_errors
from ibms.domain.beds.models import Bed, BedStatus, BedType, RoomType, BedStatusLog
from ibms.domain.beds.repository import RoomRepository, BedRepository, BedStatusLogRepository
from ibms.domain.beds.state_machine import validate_transition
from ibms.infrastructure.database import SessionFactory, UnitOfWork, unit_of_work
from ibms.infrastructure.notifications import Notifier, BedEvent, notify_after_commit, room_snapshot
from ibms.utils.datetime_utils import utc_now, hours_before

logger = logging.getLogger(__name__)


def bed_snapshot(bed: Bed) -> Dict[str, Any]:
    """Bed identity and room context for notification payloads"""
    return {
        "bed_id": bed.bed_id,
        "bed_number": bed.bed_number,
        "bed_type": bed.bed_type.value,
        "status": bed.status.value,
        "room": room_snapshot(bed.room),
    }


class BedService:
    """Service layer for bed registry and bed status management"""

    def __init__(
        self,
        session_factory: SessionFactory,
        notifier: Notifier,
        clock: Callable[[], datetime] = utc_now
    ):
        self.session_factory = session_factory
        self.notifier = notifier
        self.clock = clock

    # Registry reads

    @handle_errors("Failed to fetch bed details.")
    async def get_bed_details(self, bed_id: int) -> Bed:
        async with self.session_factory() as db:
            bed = await BedRepository(db).get_by_id(bed_id, with_assignment=True)
        if not bed:
            raise NotFoundError("Bed not found.")
        return bed

    @handle_errors("Failed to fetch beds.")
    async def get_all_beds(
        self,
        status: Optional[BedStatus] = None,
        bed_type: Optional[BedType] = None,
        floor_number: Optional[int] = None
    ) -> List[Bed]:
        async with self.session_factory() as db:
            return await BedRepository(db).get_all(
                status=status, bed_type=bed_type, floor_number=floor_number
            )

    @handle_errors("Failed to fetch available beds.")
    async def get_available_beds(
        self,
        bed_type: Optional[BedType] = None,
        floor_number: Optional[int] = None,
        room_type: Optional[RoomType] = None
    ) -> List[Bed]:
        async with self.session_factory() as db:
            return await BedRepository(db).get_all(
                status=BedStatus.AVAILABLE,
                bed_type=bed_type,
                floor_number=floor_number,
                room_type=room_type,
                operational_only=True,
            )

    @handle_errors("Failed to fetch floor summary.")
    async def get_floor_summary(self) -> List[Dict[str, Any]]:
        async with self.session_factory() as db:
            return await RoomRepository(db).get_floor_summary()

    @handle_errors("Failed to fetch rooms summary.")
    async def get_rooms_summary(self, floor_number: int) -> List[Dict[str, Any]]:
        async with self.session_factory() as db:
            rooms = RoomRepository(db)
            if not await rooms.floor_exists(floor_number):
                raise NotFoundError("Floor not found.")
            return await rooms.get_rooms_summary(floor_number)

    @handle_errors("Failed to fetch room beds.")
    async def get_room_beds(self, room_id: int) -> List[Bed]:
        async with self.session_factory() as db:
            if not await RoomRepository(db).get_by_id(room_id):
                raise NotFoundError("Room not found.")
            return await BedRepository(db).get_all(room_id=room_id)

    # Status changes

    async def flip_status(
        self,
        uow: UnitOfWork,
        bed: Bed,
        new_status: BedStatus,
        expected: Optional[Iterable[BedStatus]] = None
    ) -> BedStatus:
        """Compare-and-set the bed's status inside ``uow`` and return the previous status.

        This is the only place a bed's status is written. It does not consult
        the transition table; callers validate first.
        """
        old_status = bed.status
        now = self.clock()
        values: Dict[str, Any] = {"updated_at": now}
        if new_status == BedStatus.MAINTENANCE:
            values["maintenance_reported_at"] = now
        if old_status == BedStatus.CLEANING and new_status == BedStatus.AVAILABLE:
            values["last_cleaned_at"] = now

        changed = await BedRepository(uow.session).compare_and_set_status(
            bed, expected or (old_status,), new_status, **values
        )
        if not changed:
            raise ConflictError(
                f"Bed {bed.bed_number} was changed by another request. Please try again.",
                details={"bed_id": bed.bed_id},
            )
        return old_status

    async def record_transition(
        self,
        uow: UnitOfWork,
        bed: Bed,
        old_status: Optional[BedStatus],
        reason: Optional[str],
        changed_by: Optional[int],
        admission_id: Optional[int] = None,
        assignment_id: Optional[int] = None,
        notes: Optional[str] = None
    ) -> BedStatusLog:
        """Append the log entry for a status change already applied to ``bed``"""
        entry = await BedStatusLogRepository(uow.session).append({
            "bed_id": bed.bed_id,
            "old_status": old_status,
            "new_status": bed.status,
            "changed_by": changed_by,
            "change_reason": reason,
            "admission_id": admission_id,
            "assignment_id": assignment_id,
            "changed_at": self.clock(),
            "additional_notes": notes,
        })
        logger.info(
            f"Bed {bed.bed_id} status {old_status.value if old_status else None} -> "
            f"{bed.status.value} by {changed_by}"
        )
        return entry

    async def _load_for_update(self, uow: UnitOfWork, bed_id: int) -> Bed:
        bed = await BedRepository(uow.session).get_by_id(bed_id, for_update=True)
        if not bed:
            raise NotFoundError("Bed not found.")
        return bed

    @handle_errors("Failed to update bed status.")
    async def apply_transition(
        self,
        bed_id: int,
        new_status: BedStatus,
        reason: Optional[str],
        actor_id: Optional[int],
        notes: Optional[str] = None,
        uow: Optional[UnitOfWork] = None
    ) -> Bed:
        """Move a bed along the transition table; direct occupancy is always rejected"""
        async with unit_of_work(self.session_factory, uow) as work:
            bed = await self._load_for_update(work, bed_id)
            validate_transition(bed.status, new_status)

            old_status = await self.flip_status(work, bed, new_status)
            entry = await self.record_transition(work, bed, old_status, reason, actor_id, notes=notes)

            notify_after_commit(work, self.notifier, BedEvent.BED_STATUS_CHANGED, {
                **bed_snapshot(bed),
                "old_status": old_status.value,
                "new_status": new_status.value,
                "changed_by": actor_id,
                "reason": reason,
                "log_id": entry.log_id,
            })

        return bed

    @handle_errors("Failed to mark bed for maintenance.")
    async def mark_for_maintenance(
        self,
        bed_id: int,
        reason: Optional[str],
        actor_id: Optional[int],
        uow: Optional[UnitOfWork] = None
    ) -> Bed:
        async with unit_of_work(self.session_factory, uow) as work:
            bed = await self._load_for_update(work, bed_id)
            if bed.status == BedStatus.OCCUPIED:
                raise InvalidTransitionError(
                    "Cannot mark occupied bed for maintenance. Please transfer patient first.",
                    current_status=bed.status.value,
                    requested_status=BedStatus.MAINTENANCE.value,
                )
            return await self.apply_transition(
                bed_id, BedStatus.MAINTENANCE, reason, actor_id, uow=work
            )

    @handle_errors("Failed to mark bed as cleaned.")
    async def mark_cleaned(
        self,
        bed_id: int,
        actor_id: Optional[int],
        notes: Optional[str] = None,
        uow: Optional[UnitOfWork] = None
    ) -> Bed:
        async with unit_of_work(self.session_factory, uow) as work:
            bed = await self._load_for_update(work, bed_id)
            if bed.status != BedStatus.CLEANING:
                raise InvalidTransitionError(
                    f"Bed is currently {bed.status.value}. "
                    "Only beds in cleaning status can be marked as cleaned.",
                    current_status=bed.status.value,
                    requested_status=BedStatus.AVAILABLE.value,
                )
            return await self.apply_transition(
                bed_id, BedStatus.AVAILABLE, "Bed cleaned and ready for use", actor_id,
                notes=notes, uow=work
            )

    @handle_errors("Failed to reserve bed.")
    async def reserve(
        self,
        bed_id: int,
        actor_id: Optional[int],
        reason: Optional[str] = None,
        uow: Optional[UnitOfWork] = None
    ) -> Bed:
        async with unit_of_work(self.session_factory, uow) as work:
            bed = await self._load_for_update(work, bed_id)
            if bed.status != BedStatus.AVAILABLE:
                raise InvalidTransitionError(
                    f"Bed is currently {bed.status.value}. Only available beds can be reserved.",
                    current_status=bed.status.value,
                    requested_status=BedStatus.RESERVED.value,
                )
            return await self.apply_transition(
                bed_id, BedStatus.RESERVED, reason or "Bed reserved", actor_id, uow=work
            )

    @handle_errors("Failed to cancel bed reservation.")
    async def cancel_reservation(
        self,
        bed_id: int,
        actor_id: Optional[int],
        reason: Optional[str] = None,
        uow: Optional[UnitOfWork] = None
    ) -> Bed:
        async with unit_of_work(self.session_factory, uow) as work:
            bed = await self._load_for_update(work, bed_id)
            if bed.status != BedStatus.RESERVED:
                raise InvalidTransitionError(
                    "Bed is not reserved.",
                    current_status=bed.status.value,
                    requested_status=BedStatus.AVAILABLE.value,
                )
            return await self.apply_transition(
                bed_id, BedStatus.AVAILABLE, reason or "Reservation cancelled", actor_id, uow=work
            )

    # Status log reads

    @handle_errors("Failed to fetch bed status history.")
    async def get_bed_status_history(self, bed_id: int, limit: Optional[int] = None) -> List[BedStatusLog]:
        async with self.session_factory() as db:
            if not await BedRepository(db).get_by_id(bed_id):
                raise NotFoundError("Bed not found.")
            return await BedStatusLogRepository(db).get_bed_history(
                bed_id, limit or settings.BED_HISTORY_DEFAULT_LIMIT
            )

    @handle_errors("Failed to fetch recent status changes.")
    async def get_recent_status_changes(self, hours: Optional[int] = None) -> List[BedStatusLog]:
        since = hours_before(self.clock(), hours or settings.RECENT_CHANGES_DEFAULT_HOURS)
        async with self.session_factory() as db:
            return await BedStatusLogRepository(db).get_changes_since(
                since, settings.RECENT_CHANGES_LIMIT
            )
