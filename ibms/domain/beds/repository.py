from typing import Optional, List, Dict, Iterable, Any
from datetime import datetime
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func, case
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.attributes import set_committed_value

from ibms.domain.beds.models import Room, Bed, BedStatus, BedType, RoomType, BedStatusLog


class RoomRepository:
    """Repository for room data access operations"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, room_id: int) -> Optional[Room]:
        result = await self.db.execute(select(Room).where(Room.room_id == room_id))
        return result.scalar_one_or_none()

    async def floor_exists(self, floor_number: int) -> bool:
        result = await self.db.execute(
            select(func.count(Room.room_id)).where(Room.floor_number == floor_number)
        )
        return result.scalar_one() > 0

    async def get_floor_summary(self) -> List[Dict[str, Any]]:
        """Bed counts per floor, operational rooms only"""
        query = (
            select(
                Room.floor_number,
                func.count(Bed.bed_id).label("total_beds"),
                func.sum(case((Bed.status == BedStatus.AVAILABLE, 1), else_=0)).label("available_beds"),
                func.sum(case((Bed.status == BedStatus.OCCUPIED, 1), else_=0)).label("occupied_beds"),
            )
            .select_from(Room)
            .join(Bed, Bed.room_id == Room.room_id)
            .where(Room.is_operational.is_(True))
            .group_by(Room.floor_number)
            .order_by(Room.floor_number)
        )
        result = await self.db.execute(query)
        return [
            {
                "floor_number": row.floor_number,
                "total_beds": row.total_beds,
                "available_beds": int(row.available_beds or 0),
                "occupied_beds": int(row.occupied_beds or 0),
            }
            for row in result.all()
        ]

    async def get_rooms_summary(self, floor_number: int) -> List[Dict[str, Any]]:
        """Bed counts per operational room on a floor"""
        query = (
            select(
                Room,
                func.count(Bed.bed_id).label("total_beds"),
                func.sum(case((Bed.status == BedStatus.AVAILABLE, 1), else_=0)).label("available_beds"),
            )
            .outerjoin(Bed, Bed.room_id == Room.room_id)
            .where(Room.floor_number == floor_number, Room.is_operational.is_(True))
            .group_by(Room.room_id)
            .order_by(Room.room_number)
        )
        result = await self.db.execute(query)
        return [
            {
                "room_id": room.room_id,
                "room_number": room.room_number,
                "room_type": room.room_type,
                "max_capacity": room.max_capacity,
                "total_beds": total_beds,
                "available_beds": int(available_beds or 0),
            }
            for room, total_beds, available_beds in result.all()
        ]

    async def get_room_occupancy(self, floor_number: Optional[int] = None) -> List[Dict[str, Any]]:
        """Bed counts per room, every room including non-operational ones"""
        query = (
            select(
                Room,
                func.count(Bed.bed_id).label("total_beds"),
                func.sum(case((Bed.status == BedStatus.OCCUPIED, 1), else_=0)).label("occupied_beds"),
                func.sum(case((Bed.status == BedStatus.AVAILABLE, 1), else_=0)).label("available_beds"),
            )
            .outerjoin(Bed, Bed.room_id == Room.room_id)
            .group_by(Room.room_id)
            .order_by(Room.floor_number, Room.room_number)
        )
        if floor_number is not None:
            query = query.where(Room.floor_number == floor_number)

        result = await self.db.execute(query)
        return [
            {
                "room_id": room.room_id,
                "room_number": room.room_number,
                "floor_number": room.floor_number,
                "room_type": room.room_type,
                "department_id": room.department_id,
                "is_operational": room.is_operational,
                "total_beds": total_beds,
                "occupied_beds": int(occupied_beds or 0),
                "available_beds": int(available_beds or 0),
            }
            for room, total_beds, occupied_beds, available_beds in result.all()
        ]

    async def get_all_with_beds(self) -> List[Room]:
        """Every room with its beds loaded, ordered by floor and room number"""
        result = await self.db.execute(
            select(Room)
            .options(selectinload(Room.beds))
            .order_by(Room.floor_number, Room.room_number)
        )
        return list(result.scalars().all())


class BedRepository:
    """Repository for bed data access operations"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(
        self,
        bed_id: int,
        for_update: bool = False,
        with_assignment: bool = False
    ) -> Optional[Bed]:
        """Get bed (room is always joined).

        ``for_update`` locks the bed row until the transaction ends and
        refreshes an already loaded instance from the locked row.
        """
        query = select(Bed).where(Bed.bed_id == bed_id)
        if with_assignment:
            query = query.options(selectinload(Bed.current_assignment))
        if for_update:
            query = query.with_for_update(of=Bed).execution_options(populate_existing=True)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_all(
        self,
        status: Optional[BedStatus] = None,
        bed_type: Optional[BedType] = None,
        floor_number: Optional[int] = None,
        room_type: Optional[RoomType] = None,
        room_id: Optional[int] = None,
        operational_only: bool = False
    ) -> List[Bed]:
        """Get beds ordered by floor, room and bed number"""
        query = (
            select(Bed)
            .join(Bed.room)
            .options(selectinload(Bed.current_assignment))
        )

        if status:
            query = query.where(Bed.status == status)

        if bed_type:
            query = query.where(Bed.bed_type == bed_type)

        if floor_number is not None:
            query = query.where(Room.floor_number == floor_number)

        if room_type:
            query = query.where(Room.room_type == room_type)

        if room_id is not None:
            query = query.where(Bed.room_id == room_id)

        if operational_only:
            query = query.where(Room.is_operational.is_(True))

        query = query.order_by(Room.floor_number, Room.room_number, Bed.bed_number)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def count_by_status(self) -> Dict[BedStatus, int]:
        result = await self.db.execute(
            select(Bed.status, func.count(Bed.bed_id)).group_by(Bed.status)
        )
        return {status: count for status, count in result.all()}

    async def count(self) -> int:
        result = await self.db.execute(select(func.count(Bed.bed_id)))
        return result.scalar_one()

    async def compare_and_set_status(
        self,
        bed: Bed,
        expected: Iterable[BedStatus],
        new_status: BedStatus,
        **values: Any
    ) -> bool:
        """Move ``bed`` to ``new_status`` only if its stored status is still one of ``expected``.

        Returns False when another transaction changed the bed first. On
        success the in-memory instance is synced without marking it dirty.
        """
        values["status"] = new_status
        stmt = (
            update(Bed)
            .where(Bed.bed_id == bed.bed_id, Bed.status.in_(list(expected)))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        if result.rowcount != 1:
            return False

        for key, value in values.items():
            set_committed_value(bed, key, value)
        return True


class BedStatusLogRepository:
    """Append-only access to the bed status log"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def append(self, entry_data: dict) -> BedStatusLog:
        entry = BedStatusLog(**entry_data)
        self.db.add(entry)
        await self.db.flush()
        return entry

    async def get_bed_history(self, bed_id: int, limit: int) -> List[BedStatusLog]:
        """Most recent first"""
        result = await self.db.execute(
            select(BedStatusLog)
            .where(BedStatusLog.bed_id == bed_id)
            .order_by(BedStatusLog.changed_at.desc(), BedStatusLog.log_id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def get_changes_since(self, since: datetime, limit: int) -> List[BedStatusLog]:
        result = await self.db.execute(
            select(BedStatusLog)
            .where(BedStatusLog.changed_at >= since)
            .order_by(BedStatusLog.changed_at.desc(), BedStatusLog.log_id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def get_by_admission(self, admission_id: int) -> List[BedStatusLog]:
        """Oldest first"""
        result = await self.db.execute(
            select(BedStatusLog)
            .where(BedStatusLog.admission_id == admission_id)
            .order_by(BedStatusLog.changed_at, BedStatusLog.log_id)
        )
        return list(result.scalars().all())

    async def get_staff_activity(
        self,
        staff_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> List[BedStatusLog]:
        query = select(BedStatusLog).where(BedStatusLog.changed_by == staff_id)

        if start:
            query = query.where(BedStatusLog.changed_at >= start)

        if end:
            query = query.where(BedStatusLog.changed_at <= end)

        result = await self.db.execute(
            query.order_by(BedStatusLog.changed_at.desc(), BedStatusLog.log_id.desc())
        )
        return list(result.scalars().all())

    async def get_latest_entries_into(self, status: BedStatus) -> Dict[int, BedStatusLog]:
        """Latest entry per bed whose transition ended in ``status``, keyed by bed id"""
        latest_ids = (
            select(func.max(BedStatusLog.log_id))
            .where(BedStatusLog.new_status == status)
            .group_by(BedStatusLog.bed_id)
        )
        result = await self.db.execute(
            select(BedStatusLog).where(BedStatusLog.log_id.in_(latest_ids))
        )
        return {entry.bed_id: entry for entry in result.scalars().all()}
