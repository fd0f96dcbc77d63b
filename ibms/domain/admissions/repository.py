from typing import Optional, List, Tuple
from datetime import datetime
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_

from ibms.domain.admissions.models import Admission, AdmissionStatus, BedAssignment
from ibms.domain.beds.models import Bed, BedType, Room, RoomType


class AdmissionRepository:
    """Repository for admission data access operations"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, admission_data: dict) -> Admission:
        """Create a new admission and assign its number"""
        admission = Admission(**admission_data)
        self.db.add(admission)
        await self.db.flush()

        # Format: ADM-YYYYMMDD-NNNNN, unique through the admission id
        admission.admission_number = (
            f"ADM-{admission.admission_date:%Y%m%d}-{admission.admission_id:05d}"
        )
        await self.db.flush()
        return admission

    async def get_by_id(self, admission_id: int, for_update: bool = False) -> Optional[Admission]:
        query = select(Admission).where(Admission.admission_id == admission_id)
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_discharged_between(self, start: datetime, end: datetime) -> List[Admission]:
        result = await self.db.execute(
            select(Admission)
            .where(
                Admission.admission_status.in_([AdmissionStatus.DISCHARGED, AdmissionStatus.DECEASED]),
                Admission.discharge_date >= start,
                Admission.discharge_date <= end,
            )
        )
        return list(result.scalars().all())


class BedAssignmentRepository:
    """Repository for bed assignment data access operations"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, assignment_data: dict) -> BedAssignment:
        assignment = BedAssignment(**assignment_data)
        self.db.add(assignment)
        await self.db.flush()
        return assignment

    async def get_current(self, admission_id: int) -> Optional[BedAssignment]:
        """The admission's current assignment, bed and room joined"""
        result = await self.db.execute(
            select(BedAssignment)
            .where(
                BedAssignment.admission_id == admission_id,
                BedAssignment.is_current.is_(True),
            )
        )
        return result.scalar_one_or_none()

    async def get_history(self, admission_id: int) -> List[BedAssignment]:
        """Most recent first"""
        result = await self.db.execute(
            select(BedAssignment)
            .where(BedAssignment.admission_id == admission_id)
            .order_by(BedAssignment.assigned_at.desc(), BedAssignment.assignment_id.desc())
        )
        return list(result.scalars().all())

    async def count_released_between(self, start: datetime, end: datetime) -> int:
        result = await self.db.execute(
            select(func.count(BedAssignment.assignment_id))
            .where(
                BedAssignment.released_at.is_not(None),
                BedAssignment.released_at >= start,
                BedAssignment.released_at <= end,
            )
        )
        return result.scalar_one()

    async def count_current_by_bed(self) -> dict:
        """Number of current assignments per bed id"""
        result = await self.db.execute(
            select(BedAssignment.bed_id, func.count(BedAssignment.assignment_id))
            .where(BedAssignment.is_current.is_(True))
            .group_by(BedAssignment.bed_id)
        )
        return {bed_id: count for bed_id, count in result.all()}

    async def get_current_assignments(
        self,
        floor_number: Optional[int] = None,
        room_type: Optional[RoomType] = None,
        bed_type: Optional[BedType] = None
    ) -> List[Tuple[BedAssignment, Admission]]:
        """Current assignments with their admissions, ordered by floor, room and bed number"""
        query = (
            select(BedAssignment, Admission)
            .join(Admission, Admission.admission_id == BedAssignment.admission_id)
            .join(Bed, Bed.bed_id == BedAssignment.bed_id)
            .join(Room, Room.room_id == Bed.room_id)
            .where(BedAssignment.is_current.is_(True))
        )

        if floor_number is not None:
            query = query.where(Room.floor_number == floor_number)

        if room_type:
            query = query.where(Room.room_type == room_type)

        if bed_type:
            query = query.where(Bed.bed_type == bed_type)

        result = await self.db.execute(
            query.order_by(Room.floor_number, Room.room_number, Bed.bed_number)
        )
        return [(assignment, admission) for assignment, admission in result.all()]

    async def get_overlapping(self, start: datetime, end: datetime) -> List[BedAssignment]:
        """Assignments that held their bed at some point in [start, end)"""
        result = await self.db.execute(
            select(BedAssignment)
            .where(
                BedAssignment.assigned_at < end,
                or_(BedAssignment.released_at.is_(None), BedAssignment.released_at >= start),
            )
        )
        return list(result.scalars().all())
