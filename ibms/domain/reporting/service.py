"""
Bed Statistics Service

Read-only views over beds, the status log and assignment history.
"""

from typing import Optional, List, Dict, Any, Callable
from datetime import datetime, date, time, timedelta

from ibms.core.config import settings
from ibms.core.exceptions import ValidationError, handle_errors
from ibms.domain.admissions.repository import AdmissionRepository, BedAssignmentRepository
from ibms.domain.beds.models import BedStatus, BedStatusLog, BedType, RoomType
from ibms.domain.beds.repository import BedRepository, BedStatusLogRepository, RoomRepository
from ibms.domain.beds.service import bed_snapshot
from ibms.infrastructure.database import SessionFactory
from ibms.utils.datetime_utils import utc_now, hours_before, as_naive_utc

ATTENTION_STATUSES = (BedStatus.CLEANING, BedStatus.MAINTENANCE)


def _percentage(part: int, total: int) -> float:
    if not total:
        return 0.0
    return round(part / total * 100, 2)


class BedStatsService:
    """Service layer for bed occupancy and turnover statistics"""

    def __init__(self, session_factory: SessionFactory, clock: Callable[[], datetime] = utc_now):
        self.session_factory = session_factory
        self.clock = clock

    @handle_errors("Failed to fetch bed occupancy statistics.")
    async def get_bed_occupancy_stats(self) -> Dict[str, Any]:
        async with self.session_factory() as db:
            counts = await BedRepository(db).count_by_status()

        breakdown = {status.value: counts.get(status, 0) for status in BedStatus}
        total = sum(breakdown.values())
        return {
            "total_beds": total,
            "status_breakdown": breakdown,
            "occupancy_rate": _percentage(breakdown[BedStatus.OCCUPIED.value], total),
            "availability_rate": _percentage(breakdown[BedStatus.AVAILABLE.value], total),
        }

    @handle_errors("Failed to fetch beds requiring attention.")
    async def get_beds_requiring_attention(self) -> List[Dict[str, Any]]:
        """Beds in cleaning or maintenance, with how they got there"""
        results = []
        async with self.session_factory() as db:
            beds = BedRepository(db)
            logs = BedStatusLogRepository(db)
            for status in ATTENTION_STATUSES:
                latest = await logs.get_latest_entries_into(status)
                for bed in await beds.get_all(status=status):
                    results.append(self._attention_item(bed, latest.get(bed.bed_id)))
        return results

    @handle_errors("Failed to fetch long maintenance beds.")
    async def get_long_maintenance_beds(self, hours: Optional[int] = None) -> List[Dict[str, Any]]:
        cutoff = hours_before(self.clock(), hours or settings.LONG_MAINTENANCE_HOURS)
        async with self.session_factory() as db:
            latest = await BedStatusLogRepository(db).get_latest_entries_into(BedStatus.MAINTENANCE)
            beds = await BedRepository(db).get_all(status=BedStatus.MAINTENANCE)

        results = []
        for bed in beds:
            entry = latest.get(bed.bed_id)
            since = entry.changed_at if entry else bed.maintenance_reported_at
            if since is not None and since <= cutoff:
                results.append(self._attention_item(bed, entry))
        return results

    @handle_errors("Failed to fetch bed turnover.")
    async def get_turnover(self, days: Optional[int] = None) -> Dict[str, Any]:
        window_days = days or settings.TURNOVER_WINDOW_DAYS
        end = self.clock()
        start = end - timedelta(days=window_days)

        async with self.session_factory() as db:
            releases = await BedAssignmentRepository(db).count_released_between(start, end)
            discharged = await AdmissionRepository(db).get_discharged_between(start, end)
            total_beds = await BedRepository(db).count()

        stays = [a.length_of_stay_days for a in discharged if a.length_of_stay_days is not None]
        return {
            "period_days": window_days,
            "total_beds": total_beds,
            "releases": releases,
            "discharges": len(discharged),
            "average_length_of_stay_days": round(sum(stays) / len(stays), 2) if stays else None,
            "turnover_rate": round(releases / total_beds, 2) if total_beds else 0.0,
        }

    @handle_errors("Failed to check occupancy consistency.")
    async def get_occupancy_inconsistencies(self) -> List[Dict[str, Any]]:
        """Beds where occupied status and current assignments disagree"""
        async with self.session_factory() as db:
            current_counts = await BedAssignmentRepository(db).count_current_by_bed()
            beds = await BedRepository(db).get_all()

        issues = []
        for bed in beds:
            current = current_counts.get(bed.bed_id, 0)
            occupied = bed.status == BedStatus.OCCUPIED
            if (occupied and current != 1) or (not occupied and current != 0):
                issues.append({
                    **bed_snapshot(bed),
                    "current_assignments": current,
                })
        return issues

    @handle_errors("Failed to fetch staff activity.")
    async def get_staff_activity(
        self,
        staff_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> List[BedStatusLog]:
        if start is not None:
            start = as_naive_utc(start)
        if end is not None:
            end = as_naive_utc(end)
        async with self.session_factory() as db:
            return await BedStatusLogRepository(db).get_staff_activity(staff_id, start, end)

    @handle_errors("Failed to fetch current bed assignments.")
    async def get_current_bed_assignments(
        self,
        floor_number: Optional[int] = None,
        room_type: Optional[RoomType] = None,
        bed_type: Optional[BedType] = None
    ) -> List[Dict[str, Any]]:
        """Who is in which bed right now"""
        async with self.session_factory() as db:
            rows = await BedAssignmentRepository(db).get_current_assignments(
                floor_number=floor_number, room_type=room_type, bed_type=bed_type
            )

        return [
            {
                **bed_snapshot(assignment.bed),
                "room_type": assignment.bed.room.room_type,
                "department_id": assignment.bed.room.department_id,
                "assignment_id": assignment.assignment_id,
                "assigned_at": assignment.assigned_at,
                "assigned_by": assignment.assigned_by,
                "admission_id": admission.admission_id,
                "admission_number": admission.admission_number,
                "patient_id": admission.patient_id,
                "admission_date": admission.admission_date,
                "expected_discharge_date": admission.expected_discharge_date,
                "attending_doctor_id": admission.attending_doctor_id,
            }
            for assignment, admission in rows
        ]

    @handle_errors("Failed to fetch room occupancy.")
    async def get_room_occupancy_details(self, floor_number: Optional[int] = None) -> List[Dict[str, Any]]:
        async with self.session_factory() as db:
            rooms = await RoomRepository(db).get_room_occupancy(floor_number)

        for room in rooms:
            room["occupancy_rate"] = _percentage(room["occupied_beds"], room["total_beds"])
        return rooms

    @handle_errors("Failed to fetch bed occupancy trends.")
    async def get_bed_occupancy_trends(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None
    ) -> List[Dict[str, Any]]:
        """Beds occupied at any point of each day in the range, both ends included.

        Defaults to the last seven days up to today.
        """
        end_date = end_date or self.clock().date()
        start_date = start_date or end_date - timedelta(days=6)
        if end_date < start_date:
            raise ValidationError(
                "End date must not be before start date.",
                details={"start_date": start_date.isoformat(), "end_date": end_date.isoformat()},
            )
        day_count = (end_date - start_date).days + 1
        if day_count > settings.OCCUPANCY_TRENDS_MAX_DAYS:
            raise ValidationError(
                f"Occupancy trends cover at most {settings.OCCUPANCY_TRENDS_MAX_DAYS} days.",
                details={"requested_days": day_count},
            )

        window_start = datetime.combine(start_date, time.min)
        window_end = datetime.combine(end_date + timedelta(days=1), time.min)
        async with self.session_factory() as db:
            assignments = await BedAssignmentRepository(db).get_overlapping(window_start, window_end)
            total_beds = await BedRepository(db).count()

        trends = []
        for offset in range(day_count):
            day_start = window_start + timedelta(days=offset)
            day_end = day_start + timedelta(days=1)
            occupied = {
                a.bed_id for a in assignments
                if a.assigned_at < day_end and (a.released_at is None or a.released_at > day_start)
            }
            trends.append({
                "day": day_start.date(),
                "occupied_beds": len(occupied),
                "total_beds": total_beds,
                "occupancy_rate": _percentage(len(occupied), total_beds),
            })
        return trends

    @handle_errors("Failed to fetch occupancy by room type.")
    async def get_bed_occupancy_by_room_type(self) -> List[Dict[str, Any]]:
        async with self.session_factory() as db:
            rooms = await RoomRepository(db).get_all_with_beds()

        groups: Dict[RoomType, Dict[str, Any]] = {}
        for room in rooms:
            group = groups.setdefault(room.room_type, {
                "room_type": room.room_type,
                "total_beds": 0,
                "occupied_beds": 0,
                "available_beds": 0,
                "maintenance_beds": 0,
                "rooms": [],
            })
            group["total_beds"] += len(room.beds)
            group["occupied_beds"] += sum(1 for b in room.beds if b.status == BedStatus.OCCUPIED)
            group["available_beds"] += sum(1 for b in room.beds if b.status == BedStatus.AVAILABLE)
            group["maintenance_beds"] += sum(1 for b in room.beds if b.status == BedStatus.MAINTENANCE)
            group["rooms"].append({
                "room_id": room.room_id,
                "room_number": room.room_number,
                "floor_number": room.floor_number,
                "bed_statuses": [
                    {"bed_id": b.bed_id, "bed_number": b.bed_number, "status": b.status}
                    for b in room.beds
                ],
            })

        results = []
        for room_type in RoomType:
            group = groups.get(room_type)
            if group is None:
                continue
            group["occupancy_rate"] = _percentage(group["occupied_beds"], group["total_beds"])
            group["availability_rate"] = _percentage(group["available_beds"], group["total_beds"])
            results.append(group)
        return results

    @handle_errors("Failed to fetch department bed utilization.")
    async def get_department_bed_utilization(self) -> List[Dict[str, Any]]:
        """Bed usage per department; rooms without a department are grouped under None"""
        async with self.session_factory() as db:
            rooms = await RoomRepository(db).get_all_with_beds()

        departments: Dict[Optional[int], Dict[str, Any]] = {}
        for room in rooms:
            department = departments.setdefault(room.department_id, {
                "department_id": room.department_id,
                "room_count": 0,
                "total_beds": 0,
                "occupied_beds": 0,
                "available_beds": 0,
            })
            department["room_count"] += 1
            department["total_beds"] += len(room.beds)
            department["occupied_beds"] += sum(1 for b in room.beds if b.status == BedStatus.OCCUPIED)
            department["available_beds"] += sum(1 for b in room.beds if b.status == BedStatus.AVAILABLE)

        results = sorted(
            departments.values(),
            key=lambda d: (d["department_id"] is None, d["department_id"] or 0),
        )
        for department in results:
            department["occupancy_rate"] = _percentage(department["occupied_beds"], department["total_beds"])
        return results

    def _attention_item(self, bed, entry: Optional[BedStatusLog]) -> Dict[str, Any]:
        return {
            **bed_snapshot(bed),
            "reason": entry.change_reason if entry else None,
            "since": entry.changed_at if entry else None,
            "changed_by": entry.changed_by if entry else None,
        }
