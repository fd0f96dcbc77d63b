"""
Bed Assignment Service Layer

The only path that occupies a bed. Assignment, transfer, release and
admission all keep two rules: an occupied bed has exactly one current
assignment, and an admission has at most one.
"""

from dataclasses import dataclass
from typing import Optional, List, Callable
from datetime import datetime, date
import logging

from sqlalchemy.exc import IntegrityError

from ibms.core.exceptions import NotFoundError, ConflictError, handle_errors
from ibms.domain.admissions.models import (
    Admission, AdmissionStatus, AdmissionType, AdmissionSource, DischargeType,
    BedAssignment, CLOSED_ADMISSION_STATUSES
)
from ibms.domain.admissions.repository import AdmissionRepository, BedAssignmentRepository
from ibms.domain.beds.models import Bed, BedStatus, BedStatusLog
from ibms.domain.beds.repository import BedRepository, BedStatusLogRepository
from ibms.domain.beds.service import BedService, bed_snapshot
from ibms.infrastructure.database import SessionFactory, UnitOfWork, unit_of_work
from ibms.infrastructure.notifications import Notifier, BedEvent, notify_after_commit
from ibms.utils.datetime_utils import utc_now, whole_days_between

logger = logging.getLogger(__name__)

# Statuses a bed may be assigned from
ASSIGNABLE_STATUSES = (BedStatus.AVAILABLE, BedStatus.RESERVED)


@dataclass
class TransferResult:
    assignment: BedAssignment
    previous_assignment: BedAssignment


@dataclass
class AdmitResult:
    admission: Admission
    assignment: BedAssignment


@dataclass
class ReleaseResult:
    admission: Admission
    assignment: BedAssignment
    bed: Bed
    length_of_stay_days: int


class BedAssignmentService:
    """Service layer for assigning, transferring and releasing beds"""

    def __init__(
        self,
        session_factory: SessionFactory,
        notifier: Notifier,
        bed_service: Optional[BedService] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        self.session_factory = session_factory
        self.notifier = notifier
        self.clock = clock
        self.bed_service = bed_service or BedService(session_factory, notifier, clock=clock)

    async def _load_active_admission(self, uow: UnitOfWork, admission_id: int) -> Admission:
        admission = await AdmissionRepository(uow.session).get_by_id(admission_id, for_update=True)
        if not admission:
            raise NotFoundError("Admission not found.")
        if admission.admission_status in CLOSED_ADMISSION_STATUSES:
            raise ConflictError("Patient has already been discharged.")
        return admission

    async def _vacate(
        self,
        uow: UnitOfWork,
        assignment: BedAssignment,
        released_at: datetime,
        reason: str,
        actor_id: Optional[int]
    ) -> Bed:
        """End ``assignment`` and send its bed to cleaning"""
        bed = await BedRepository(uow.session).get_by_id(assignment.bed_id, for_update=True)

        assignment.is_current = False
        assignment.released_at = released_at
        await uow.session.flush()

        old_status = await self.bed_service.flip_status(
            uow, bed, BedStatus.CLEANING, expected=(BedStatus.OCCUPIED,)
        )
        await self.bed_service.record_transition(
            uow, bed, old_status, reason, actor_id,
            admission_id=assignment.admission_id,
            assignment_id=assignment.assignment_id,
        )
        return bed

    @handle_errors("Failed to assign bed.")
    async def assign(
        self,
        admission_id: int,
        bed_id: int,
        assigned_by: Optional[int],
        transfer_reason: Optional[str] = None,
        uow: Optional[UnitOfWork] = None
    ) -> BedAssignment:
        """Occupy ``bed_id`` for the admission, releasing any bed it currently holds"""
        async with unit_of_work(self.session_factory, uow) as work:
            await self._load_active_admission(work, admission_id)

            bed = await BedRepository(work.session).get_by_id(bed_id, for_update=True)
            if not bed:
                raise NotFoundError("Bed not found.")
            if bed.status not in ASSIGNABLE_STATUSES:
                raise ConflictError(
                    f"Bed {bed.bed_number} is currently {bed.status.value}. Please select an available bed.",
                    details={"bed_id": bed.bed_id, "current_status": bed.status.value},
                )

            now = self.clock()
            previous = await BedAssignmentRepository(work.session).get_current(admission_id)
            if previous:
                old_bed = await self._vacate(
                    work, previous, now, f"Transfer to bed {bed.bed_number}", assigned_by
                )
                notify_after_commit(work, self.notifier, BedEvent.BED_STATUS_CHANGED, {
                    **bed_snapshot(old_bed),
                    "old_status": BedStatus.OCCUPIED.value,
                    "new_status": BedStatus.CLEANING.value,
                    "changed_by": assigned_by,
                    "admission_id": admission_id,
                })

            # Claim the bed before inserting the assignment so a lost race
            # surfaces as a conflict rather than a unique index violation
            old_status = await self.bed_service.flip_status(work, bed, BedStatus.OCCUPIED)

            try:
                assignment = await BedAssignmentRepository(work.session).create({
                    "admission_id": admission_id,
                    "bed": bed,
                    "assigned_at": now,
                    "assigned_by": assigned_by,
                    "transfer_reason": transfer_reason,
                    "is_current": True,
                })
            except IntegrityError as e:
                raise ConflictError(
                    "Bed assignment changed concurrently. Please try again.",
                    details={"admission_id": admission_id, "bed_id": bed_id},
                ) from e

            await self.bed_service.record_transition(
                work, bed, old_status, f"Assigned to admission ID: {admission_id}", assigned_by,
                admission_id=admission_id,
                assignment_id=assignment.assignment_id,
            )

            notify_after_commit(work, self.notifier, BedEvent.BED_ASSIGNED, {
                **bed_snapshot(bed),
                "admission_id": admission_id,
                "assignment_id": assignment.assignment_id,
                "assigned_by": assigned_by,
                "assigned_at": now.isoformat(),
            })

        logger.info(f"Admission {admission_id} assigned to bed {bed_id}")
        return assignment

    @handle_errors("Failed to transfer patient.")
    async def transfer(
        self,
        admission_id: int,
        new_bed_id: int,
        assigned_by: Optional[int],
        reason: Optional[str] = None,
        uow: Optional[UnitOfWork] = None
    ) -> TransferResult:
        async with unit_of_work(self.session_factory, uow) as work:
            previous = await BedAssignmentRepository(work.session).get_current(admission_id)
            if not previous:
                raise NotFoundError("No admission found.")
            from_bed = bed_snapshot(previous.bed)

            assignment = await self.assign(
                admission_id, new_bed_id, assigned_by, transfer_reason=reason, uow=work
            )

            notify_after_commit(work, self.notifier, BedEvent.BED_TRANSFERRED, {
                "admission_id": admission_id,
                "assignment_id": assignment.assignment_id,
                "from_bed": {**from_bed, "status": BedStatus.CLEANING.value},
                "to_bed": bed_snapshot(assignment.bed),
                "reason": reason,
                "transferred_by": assigned_by,
            })

        return TransferResult(assignment=assignment, previous_assignment=previous)

    @handle_errors("Failed to release bed.")
    async def release(
        self,
        admission_id: int,
        reason: Optional[str] = None,
        discharge_type: DischargeType = DischargeType.ROUTINE,
        discharge_summary: Optional[str] = None,
        released_by: Optional[int] = None,
        uow: Optional[UnitOfWork] = None
    ) -> ReleaseResult:
        """Discharge the admission and send its bed to cleaning"""
        async with unit_of_work(self.session_factory, uow) as work:
            admission = await self._load_active_admission(work, admission_id)

            assignment = await BedAssignmentRepository(work.session).get_current(admission_id)
            if not assignment:
                raise NotFoundError("No active bed assignment found for this admission.")

            discharge_date = self.clock()
            length_of_stay = whole_days_between(admission.admission_date, discharge_date)
            reason = reason or f"Patient discharged - {discharge_type.value}"

            admission.admission_status = (
                AdmissionStatus.DECEASED if discharge_type == DischargeType.DECEASED
                else AdmissionStatus.DISCHARGED
            )
            admission.discharge_date = discharge_date
            admission.discharge_type = discharge_type
            admission.discharge_summary = discharge_summary
            admission.length_of_stay_days = length_of_stay

            assignment.transfer_reason = reason
            actor_id = released_by if released_by is not None else assignment.assigned_by
            bed = await self._vacate(work, assignment, discharge_date, reason, actor_id)

            notify_after_commit(work, self.notifier, BedEvent.BED_RELEASED, {
                **bed_snapshot(bed),
                "admission_id": admission_id,
                "assignment_id": assignment.assignment_id,
                "released_at": discharge_date.isoformat(),
            })
            notify_after_commit(work, self.notifier, BedEvent.ADMISSION_DISCHARGED, {
                "admission_id": admission_id,
                "patient_id": admission.patient_id,
                "admission_status": admission.admission_status.value,
                "discharge_type": discharge_type.value,
                "length_of_stay_days": length_of_stay,
                "bed_id": bed.bed_id,
            })

        logger.info(f"Admission {admission_id} released from bed {bed.bed_id} after {length_of_stay} days")
        return ReleaseResult(
            admission=admission,
            assignment=assignment,
            bed=bed,
            length_of_stay_days=length_of_stay,
        )

    @handle_errors("Failed to admit patient.")
    async def admit(
        self,
        patient_id: int,
        bed_id: int,
        attending_doctor_id: int,
        diagnosis: str,
        admission_type: AdmissionType,
        admission_source: AdmissionSource,
        assigned_by: Optional[int],
        expected_discharge_date: Optional[date] = None,
        uow: Optional[UnitOfWork] = None
    ) -> AdmitResult:
        """Create an admission and assign its first bed in one transaction"""
        async with unit_of_work(self.session_factory, uow) as work:
            admission = await AdmissionRepository(work.session).create({
                "patient_id": patient_id,
                "admission_date": self.clock(),
                "admission_type": admission_type,
                "admission_source": admission_source,
                "attending_doctor_id": attending_doctor_id,
                "diagnosis_at_admission": diagnosis,
                "expected_discharge_date": expected_discharge_date,
                "admission_status": AdmissionStatus.ACTIVE,
            })
            assignment = await self.assign(
                admission.admission_id, bed_id, assigned_by, uow=work
            )

        logger.info(f"Admitted patient {patient_id} as {admission.admission_number}")
        return AdmitResult(admission=admission, assignment=assignment)

    # Reads

    @handle_errors("Failed to fetch admission.")
    async def get_admission(self, admission_id: int) -> Admission:
        async with self.session_factory() as db:
            admission = await AdmissionRepository(db).get_by_id(admission_id)
        if not admission:
            raise NotFoundError("Admission not found.")
        return admission

    @handle_errors("Failed to fetch current bed assignment.")
    async def get_current_bed_assignment(self, admission_id: int) -> BedAssignment:
        async with self.session_factory() as db:
            assignment = await BedAssignmentRepository(db).get_current(admission_id)
        if not assignment:
            raise NotFoundError("No active bed assignment found.")
        return assignment

    @handle_errors("Failed to fetch bed assignment history.")
    async def get_bed_assignment_history(self, admission_id: int) -> List[BedAssignment]:
        async with self.session_factory() as db:
            if not await AdmissionRepository(db).get_by_id(admission_id):
                raise NotFoundError("Admission not found.")
            return await BedAssignmentRepository(db).get_history(admission_id)

    @handle_errors("Failed to fetch admission bed history.")
    async def get_admission_bed_history(self, admission_id: int) -> List[BedStatusLog]:
        async with self.session_factory() as db:
            return await BedStatusLogRepository(db).get_by_admission(admission_id)
