"""
Bed Assignment API Routes

API endpoints for assigning, transferring and releasing beds.
"""

from fastapi import APIRouter, Depends, Query, status
from typing import List, Optional

from ibms.api.deps import get_assignment_service, get_stats_service, get_staff_id
from ibms.domain.admissions.service import BedAssignmentService
from ibms.domain.beds.models import BedType, RoomType
from ibms.domain.reporting.service import BedStatsService
from ibms.api.v1.beds.schemas import StatusLogResponse, CurrentAssignmentItem
from ibms.api.v1.assignments.schemas import (
    AssignBedRequest, TransferRequest, ReleaseRequest, AdmitRequest,
    AdmissionResponse, AssignmentResponse, TransferResponse, AdmitResponse, ReleaseResponse
)

router = APIRouter()


@router.post("/assign", response_model=AssignmentResponse, status_code=status.HTTP_201_CREATED)
async def assign_bed(
    assign_data: AssignBedRequest,
    staff_id: Optional[int] = Depends(get_staff_id),
    service: BedAssignmentService = Depends(get_assignment_service),
):
    """Assign a bed to an admission"""
    return await service.assign(assign_data.admission_id, assign_data.bed_id, staff_id)


@router.post("/transfer", response_model=TransferResponse)
async def transfer_patient(
    transfer_data: TransferRequest,
    staff_id: Optional[int] = Depends(get_staff_id),
    service: BedAssignmentService = Depends(get_assignment_service),
):
    """Move an admission to another bed; the old bed goes to cleaning"""
    result = await service.transfer(
        transfer_data.admission_id, transfer_data.new_bed_id, staff_id, transfer_data.reason
    )
    return TransferResponse.model_validate(result)


@router.post("/release", response_model=ReleaseResponse)
async def release_bed(
    release_data: ReleaseRequest,
    staff_id: Optional[int] = Depends(get_staff_id),
    service: BedAssignmentService = Depends(get_assignment_service),
):
    """Discharge an admission and release its bed"""
    result = await service.release(
        release_data.admission_id,
        reason=release_data.reason,
        discharge_type=release_data.discharge_type,
        discharge_summary=release_data.discharge_summary,
        released_by=staff_id,
    )
    return ReleaseResponse.model_validate(result)


@router.post("/admit", response_model=AdmitResponse, status_code=status.HTTP_201_CREATED)
async def admit_patient(
    admit_data: AdmitRequest,
    staff_id: Optional[int] = Depends(get_staff_id),
    service: BedAssignmentService = Depends(get_assignment_service),
):
    """Create an admission and assign its bed in one step"""
    result = await service.admit(
        patient_id=admit_data.patient_id,
        bed_id=admit_data.bed_id,
        attending_doctor_id=admit_data.attending_doctor_id,
        diagnosis=admit_data.diagnosis_at_admission,
        admission_type=admit_data.admission_type,
        admission_source=admit_data.admission_source,
        assigned_by=staff_id,
        expected_discharge_date=admit_data.expected_discharge_date,
    )
    return AdmitResponse.model_validate(result)


@router.get("/current", response_model=List[CurrentAssignmentItem])
async def current_assignments(
    floor: Optional[int] = Query(None, ge=0),
    room_type: Optional[RoomType] = None,
    bed_type: Optional[BedType] = None,
    stats: BedStatsService = Depends(get_stats_service),
):
    """Occupied beds with their admissions, ordered by floor, room and bed number"""
    return await stats.get_current_bed_assignments(floor_number=floor, room_type=room_type, bed_type=bed_type)


@router.get("/admissions/{admission_id}", response_model=AdmissionResponse)
async def get_admission(
    admission_id: int,
    service: BedAssignmentService = Depends(get_assignment_service),
):
    return await service.get_admission(admission_id)


@router.get("/admissions/{admission_id}/current", response_model=AssignmentResponse)
async def current_assignment(
    admission_id: int,
    service: BedAssignmentService = Depends(get_assignment_service),
):
    return await service.get_current_bed_assignment(admission_id)


@router.get("/admissions/{admission_id}/history", response_model=List[AssignmentResponse])
async def assignment_history(
    admission_id: int,
    service: BedAssignmentService = Depends(get_assignment_service),
):
    """Bed assignments for an admission, most recent first"""
    return await service.get_bed_assignment_history(admission_id)


@router.get("/admissions/{admission_id}/status-log", response_model=List[StatusLogResponse])
async def admission_status_log(
    admission_id: int,
    service: BedAssignmentService = Depends(get_assignment_service),
):
    return await service.get_admission_bed_history(admission_id)
