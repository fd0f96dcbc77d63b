"""
Bed Assignment API Schemas

Pydantic models for assignment, transfer, release and admission requests.
"""

from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime, date
from ibms.domain.admissions.models import (
    AdmissionStatus, AdmissionType, AdmissionSource, DischargeType
)
from ibms.api.v1.beds.schemas import BedResponse


# ==================== Request Schemas ====================

class AssignBedRequest(BaseModel):
    admission_id: int
    bed_id: int


class TransferRequest(BaseModel):
    admission_id: int
    new_bed_id: int
    reason: Optional[str] = Field(None, max_length=1000)


class ReleaseRequest(BaseModel):
    """Schema for discharging an admission from its bed"""
    admission_id: int
    reason: Optional[str] = Field(None, max_length=1000)
    discharge_type: DischargeType = DischargeType.ROUTINE
    discharge_summary: Optional[str] = None


class AdmitRequest(BaseModel):
    """Schema for admitting a patient straight into a bed"""
    patient_id: int
    bed_id: int
    attending_doctor_id: int
    diagnosis_at_admission: str = Field(..., min_length=1)
    admission_type: AdmissionType
    admission_source: AdmissionSource
    expected_discharge_date: Optional[date] = None


# ==================== Response Schemas ====================

class AssignmentResponse(BaseModel):
    """Schema for bed assignment response"""
    assignment_id: int
    admission_id: int
    bed_id: int
    assigned_at: datetime
    assigned_by: Optional[int] = None
    released_at: Optional[datetime] = None
    transfer_reason: Optional[str] = None
    is_current: bool
    bed: BedResponse

    class Config:
        from_attributes = True


class AdmissionResponse(BaseModel):
    """Schema for admission response"""
    admission_id: int
    admission_number: Optional[str] = None
    patient_id: int
    admission_date: datetime
    admission_type: AdmissionType
    admission_source: AdmissionSource
    attending_doctor_id: int
    diagnosis_at_admission: str
    expected_discharge_date: Optional[date] = None
    admission_status: AdmissionStatus
    discharge_date: Optional[datetime] = None
    discharge_type: Optional[DischargeType] = None
    discharge_summary: Optional[str] = None
    length_of_stay_days: Optional[int] = None

    class Config:
        from_attributes = True


class TransferResponse(BaseModel):
    assignment: AssignmentResponse
    previous_assignment: AssignmentResponse

    class Config:
        from_attributes = True


class AdmitResponse(BaseModel):
    admission: AdmissionResponse
    assignment: AssignmentResponse

    class Config:
        from_attributes = True


class ReleaseResponse(BaseModel):
    """Discharged admission, ended assignment and the bed sent to cleaning"""
    admission: AdmissionResponse
    assignment: AssignmentResponse
    bed: BedResponse
    length_of_stay_days: int

    class Config:
        from_attributes = True
