"""
Beds API Schemas

Pydantic models for bed registry, bed status and statistics responses.
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime, date
from ibms.domain.beds.models import BedStatus, BedType, RoomType


# ==================== Bed Schemas ====================

class RoomBrief(BaseModel):
    """Room context shown with a bed"""
    room_id: int
    room_number: str
    room_type: RoomType
    floor_number: int

    class Config:
        from_attributes = True


class CurrentAssignmentBrief(BaseModel):
    assignment_id: int
    admission_id: int
    assigned_at: datetime
    assigned_by: Optional[int] = None

    class Config:
        from_attributes = True


class BedResponse(BaseModel):
    """Schema for bed response"""
    bed_id: int
    room_id: int
    bed_number: str
    bed_type: BedType
    status: BedStatus
    features: Optional[Dict[str, Any]] = None
    last_cleaned_at: Optional[datetime] = None
    maintenance_reported_at: Optional[datetime] = None
    room: RoomBrief

    class Config:
        from_attributes = True


class BedDetailResponse(BedResponse):
    """Bed with its current assignment, if occupied"""
    current_assignment: Optional[CurrentAssignmentBrief] = None


class BedStatusUpdate(BaseModel):
    """Schema for a generic status change"""
    status: BedStatus
    reason: Optional[str] = Field(None, max_length=1000)
    notes: Optional[str] = None


class MaintenanceRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1000)


class CleanedRequest(BaseModel):
    notes: Optional[str] = None


class ReserveRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000)


# ==================== Summary Schemas ====================

class FloorSummary(BaseModel):
    floor_number: int
    total_beds: int
    available_beds: int
    occupied_beds: int


class RoomSummary(BaseModel):
    room_id: int
    room_number: str
    room_type: RoomType
    max_capacity: int
    total_beds: int
    available_beds: int


# ==================== Status Log Schemas ====================

class BedBrief(BaseModel):
    bed_id: int
    bed_number: str
    room: RoomBrief

    class Config:
        from_attributes = True


class StatusLogResponse(BaseModel):
    """Schema for one bed status log entry"""
    log_id: int
    bed_id: int
    old_status: Optional[BedStatus] = None
    new_status: BedStatus
    changed_by: Optional[int] = None
    change_reason: Optional[str] = None
    admission_id: Optional[int] = None
    assignment_id: Optional[int] = None
    changed_at: datetime
    additional_notes: Optional[str] = None
    bed: Optional[BedBrief] = None

    class Config:
        from_attributes = True


# ==================== Statistics Schemas ====================

class OccupancyStats(BaseModel):
    total_beds: int
    status_breakdown: Dict[str, int]
    occupancy_rate: float
    availability_rate: float


class RoomSnapshot(BaseModel):
    room_id: int
    room_number: str
    floor_number: int


class AttentionItem(BaseModel):
    """Bed in cleaning or maintenance"""
    bed_id: int
    bed_number: str
    bed_type: BedType
    status: BedStatus
    room: Optional[RoomSnapshot] = None
    reason: Optional[str] = None
    since: Optional[datetime] = None
    changed_by: Optional[int] = None


class TurnoverStats(BaseModel):
    period_days: int
    total_beds: int
    releases: int
    discharges: int
    average_length_of_stay_days: Optional[float] = None
    turnover_rate: float


class InconsistencyItem(BaseModel):
    bed_id: int
    bed_number: str
    bed_type: BedType
    status: BedStatus
    room: Optional[RoomSnapshot] = None
    current_assignments: int


class CurrentAssignmentItem(BaseModel):
    """Occupied bed with the admission holding it"""
    bed_id: int
    bed_number: str
    bed_type: BedType
    status: BedStatus
    room: Optional[RoomSnapshot] = None
    room_type: RoomType
    department_id: Optional[int] = None
    assignment_id: int
    assigned_at: datetime
    assigned_by: Optional[int] = None
    admission_id: int
    admission_number: Optional[str] = None
    patient_id: int
    admission_date: datetime
    expected_discharge_date: Optional[date] = None
    attending_doctor_id: int


class RoomOccupancy(BaseModel):
    room_id: int
    room_number: str
    floor_number: int
    room_type: RoomType
    department_id: Optional[int] = None
    is_operational: bool
    total_beds: int
    occupied_beds: int
    available_beds: int
    occupancy_rate: float


class OccupancyTrendPoint(BaseModel):
    day: date
    occupied_beds: int
    total_beds: int
    occupancy_rate: float


class BedStatusBrief(BaseModel):
    bed_id: int
    bed_number: str
    status: BedStatus


class RoomBedStatuses(BaseModel):
    room_id: int
    room_number: str
    floor_number: int
    bed_statuses: List[BedStatusBrief]


class RoomTypeOccupancy(BaseModel):
    """Bed counts and rates for one room type"""
    room_type: RoomType
    total_beds: int
    occupied_beds: int
    available_beds: int
    maintenance_beds: int
    occupancy_rate: float
    availability_rate: float
    rooms: List[RoomBedStatuses]


class DepartmentUtilization(BaseModel):
    department_id: Optional[int] = None
    room_count: int
    total_beds: int
    occupied_beds: int
    available_beds: int
    occupancy_rate: float

class BedListResponse(BaseModel):
    """Schema for bed list"""
    beds: List[BedDetailResponse]
    total: int
