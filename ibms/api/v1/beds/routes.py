"""
Beds API Routes

API endpoints for the bed registry, bed status changes, the status log and
bed statistics.
"""

from fastapi import APIRouter, Depends, Query
from typing import List, Optional
from datetime import datetime, date

from ibms.api.deps import get_bed_service, get_stats_service, get_staff_id
from ibms.domain.beds.models import BedStatus, BedType, RoomType
from ibms.domain.beds.service import BedService
from ibms.domain.reporting.service import BedStatsService
from ibms.api.v1.beds.schemas import (
    # Bed schemas
    BedResponse, BedDetailResponse, BedListResponse,
    BedStatusUpdate, MaintenanceRequest, CleanedRequest, ReserveRequest,
    # Summary schemas
    FloorSummary, RoomSummary,
    # Log and statistics schemas
    StatusLogResponse, OccupancyStats, AttentionItem, TurnoverStats, InconsistencyItem,
    RoomOccupancy, OccupancyTrendPoint, RoomTypeOccupancy, DepartmentUtilization
)

router = APIRouter()


# ==================== Registry Endpoints ====================

@router.get("", response_model=BedListResponse)
async def list_beds(
    status: Optional[BedStatus] = None,
    bed_type: Optional[BedType] = None,
    floor: Optional[int] = Query(None, ge=0),
    service: BedService = Depends(get_bed_service),
):
    """Get all beds ordered by floor, room and bed number"""
    beds = await service.get_all_beds(status=status, bed_type=bed_type, floor_number=floor)
    return {"beds": beds, "total": len(beds)}


@router.get("/available", response_model=List[BedDetailResponse])
async def list_available_beds(
    bed_type: Optional[BedType] = None,
    floor: Optional[int] = Query(None, ge=0),
    room_type: Optional[RoomType] = None,
    service: BedService = Depends(get_bed_service),
):
    """Get available beds in operational rooms"""
    return await service.get_available_beds(bed_type=bed_type, floor_number=floor, room_type=room_type)


@router.get("/floor-summary", response_model=List[FloorSummary])
async def floor_summary(service: BedService = Depends(get_bed_service)):
    return await service.get_floor_summary()


@router.get("/floors/{floor_number}/rooms", response_model=List[RoomSummary])
async def rooms_summary(floor_number: int, service: BedService = Depends(get_bed_service)):
    return await service.get_rooms_summary(floor_number)


@router.get("/rooms/{room_id}/beds", response_model=List[BedDetailResponse])
async def room_beds(room_id: int, service: BedService = Depends(get_bed_service)):
    return await service.get_room_beds(room_id)


# ==================== Status Log Endpoints ====================

@router.get("/logs/recent", response_model=List[StatusLogResponse])
async def recent_status_changes(
    hours: Optional[int] = Query(None, ge=1, le=24 * 30),
    service: BedService = Depends(get_bed_service),
):
    """Status changes across all beds in the last ``hours`` hours"""
    return await service.get_recent_status_changes(hours)


@router.get("/logs/staff/{staff_id}", response_model=List[StatusLogResponse])
async def staff_activity(
    staff_id: int,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    stats: BedStatsService = Depends(get_stats_service),
):
    return await stats.get_staff_activity(staff_id, start, end)


# ==================== Statistics Endpoints ====================

@router.get("/stats/occupancy", response_model=OccupancyStats)
async def occupancy_stats(stats: BedStatsService = Depends(get_stats_service)):
    return await stats.get_bed_occupancy_stats()


@router.get("/stats/attention", response_model=List[AttentionItem])
async def beds_requiring_attention(stats: BedStatsService = Depends(get_stats_service)):
    """Beds in cleaning or maintenance"""
    return await stats.get_beds_requiring_attention()


@router.get("/stats/long-maintenance", response_model=List[AttentionItem])
async def long_maintenance_beds(
    hours: Optional[int] = Query(None, ge=1),
    stats: BedStatsService = Depends(get_stats_service),
):
    return await stats.get_long_maintenance_beds(hours)


@router.get("/stats/turnover", response_model=TurnoverStats)
async def bed_turnover(
    days: Optional[int] = Query(None, ge=1, le=365),
    stats: BedStatsService = Depends(get_stats_service),
):
    return await stats.get_turnover(days)


@router.get("/stats/inconsistencies", response_model=List[InconsistencyItem])
async def occupancy_inconsistencies(stats: BedStatsService = Depends(get_stats_service)):
    return await stats.get_occupancy_inconsistencies()


@router.get("/stats/rooms", response_model=List[RoomOccupancy])
async def room_occupancy(
    floor: Optional[int] = Query(None, ge=0),
    stats: BedStatsService = Depends(get_stats_service),
):
    """Bed counts per room, ordered by floor and room number"""
    return await stats.get_room_occupancy_details(floor)


@router.get("/stats/trends", response_model=List[OccupancyTrendPoint])
async def occupancy_trends(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    stats: BedStatsService = Depends(get_stats_service),
):
    """Daily occupied beds, the last seven days by default"""
    return await stats.get_bed_occupancy_trends(start_date, end_date)


@router.get("/stats/room-types", response_model=List[RoomTypeOccupancy])
async def occupancy_by_room_type(stats: BedStatsService = Depends(get_stats_service)):
    return await stats.get_bed_occupancy_by_room_type()


@router.get("/stats/departments", response_model=List[DepartmentUtilization])
async def department_utilization(stats: BedStatsService = Depends(get_stats_service)):
    return await stats.get_department_bed_utilization()


# ==================== Single Bed Endpoints ====================

@router.get("/{bed_id}", response_model=BedDetailResponse)
async def get_bed(bed_id: int, service: BedService = Depends(get_bed_service)):
    return await service.get_bed_details(bed_id)


@router.get("/{bed_id}/history", response_model=List[StatusLogResponse])
async def bed_status_history(
    bed_id: int,
    limit: Optional[int] = Query(None, ge=1, le=500),
    service: BedService = Depends(get_bed_service),
):
    """Status history for one bed, most recent first"""
    return await service.get_bed_status_history(bed_id, limit)


@router.patch("/{bed_id}/status", response_model=BedResponse)
async def update_bed_status(
    bed_id: int,
    status_data: BedStatusUpdate,
    staff_id: Optional[int] = Depends(get_staff_id),
    service: BedService = Depends(get_bed_service),
):
    """Change bed status; occupancy is only set through bed assignment"""
    return await service.apply_transition(
        bed_id, status_data.status, status_data.reason, staff_id, notes=status_data.notes
    )


@router.post("/{bed_id}/maintenance", response_model=BedResponse)
async def mark_for_maintenance(
    bed_id: int,
    request_data: MaintenanceRequest,
    staff_id: Optional[int] = Depends(get_staff_id),
    service: BedService = Depends(get_bed_service),
):
    return await service.mark_for_maintenance(bed_id, request_data.reason, staff_id)


@router.patch("/{bed_id}/cleaned", response_model=BedResponse)
async def mark_cleaned(
    bed_id: int,
    request_data: Optional[CleanedRequest] = None,
    staff_id: Optional[int] = Depends(get_staff_id),
    service: BedService = Depends(get_bed_service),
):
    notes = request_data.notes if request_data else None
    return await service.mark_cleaned(bed_id, staff_id, notes=notes)


@router.post("/{bed_id}/reserve", response_model=BedResponse)
async def reserve_bed(
    bed_id: int,
    request_data: Optional[ReserveRequest] = None,
    staff_id: Optional[int] = Depends(get_staff_id),
    service: BedService = Depends(get_bed_service),
):
    reason = request_data.reason if request_data else None
    return await service.reserve(bed_id, staff_id, reason)


@router.delete("/{bed_id}/reserve", response_model=BedResponse)
async def cancel_reservation(
    bed_id: int,
    reason: Optional[str] = None,
    staff_id: Optional[int] = Depends(get_staff_id),
    service: BedService = Depends(get_bed_service),
):
    return await service.cancel_reservation(bed_id, staff_id, reason)
