from typing import Optional
from fastapi import Depends, Header, Request

from ibms.domain.admissions.service import BedAssignmentService
from ibms.domain.beds.service import BedService
from ibms.domain.reporting.service import BedStatsService
from ibms.infrastructure.database import SessionFactory
from ibms.infrastructure.notifications import Notifier


def get_session_factory(request: Request) -> SessionFactory:
    return request.app.state.session_factory


def get_notifier(request: Request) -> Notifier:
    return request.app.state.notifier


def get_bed_service(
    session_factory: SessionFactory = Depends(get_session_factory),
    notifier: Notifier = Depends(get_notifier),
) -> BedService:
    return BedService(session_factory, notifier)


def get_assignment_service(
    session_factory: SessionFactory = Depends(get_session_factory),
    notifier: Notifier = Depends(get_notifier),
) -> BedAssignmentService:
    return BedAssignmentService(session_factory, notifier)


def get_stats_service(
    session_factory: SessionFactory = Depends(get_session_factory),
) -> BedStatsService:
    return BedStatsService(session_factory)


async def get_staff_id(x_staff_id: Optional[int] = Header(None)) -> Optional[int]:
    """Acting staff member; authentication happens upstream of this service"""
    return x_staff_id
