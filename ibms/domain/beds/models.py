"""
Bed Registry Domain Models

Physical bed inventory grouped into rooms and floors, and the append-only
status log that records every bed status transition.
"""

from sqlalchemy import (
    Column, String, Boolean, DateTime, ForeignKey, Integer, Text, JSON,
    Enum, Index, UniqueConstraint
)
from sqlalchemy.orm import relationship
from ibms.infrastructure.database import Base
from ibms.utils.datetime_utils import utc_now
import enum


def enum_values(enum_cls):
    """Persist enum values ("available") rather than member names"""
    return [member.value for member in enum_cls]


class BedStatus(str, enum.Enum):
    """Bed status enumeration"""
    AVAILABLE = "available"
    OCCUPIED = "occupied"
    CLEANING = "cleaning"
    MAINTENANCE = "maintenance"
    RESERVED = "reserved"


class BedType(str, enum.Enum):
    """Bed type enumeration"""
    ICU = "icu"
    PRIVATE = "private"
    SEMI_PRIVATE = "semi_private"
    WARD = "ward"
    ISOLATION = "isolation"


class RoomType(str, enum.Enum):
    """Room type enumeration"""
    ICU = "icu"
    PRIVATE = "private"
    SEMI_PRIVATE = "semi_private"
    WARD = "ward"
    ISOLATION = "isolation"


BED_STATUS_ENUM = Enum(BedStatus, name="bed_status", values_callable=enum_values)


class Room(Base):
    """Room on a floor; floor is denormalized as floor_number"""
    __tablename__ = "rooms"

    room_id = Column(Integer, primary_key=True, autoincrement=True)
    room_number = Column(String(20), unique=True, nullable=False)
    room_type = Column(Enum(RoomType, name="room_type", values_callable=enum_values), nullable=False)
    floor_number = Column(Integer, nullable=False, index=True)
    department_id = Column(Integer, nullable=True)
    max_capacity = Column(Integer, nullable=False, default=1)
    is_operational = Column(Boolean, nullable=False, default=True)

    # Relationships
    beds = relationship("Bed", back_populates="room", order_by="Bed.bed_number", lazy="raise")


class Bed(Base):
    """Bed model; status is only changed through the bed services"""
    __tablename__ = "beds"

    bed_id = Column(Integer, primary_key=True, autoincrement=True)
    room_id = Column(Integer, ForeignKey("rooms.room_id"), nullable=False)
    bed_number = Column(String(20), nullable=False)
    bed_type = Column(Enum(BedType, name="bed_type", values_callable=enum_values), nullable=False)
    status = Column(BED_STATUS_ENUM, nullable=False, default=BedStatus.AVAILABLE)
    features = Column(JSON)
    last_cleaned_at = Column(DateTime)
    maintenance_reported_at = Column(DateTime)

    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)

    # Relationships
    room = relationship("Room", back_populates="beds", lazy="joined", innerjoin=True)
    current_assignment = relationship(
        "BedAssignment",
        primaryjoin="and_(Bed.bed_id == BedAssignment.bed_id, BedAssignment.is_current.is_(True))",
        uselist=False,
        viewonly=True,
        lazy="raise",
    )

    __table_args__ = (
        UniqueConstraint("room_id", "bed_number", name="uq_beds_room_bed_number"),
        Index("idx_bed_status", "status"),
    )


class BedStatusLog(Base):
    """Immutable record of one bed status transition"""
    __tablename__ = "bed_status_logs"

    log_id = Column(Integer, primary_key=True, autoincrement=True)
    bed_id = Column(Integer, ForeignKey("beds.bed_id"), nullable=False, index=True)

    # Previous status is null only for a bed's first entry
    old_status = Column(BED_STATUS_ENUM, nullable=True)
    new_status = Column(BED_STATUS_ENUM, nullable=False, index=True)

    changed_by = Column(Integer, nullable=True, index=True)  # Staff ID
    change_reason = Column(Text)
    admission_id = Column(Integer, ForeignKey("admissions.admission_id"), nullable=True, index=True)
    assignment_id = Column(Integer, ForeignKey("bed_assignments.assignment_id"), nullable=True)
    changed_at = Column(DateTime, nullable=False, default=utc_now, index=True)
    additional_notes = Column(Text)

    # Relationships
    bed = relationship("Bed", lazy="joined", innerjoin=True)

    __table_args__ = (
        Index("idx_bed_status_timeline", "bed_id", "changed_at"),
        Index("idx_staff_actions", "changed_by", "changed_at"),
    )
