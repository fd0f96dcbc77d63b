"""
Admissions Domain Models

An admission is one continuous hospital stay; bed assignments bind it to
exactly one occupied bed at a time and keep the transfer history.
"""

from sqlalchemy import (
    Column, String, Boolean, Date, DateTime, ForeignKey, Integer, Text,
    Enum, Index, text
)
from sqlalchemy.orm import relationship
from ibms.infrastructure.database import Base
from ibms.domain.beds.models import enum_values
from ibms.utils.datetime_utils import utc_now
import enum


class AdmissionStatus(str, enum.Enum):
    """Admission status enumeration"""
    ACTIVE = "active"
    DISCHARGED = "discharged"
    TRANSFERRED = "transferred"
    DECEASED = "deceased"


class AdmissionType(str, enum.Enum):
    ELECTIVE = "elective"
    EMERGENCY = "emergency"
    TRANSFER = "transfer"
    DELIVERY = "delivery"


class AdmissionSource(str, enum.Enum):
    ER = "er"
    OUTPATIENT = "outpatient"
    REFERRAL = "referral"
    DIRECT = "direct"


class DischargeType(str, enum.Enum):
    """How a stay ended"""
    ROUTINE = "routine"
    AGAINST_ADVICE = "against_advice"
    TRANSFERRED = "transferred"
    DECEASED = "deceased"


CLOSED_ADMISSION_STATUSES = (AdmissionStatus.DISCHARGED, AdmissionStatus.DECEASED)


class Admission(Base):
    """In-patient admission"""
    __tablename__ = "admissions"

    admission_id = Column(Integer, primary_key=True, autoincrement=True)
    admission_number = Column(String(30), unique=True, nullable=True)
    patient_id = Column(Integer, nullable=False, index=True)

    admission_date = Column(DateTime, nullable=False, default=utc_now)
    admission_type = Column(
        Enum(AdmissionType, name="admission_type", values_callable=enum_values), nullable=False
    )
    admission_source = Column(
        Enum(AdmissionSource, name="admission_source", values_callable=enum_values), nullable=False
    )
    attending_doctor_id = Column(Integer, nullable=False)
    diagnosis_at_admission = Column(Text, nullable=False)
    expected_discharge_date = Column(Date)

    admission_status = Column(
        Enum(AdmissionStatus, name="admission_status", values_callable=enum_values),
        nullable=False,
        default=AdmissionStatus.ACTIVE,
        index=True,
    )
    discharge_date = Column(DateTime)
    discharge_type = Column(Enum(DischargeType, name="discharge_type", values_callable=enum_values))
    discharge_summary = Column(Text)
    length_of_stay_days = Column(Integer)


class BedAssignment(Base):
    """Binding between an admission and a bed"""
    __tablename__ = "bed_assignments"

    assignment_id = Column(Integer, primary_key=True, autoincrement=True)
    admission_id = Column(Integer, ForeignKey("admissions.admission_id"), nullable=False)
    bed_id = Column(Integer, ForeignKey("beds.bed_id"), nullable=False)
    assigned_at = Column(DateTime, nullable=False, default=utc_now)
    assigned_by = Column(Integer, nullable=True)  # Staff ID
    released_at = Column(DateTime)
    transfer_reason = Column(Text)
    is_current = Column(Boolean, nullable=False, default=True)

    # Relationships
    bed = relationship("Bed", lazy="joined", innerjoin=True)

    __table_args__ = (
        Index("idx_admission_current", "admission_id", "is_current"),
        # At most one current row per bed and per admission
        Index(
            "uq_bed_assignments_current_bed", "bed_id", unique=True,
            postgresql_where=text("is_current"), sqlite_where=text("is_current = 1"),
        ),
        Index(
            "uq_bed_assignments_current_admission", "admission_id", unique=True,
            postgresql_where=text("is_current"), sqlite_where=text("is_current = 1"),
        ),
    )
