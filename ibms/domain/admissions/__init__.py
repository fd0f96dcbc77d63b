# Admissions and bed assignment domain module
from ibms.domain.admissions.models import (
    Admission,
    AdmissionStatus,
    AdmissionType,
    AdmissionSource,
    DischargeType,
    BedAssignment,
)

__all__ = [
    "Admission",
    "AdmissionStatus",
    "AdmissionType",
    "AdmissionSource",
    "DischargeType",
    "BedAssignment",
]
