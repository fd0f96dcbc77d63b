# Bed registry domain module
from ibms.domain.beds.models import (
    Room,
    RoomType,
    Bed,
    BedType,
    BedStatus,
    BedStatusLog,
)

__all__ = [
    "Room",
    "RoomType",
    "Bed",
    "BedType",
    "BedStatus",
    "BedStatusLog",
]
