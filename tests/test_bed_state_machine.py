import pytest
from itertools import product
from sqlalchemy import select

from ibms.core.exceptions import NotFoundError, ConflictError, InvalidTransitionError
from ibms.domain.beds.models import BedStatus, BedStatusLog, RoomType
from ibms.domain.beds.state_machine import ALLOWED_TRANSITIONS, can_transition, validate_transition
from ibms.infrastructure.notifications import BedEvent


ALL_PAIRS = list(product(BedStatus, BedStatus))
DIRECT_PAIRS = [
    (current, requested) for current, requested in ALL_PAIRS
    if can_transition(current, requested) and requested != BedStatus.OCCUPIED
]
REJECTED_PAIRS = [
    (current, requested) for current, requested in ALL_PAIRS
    if (current, requested) not in DIRECT_PAIRS
]


async def _log_entries(session_factory, bed_id):
    async with session_factory() as db:
        result = await db.execute(
            select(BedStatusLog).where(BedStatusLog.bed_id == bed_id).order_by(BedStatusLog.log_id)
        )
        return list(result.scalars().all())


@pytest.mark.beds
@pytest.mark.unit
class TestTransitionTable:
    """Test the bed status transition table."""

    def test_table_covers_every_status(self) -> None:
        assert set(ALLOWED_TRANSITIONS) == set(BedStatus)

    def test_known_transitions(self) -> None:
        assert can_transition(BedStatus.AVAILABLE, BedStatus.RESERVED)
        assert can_transition(BedStatus.OCCUPIED, BedStatus.CLEANING)
        assert can_transition(BedStatus.MAINTENANCE, BedStatus.CLEANING)
        assert not can_transition(BedStatus.CLEANING, BedStatus.RESERVED)
        assert not can_transition(BedStatus.RESERVED, BedStatus.MAINTENANCE)
        assert not can_transition(BedStatus.AVAILABLE, BedStatus.AVAILABLE)

    @pytest.mark.parametrize("current", list(BedStatus))
    def test_direct_occupancy_always_rejected(self, current: BedStatus) -> None:
        with pytest.raises(InvalidTransitionError) as exc_info:
            validate_transition(current, BedStatus.OCCUPIED)
        assert "Use bed assignment instead" in exc_info.value.message

    def test_rejection_names_both_statuses(self) -> None:
        with pytest.raises(InvalidTransitionError) as exc_info:
            validate_transition(BedStatus.CLEANING, BedStatus.RESERVED)
        assert exc_info.value.message == "Cannot change bed status from cleaning to reserved."
        assert exc_info.value.details == {"current_status": "cleaning", "requested_status": "reserved"}
        assert exc_info.value.status_code == 409
        assert exc_info.value.error_code == "INVALID_TRANSITION"

    def test_invalid_transition_is_a_conflict(self) -> None:
        assert issubclass(InvalidTransitionError, ConflictError)


@pytest.mark.beds
@pytest.mark.integration
class TestApplyTransition:
    """Test generic bed status changes."""

    @pytest.mark.parametrize("current,requested", DIRECT_PAIRS)
    async def test_allowed_transition_applies_and_logs(
        self, bed_service, session_factory, ward, set_bed_status, get_bed, current, requested
    ) -> None:
        bed_id = ward.beds["101-A"]
        await set_bed_status(bed_id, current)

        bed = await bed_service.apply_transition(bed_id, requested, "routine change", 42)

        assert bed.status == requested
        assert bed.room.room_number == "101"
        assert (await get_bed(bed_id)).status == requested

        entries = await _log_entries(session_factory, bed_id)
        assert len(entries) == 1
        assert entries[0].old_status == current
        assert entries[0].new_status == requested
        assert entries[0].changed_by == 42
        assert entries[0].change_reason == "routine change"

    @pytest.mark.parametrize("current,requested", REJECTED_PAIRS)
    async def test_rejected_transition_changes_nothing(
        self, bed_service, session_factory, ward, set_bed_status, get_bed, current, requested
    ) -> None:
        bed_id = ward.beds["101-A"]
        await set_bed_status(bed_id, current)

        with pytest.raises(InvalidTransitionError):
            await bed_service.apply_transition(bed_id, requested, "not allowed", 42)

        assert (await get_bed(bed_id)).status == current
        assert await _log_entries(session_factory, bed_id) == []

    async def test_unknown_bed(self, bed_service, ward) -> None:
        with pytest.raises(NotFoundError) as exc_info:
            await bed_service.apply_transition(99999, BedStatus.MAINTENANCE, None, 1)
        assert exc_info.value.message == "Bed not found."

    async def test_maintenance_records_report_time(self, bed_service, ward, clock) -> None:
        bed = await bed_service.apply_transition(ward.beds["101-A"], BedStatus.MAINTENANCE, "Broken rail", 3)
        assert bed.maintenance_reported_at == clock()

    async def test_notification_sent_after_commit(self, bed_service, notifier, ward) -> None:
        await bed_service.apply_transition(ward.beds["102-A"], BedStatus.MAINTENANCE, "Monitor fault", 9)
        await notifier.flush()

        assert notifier.events() == [BedEvent.BED_STATUS_CHANGED.value]
        payload = notifier.payloads(BedEvent.BED_STATUS_CHANGED.value)[0]
        assert payload["bed_id"] == ward.beds["102-A"]
        assert payload["old_status"] == "available"
        assert payload["new_status"] == "maintenance"
        assert payload["room"]["room_number"] == "102"
        assert payload["room"]["floor_number"] == 1

    async def test_rejected_transition_sends_nothing(self, bed_service, notifier, ward) -> None:
        with pytest.raises(InvalidTransitionError):
            await bed_service.apply_transition(ward.beds["101-A"], BedStatus.CLEANING, None, 1)
        await notifier.flush()
        assert notifier.sent == []


@pytest.mark.beds
@pytest.mark.integration
class TestBedOperations:
    """Test maintenance, cleaning and reservation operations."""

    async def test_mark_for_maintenance(self, bed_service, session_factory, ward) -> None:
        bed = await bed_service.mark_for_maintenance(ward.beds["101-B"], "Mattress torn", 5)

        assert bed.status == BedStatus.MAINTENANCE
        entries = await _log_entries(session_factory, bed.bed_id)
        assert entries[-1].old_status == BedStatus.AVAILABLE
        assert entries[-1].change_reason == "Mattress torn"

    async def test_mark_occupied_bed_for_maintenance(
        self, bed_service, ward, set_bed_status, get_bed
    ) -> None:
        bed_id = ward.beds["101-B"]
        await set_bed_status(bed_id, BedStatus.OCCUPIED)

        with pytest.raises(ConflictError) as exc_info:
            await bed_service.mark_for_maintenance(bed_id, "Leak", 5)

        assert exc_info.value.message == (
            "Cannot mark occupied bed for maintenance. Please transfer patient first."
        )
        assert (await get_bed(bed_id)).status == BedStatus.OCCUPIED

    async def test_mark_reserved_bed_for_maintenance(self, bed_service, ward, set_bed_status) -> None:
        bed_id = ward.beds["101-B"]
        await set_bed_status(bed_id, BedStatus.RESERVED)

        with pytest.raises(InvalidTransitionError) as exc_info:
            await bed_service.mark_for_maintenance(bed_id, "Leak", 5)
        assert exc_info.value.message == "Cannot change bed status from reserved to maintenance."

    async def test_mark_cleaned(self, bed_service, session_factory, ward, set_bed_status, clock) -> None:
        bed_id = ward.beds["201-A"]
        await set_bed_status(bed_id, BedStatus.CLEANING)

        bed = await bed_service.mark_cleaned(bed_id, 8, notes="Terminal clean")

        assert bed.status == BedStatus.AVAILABLE
        assert bed.last_cleaned_at == clock()
        entry = (await _log_entries(session_factory, bed_id))[-1]
        assert entry.old_status == BedStatus.CLEANING
        assert entry.new_status == BedStatus.AVAILABLE
        assert entry.change_reason == "Bed cleaned and ready for use"
        assert entry.additional_notes == "Terminal clean"

    async def test_mark_cleaned_requires_cleaning_status(self, bed_service, ward) -> None:
        with pytest.raises(InvalidTransitionError) as exc_info:
            await bed_service.mark_cleaned(ward.beds["201-A"], 8)

        assert "Only beds in cleaning status" in exc_info.value.message
        assert exc_info.value.message.startswith("Bed is currently available.")

    async def test_reserve_and_cancel(self, bed_service, session_factory, ward) -> None:
        bed_id = ward.beds["101-A"]

        reserved = await bed_service.reserve(bed_id, 1, "VIP")
        assert reserved.status == BedStatus.RESERVED

        cancelled = await bed_service.cancel_reservation(bed_id, 1)
        assert cancelled.status == BedStatus.AVAILABLE

        entries = await _log_entries(session_factory, bed_id)
        assert [(e.old_status, e.new_status) for e in entries] == [
            (BedStatus.AVAILABLE, BedStatus.RESERVED),
            (BedStatus.RESERVED, BedStatus.AVAILABLE),
        ]
        assert entries[0].change_reason == "VIP"

    async def test_reserve_requires_available(self, bed_service, ward, set_bed_status) -> None:
        bed_id = ward.beds["101-A"]
        await set_bed_status(bed_id, BedStatus.CLEANING)

        with pytest.raises(ConflictError) as exc_info:
            await bed_service.reserve(bed_id, 1, "VIP")
        assert exc_info.value.message == (
            "Bed is currently cleaning. Only available beds can be reserved."
        )

    async def test_cancel_requires_reserved(self, bed_service, ward) -> None:
        with pytest.raises(InvalidTransitionError) as exc_info:
            await bed_service.cancel_reservation(ward.beds["101-A"], 1)
        assert exc_info.value.message == "Bed is not reserved."

    async def test_operations_on_unknown_bed(self, bed_service, ward) -> None:
        with pytest.raises(NotFoundError):
            await bed_service.mark_cleaned(99999, 1)
        with pytest.raises(NotFoundError):
            await bed_service.reserve(99999, 1)


@pytest.mark.beds
@pytest.mark.integration
class TestBedRegistry:
    """Test bed registry reads."""

    async def test_get_bed_details(self, bed_service, ward) -> None:
        bed = await bed_service.get_bed_details(ward.beds["102-A"])

        assert bed.bed_number == "102-A"
        assert bed.room.floor_number == 1
        assert bed.features == {"oxygen": True}
        assert bed.current_assignment is None

    async def test_get_bed_details_not_found(self, bed_service, ward) -> None:
        with pytest.raises(NotFoundError):
            await bed_service.get_bed_details(99999)

    async def test_get_all_beds_ordering_and_filters(self, bed_service, ward, set_bed_status) -> None:
        beds = await bed_service.get_all_beds()
        assert [b.bed_number for b in beds] == ["101-A", "101-B", "102-A", "201-A", "301-A"]

        await set_bed_status(ward.beds["101-B"], BedStatus.CLEANING)
        cleaning = await bed_service.get_all_beds(status=BedStatus.CLEANING)
        assert [b.bed_number for b in cleaning] == ["101-B"]

        floor_two = await bed_service.get_all_beds(floor_number=2)
        assert [b.bed_number for b in floor_two] == ["201-A"]

    async def test_available_beds_skip_non_operational_rooms(self, bed_service, ward) -> None:
        beds = await bed_service.get_available_beds()
        assert "301-A" not in [b.bed_number for b in beds]

        icu = await bed_service.get_available_beds(room_type=RoomType.ICU)
        assert [b.bed_number for b in icu] == ["102-A"]

    async def test_floor_summary(self, bed_service, ward, set_bed_status) -> None:
        await set_bed_status(ward.beds["101-A"], BedStatus.OCCUPIED)

        summary = await bed_service.get_floor_summary()

        assert summary == [
            {"floor_number": 1, "total_beds": 3, "available_beds": 2, "occupied_beds": 1},
            {"floor_number": 2, "total_beds": 1, "available_beds": 1, "occupied_beds": 0},
        ]

    async def test_rooms_summary(self, bed_service, ward) -> None:
        rooms = await bed_service.get_rooms_summary(1)

        assert [r["room_number"] for r in rooms] == ["101", "102"]
        assert rooms[0]["total_beds"] == 2
        assert rooms[0]["available_beds"] == 2
        assert rooms[0]["max_capacity"] == 2

    async def test_rooms_summary_unknown_floor(self, bed_service, ward) -> None:
        with pytest.raises(NotFoundError) as exc_info:
            await bed_service.get_rooms_summary(9)
        assert exc_info.value.message == "Floor not found."

    async def test_room_beds(self, bed_service, ward) -> None:
        beds = await bed_service.get_room_beds(ward.rooms["101"])
        assert [b.bed_number for b in beds] == ["101-A", "101-B"]

        with pytest.raises(NotFoundError) as exc_info:
            await bed_service.get_room_beds(99999)
        assert exc_info.value.message == "Room not found."
