import pytest
from datetime import datetime, timedelta, timezone

from ibms.core.exceptions import NotFoundError, InvalidTransitionError
from ibms.domain.beds.models import BedStatus


@pytest.mark.beds
@pytest.mark.integration
class TestBedStatusHistory:
    """Test the per-bed status timeline."""

    async def test_history_is_newest_first(self, bed_service, ward, clock) -> None:
        bed_id = ward.beds["101-A"]
        await bed_service.reserve(bed_id, 1, "Elective surgery tomorrow")
        clock.advance(hours=1)
        await bed_service.cancel_reservation(bed_id, 1, "Surgery postponed")
        clock.advance(hours=1)
        await bed_service.mark_for_maintenance(bed_id, "Call button broken", 2)

        history = await bed_service.get_bed_status_history(bed_id)

        assert [e.new_status for e in history] == [
            BedStatus.MAINTENANCE, BedStatus.AVAILABLE, BedStatus.RESERVED
        ]
        assert [e.change_reason for e in history] == [
            "Call button broken", "Surgery postponed", "Elective surgery tomorrow"
        ]
        assert history[0].changed_by == 2
        assert history[0].changed_at > history[1].changed_at > history[2].changed_at

    async def test_history_limit(self, bed_service, ward, clock) -> None:
        bed_id = ward.beds["101-A"]
        for _ in range(3):
            await bed_service.reserve(bed_id, 1)
            clock.advance(minutes=10)
            await bed_service.cancel_reservation(bed_id, 1)
            clock.advance(minutes=10)

        history = await bed_service.get_bed_status_history(bed_id, limit=2)

        assert len(history) == 2
        assert history[0].new_status == BedStatus.AVAILABLE
        assert history[1].new_status == BedStatus.RESERVED

    async def test_history_of_untouched_bed_is_empty(self, bed_service, ward) -> None:
        assert await bed_service.get_bed_status_history(ward.beds["201-A"]) == []

    async def test_history_unknown_bed(self, bed_service, ward) -> None:
        with pytest.raises(NotFoundError) as exc_info:
            await bed_service.get_bed_status_history(99999)
        assert exc_info.value.message == "Bed not found."

    async def test_entries_keep_notes(self, bed_service, ward, set_bed_status) -> None:
        bed_id = ward.beds["101-B"]
        await set_bed_status(bed_id, BedStatus.CLEANING)

        await bed_service.mark_cleaned(bed_id, 9, notes="Terminal clean after isolation")

        entry = (await bed_service.get_bed_status_history(bed_id))[0]
        assert entry.old_status == BedStatus.CLEANING
        assert entry.new_status == BedStatus.AVAILABLE
        assert entry.change_reason == "Bed cleaned and ready for use"
        assert entry.additional_notes == "Terminal clean after isolation"
        assert entry.admission_id is None

    async def test_rejected_change_is_not_logged(self, bed_service, ward) -> None:
        bed_id = ward.beds["101-A"]
        with pytest.raises(InvalidTransitionError):
            await bed_service.apply_transition(bed_id, BedStatus.CLEANING, "not allowed", 1)

        assert await bed_service.get_bed_status_history(bed_id) == []


@pytest.mark.beds
@pytest.mark.integration
class TestRecentChanges:
    """Test the recent changes window."""

    async def test_only_changes_inside_window(self, bed_service, ward, clock) -> None:
        await bed_service.reserve(ward.beds["101-A"], 1, "old")
        clock.advance(hours=30)
        await bed_service.reserve(ward.beds["101-B"], 1, "new")
        clock.advance(hours=1)
        await bed_service.mark_for_maintenance(ward.beds["201-A"], "newest", 1)

        recent = await bed_service.get_recent_status_changes(hours=24)

        assert [e.change_reason for e in recent] == ["newest", "new"]

    async def test_default_window(self, bed_service, ward, clock) -> None:
        await bed_service.reserve(ward.beds["101-A"], 1, "yesterday morning")
        clock.advance(hours=23)

        recent = await bed_service.get_recent_status_changes()

        assert [e.change_reason for e in recent] == ["yesterday morning"]


@pytest.mark.assignments
@pytest.mark.integration
class TestAdmissionBedHistory:
    """Test the status entries tied to one admission."""

    async def test_entries_oldest_first(
        self, assignment_service, ward, make_admission, clock
    ) -> None:
        admission_id = await make_admission()
        other_admission = await make_admission(2002)
        await assignment_service.assign(other_admission, ward.beds["101-B"], 1)

        first = await assignment_service.assign(admission_id, ward.beds["101-A"], 1)
        clock.advance(hours=4)
        result = await assignment_service.transfer(admission_id, ward.beds["201-A"], 1, "Private room")

        entries = await assignment_service.get_admission_bed_history(admission_id)

        assert [(e.bed_id, e.old_status, e.new_status) for e in entries] == [
            (ward.beds["101-A"], BedStatus.AVAILABLE, BedStatus.OCCUPIED),
            (ward.beds["101-A"], BedStatus.OCCUPIED, BedStatus.CLEANING),
            (ward.beds["201-A"], BedStatus.AVAILABLE, BedStatus.OCCUPIED),
        ]
        assert entries[0].assignment_id == first.assignment_id
        assert entries[1].assignment_id == first.assignment_id
        assert entries[2].assignment_id == result.assignment.assignment_id
        assert entries[1].change_reason == "Transfer to bed 201-A"

    async def test_no_entries(self, assignment_service, ward, make_admission) -> None:
        admission_id = await make_admission()
        assert await assignment_service.get_admission_bed_history(admission_id) == []


@pytest.mark.reporting
@pytest.mark.integration
class TestStaffActivity:
    """Test status changes made by one staff member."""

    async def test_staff_activity_with_range(
        self, bed_service, stats_service, ward, clock
    ) -> None:
        start = clock()
        await bed_service.reserve(ward.beds["101-A"], 5, "first")
        clock.advance(hours=2)
        await bed_service.reserve(ward.beds["101-B"], 6, "someone else")
        clock.advance(hours=2)
        await bed_service.mark_for_maintenance(ward.beds["201-A"], "second", 5)
        clock.advance(hours=2)
        await bed_service.cancel_reservation(ward.beds["101-A"], 5, "third")

        everything = await stats_service.get_staff_activity(5)
        assert [e.change_reason for e in everything] == ["third", "second", "first"]

        window = await stats_service.get_staff_activity(
            5, start=start + (clock() - start) / 2, end=clock()
        )
        assert [e.change_reason for e in window] == ["third", "second"]

    async def test_unknown_staff(self, stats_service, ward) -> None:
        assert await stats_service.get_staff_activity(404) == []

    async def test_offset_aware_window_is_read_as_utc(
        self, bed_service, stats_service, ward, clock
    ) -> None:
        await bed_service.reserve(ward.beds["101-A"], 5, "at eight utc")
        plus_five = timezone(timedelta(hours=5))

        inside = await stats_service.get_staff_activity(
            5,
            start=datetime(2026, 3, 2, 12, 0, tzinfo=plus_five),
            end=datetime(2026, 3, 2, 14, 0, tzinfo=plus_five),
        )
        before = await stats_service.get_staff_activity(
            5,
            start=datetime(2026, 3, 2, 8, 30, tzinfo=plus_five),
            end=datetime(2026, 3, 2, 9, 0, tzinfo=plus_five),
        )

        assert [e.change_reason for e in inside] == ["at eight utc"]
        assert before == []
