import pytest
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import AsyncGenerator, Dict
from httpx import AsyncClient, ASGITransport
from sqlalchemy import update

from ibms.main import create_app
from ibms.infrastructure.database import build_engine, build_session_factory, init_db
from ibms.infrastructure.notifications import Notifier
from ibms.domain.beds.models import Room, RoomType, Bed, BedType, BedStatus
from ibms.domain.admissions.models import (
    Admission, AdmissionStatus, AdmissionType, AdmissionSource
)
from ibms.domain.beds.service import BedService
from ibms.domain.admissions.service import BedAssignmentService
from ibms.domain.reporting.service import BedStatsService


# Monday morning, so day arithmetic in tests is easy to read
TEST_START = datetime(2026, 3, 2, 8, 0, 0)


class FakeClock:
    """Injectable clock the tests can move forward"""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class RecordingNotifier(Notifier):
    """Keeps delivered messages in memory; can be told to fail"""

    def __init__(self, fail: bool = False):
        super().__init__()
        self.fail = fail
        self.sent = []

    async def _send(self, room: str, event: str, message: dict) -> None:
        if self.fail:
            raise ConnectionError("subscriber hub unavailable")
        self.sent.append((room, event, message))

    def events(self):
        return [event for _, event, _ in self.sent]

    def payloads(self, event: str):
        return [message["data"] for _, sent_event, message in self.sent if sent_event == event]


@dataclass
class Ward:
    """Ids of the seeded rooms and beds, keyed by room or "room-bed" number"""
    rooms: Dict[str, int] = field(default_factory=dict)
    beds: Dict[str, int] = field(default_factory=dict)


@pytest.fixture(scope="function")
async def engine(tmp_path):
    """Fresh SQLite database file for each test."""
    test_engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'ibms_test.db'}")
    await init_db(bind=test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture(scope="function")
def clock() -> FakeClock:
    return FakeClock(TEST_START)


@pytest.fixture(scope="function")
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture(scope="function")
def bed_service(session_factory, notifier, clock) -> BedService:
    return BedService(session_factory, notifier, clock=clock)


@pytest.fixture(scope="function")
def assignment_service(session_factory, notifier, clock, bed_service) -> BedAssignmentService:
    return BedAssignmentService(session_factory, notifier, bed_service=bed_service, clock=clock)


@pytest.fixture(scope="function")
def stats_service(session_factory, clock) -> BedStatsService:
    return BedStatsService(session_factory, clock=clock)


@pytest.fixture(scope="function")
async def ward(session_factory) -> Ward:
    """Seed three floors.

    Floor 1: room 101 (ward beds A, B) and room 102 (ICU bed A).
    Floor 2: room 201 (private bed A).
    Floor 3: room 301, not operational (ward bed A).
    """
    layout = [
        ("101", RoomType.WARD, 1, True, [("A", BedType.WARD), ("B", BedType.WARD)]),
        ("102", RoomType.ICU, 1, True, [("A", BedType.ICU)]),
        ("201", RoomType.PRIVATE, 2, True, [("A", BedType.PRIVATE)]),
        ("301", RoomType.WARD, 3, False, [("A", BedType.WARD)]),
    ]
    seeded = Ward()
    async with session_factory() as db:
        beds = {}
        for room_number, room_type, floor, operational, room_beds in layout:
            room = Room(
                room_number=room_number,
                room_type=room_type,
                floor_number=floor,
                department_id=10,
                max_capacity=len(room_beds),
                is_operational=operational,
            )
            db.add(room)
            await db.flush()
            seeded.rooms[room_number] = room.room_id
            for bed_number, bed_type in room_beds:
                bed = Bed(
                    room_id=room.room_id,
                    bed_number=f"{room_number}-{bed_number}",
                    bed_type=bed_type,
                    status=BedStatus.AVAILABLE,
                    features={"oxygen": bed_type == BedType.ICU},
                )
                db.add(bed)
                beds[bed.bed_number] = bed
        await db.flush()
        seeded.beds = {number: bed.bed_id for number, bed in beds.items()}
        await db.commit()
    return seeded


@pytest.fixture(scope="function")
def make_admission(session_factory, clock):
    """Insert an active admission dated at the current test time."""
    async def _make(patient_id: int = 1001) -> int:
        async with session_factory() as db:
            admission = Admission(
                patient_id=patient_id,
                admission_date=clock(),
                admission_type=AdmissionType.EMERGENCY,
                admission_source=AdmissionSource.ER,
                attending_doctor_id=501,
                diagnosis_at_admission="Community acquired pneumonia",
                admission_status=AdmissionStatus.ACTIVE,
            )
            db.add(admission)
            await db.commit()
            return admission.admission_id
    return _make


@pytest.fixture(scope="function")
def set_bed_status(session_factory):
    """Force a bed into a status, bypassing the state machine."""
    async def _set(bed_id: int, status: BedStatus) -> None:
        async with session_factory() as db:
            await db.execute(update(Bed).where(Bed.bed_id == bed_id).values(status=status))
            await db.commit()
    return _set


@pytest.fixture(scope="function")
def get_bed(session_factory):
    """Read a bed's stored state in a fresh session."""
    async def _get(bed_id: int) -> Bed:
        async with session_factory() as db:
            return await db.get(Bed, bed_id)
    return _get


@pytest.fixture(scope="function")
async def client(session_factory, notifier) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client over the app wired to the test database and notifier."""
    app = create_app(session_factory=session_factory, notifier=notifier)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        ac.headers.update({"X-Staff-ID": "7"})
        yield ac
