import asyncio
import os
from datetime import datetime
from typing import Dict, List, Optional, Tuple

# Antes de importar settings: sin Redis para rate limiting en tests
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("APP_ENV", "test")

import pytest

from services.check_in.models.check_in import AttendanceRecord, Event, Ticket, TicketStatus
from services.check_in.services.state_machine import CheckInStateMachine
from services.check_in.services.stores import (
    AttendanceStore,
    DuplicateAttendanceError,
    EventStore,
    NFTMintTrigger,
    ProfileStore,
    StoreUnavailableError,
    TicketStore,
)


async def _yield():
    # Punto de suspensión como el de una llamada real a la DB
    await asyncio.sleep(0)


class InMemoryTicketStore(TicketStore):

    def __init__(self):
        self.tickets: Dict[str, Ticket] = {}
        self.fail_updates = False

    def add(self, ticket_id, event_id, owner_id, status=TicketStatus.ACTIVE) -> Ticket:
        ticket = Ticket(id=ticket_id, event_id=event_id, owner_id=owner_id, status=status)
        self.tickets[ticket_id] = ticket
        return ticket

    async def get_by_id(self, ticket_id: str) -> Optional[Ticket]:
        await _yield()
        return self.tickets.get(ticket_id)

    async def update_status(self, ticket_id: str, status: TicketStatus, checked_in_at: datetime) -> None:
        await _yield()
        if self.fail_updates:
            raise StoreUnavailableError("tickets table unavailable")
        self.tickets[ticket_id] = self.tickets[ticket_id].model_copy(
            update={"status": status, "checked_in_at": checked_in_at}
        )


class InMemoryAttendanceStore(AttendanceStore):
    """Aplica el constraint único (ticket_id, event_id) como lo haría Postgres"""

    def __init__(self):
        self.records: List[AttendanceRecord] = []
        self.skip_precheck = False
        self.unavailable = False

    def _keys(self) -> List[Tuple[str, str]]:
        return [(r.ticket_id, r.event_id) for r in self.records]

    async def find_by_ticket_and_event(self, ticket_id: str, event_id: str) -> Optional[AttendanceRecord]:
        await _yield()
        if self.unavailable:
            raise StoreUnavailableError("attendance table unavailable")
        if self.skip_precheck:
            return None
        for record in self.records:
            if record.ticket_id == ticket_id and record.event_id == event_id:
                return record
        return None

    async def insert(self, record: AttendanceRecord) -> AttendanceRecord:
        await _yield()
        if (record.ticket_id, record.event_id) in self._keys():
            raise DuplicateAttendanceError("attendance_ticket_event_key")
        created = record.model_copy(update={"id": f"att-{len(self.records) + 1}"})
        self.records.append(created)
        return created

    async def list_by_event(self, event_id: str) -> List[AttendanceRecord]:
        await _yield()
        return [r for r in reversed(self.records) if r.event_id == event_id]


class InMemoryProfileStore(ProfileStore):

    def __init__(self):
        self.names: Dict[str, str] = {}

    async def get_display_name(self, attendee_id: str) -> Optional[str]:
        await _yield()
        return self.names.get(attendee_id)


class InMemoryEventStore(EventStore):

    def __init__(self):
        self.events: Dict[str, Event] = {}

    def add(self, event_id, title="Evento", nft_enabled=False) -> Event:
        event = Event(id=event_id, title=title, nft_enabled=nft_enabled)
        self.events[event_id] = event
        return event

    async def get_by_id(self, event_id: str) -> Optional[Event]:
        await _yield()
        return self.events.get(event_id)


class RecordingNFTTrigger(NFTMintTrigger):

    def __init__(self, fail: bool = False):
        self.calls: List[Tuple[str, str]] = []
        self.fail = fail

    def request_mint(self, attendance_id: str, chain: str) -> None:
        self.calls.append((attendance_id, chain))
        if self.fail:
            raise RuntimeError("broker down")


@pytest.fixture
def ticket_store():
    store = InMemoryTicketStore()
    store.add("T1", "E1", "A1")
    return store


@pytest.fixture
def attendance_store():
    return InMemoryAttendanceStore()


@pytest.fixture
def profile_store():
    store = InMemoryProfileStore()
    store.names["A1"] = "Ada Lovelace"
    return store


@pytest.fixture
def event_store():
    store = InMemoryEventStore()
    store.add("E1", title="Conferencia")
    store.add("E2", title="Otro evento")
    return store


@pytest.fixture
def nft_trigger():
    return RecordingNFTTrigger()


@pytest.fixture
def machine(ticket_store, attendance_store, profile_store, event_store, nft_trigger):
    return CheckInStateMachine(
        tickets=ticket_store,
        attendance=attendance_store,
        profiles=profile_store,
        events=event_store,
        nft_trigger=nft_trigger,
    )


# ==================== SQLite (stores SQL y rutas) ====================

@pytest.fixture
async def session_maker(tmp_path):
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
    from shared.database.connection import Base
    import shared.database.models  # noqa: F401  registra las tablas

    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'checkin.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
async def seeded(session_maker):
    """Un evento con un ticket activo de un asistente y un operador de scanner"""
    import uuid
    from shared.database import models

    ids = {
        "attendee": str(uuid.uuid4()),
        "operator": str(uuid.uuid4()),
        "event": str(uuid.uuid4()),
        "other_event": str(uuid.uuid4()),
        "ticket": str(uuid.uuid4()),
    }
    async with session_maker() as session:
        session.add_all([
            models.Profile(id=ids["attendee"], display_name="Ada Lovelace"),
            models.Profile(id=ids["operator"], display_name="Staff"),
            models.Event(id=ids["event"], title="Conferencia"),
            models.Event(id=ids["other_event"], title="Otro evento"),
        ])
        await session.flush()
        session.add(models.Ticket(
            id=ids["ticket"], event_id=ids["event"], owner_id=ids["attendee"], status="active",
        ))
        await session.commit()
    return ids
