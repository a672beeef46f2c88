"""Implementación de los stores de check-in sobre SQLAlchemy (Postgres / Supabase)"""
from datetime import datetime
from typing import List, Optional
from uuid import UUID
import logging

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from shared.database import models
from services.check_in.models.check_in import AttendanceRecord, Event, Ticket, TicketStatus, UNKNOWN_ATTENDEE
from services.check_in.services.stores import (
    AttendanceStore,
    DuplicateAttendanceError,
    EventStore,
    InvalidAttendanceError,
    ProfileStore,
    StoreUnavailableError,
    TicketStore,
)

logger = logging.getLogger(__name__)


def _is_uuid(value: str) -> bool:
    """Un id legacy arbitrario no debe llegar a la DB como uuid inválido"""
    try:
        UUID(str(value))
        return True
    except ValueError:
        return False


def _sqlstate(error: IntegrityError) -> Optional[str]:
    return getattr(error.orig, "pgcode", None) or getattr(error.orig, "sqlstate", None)


def _is_unique_violation(error: IntegrityError) -> bool:
    code = _sqlstate(error)
    if code:
        return code == "23505"
    return "unique" in str(error.orig).lower()


class SqlTicketStore(TicketStore):

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, ticket_id: str) -> Optional[Ticket]:
        if not _is_uuid(ticket_id):
            return None
        try:
            result = await self.db.execute(select(models.Ticket).where(models.Ticket.id == ticket_id))
            ticket = result.scalar_one_or_none()
        except (SQLAlchemyError, OSError) as e:
            raise StoreUnavailableError(f"Error leyendo ticket {ticket_id}: {e}") from e
        return Ticket.model_validate(ticket) if ticket else None

    async def update_status(self, ticket_id: str, status: TicketStatus, checked_in_at: datetime) -> None:
        try:
            await self.db.execute(
                update(models.Ticket)
                .where(models.Ticket.id == ticket_id)
                .values(status=status.value, checked_in_at=checked_in_at)
            )
            await self.db.commit()
        except (SQLAlchemyError, OSError) as e:
            await self.db.rollback()
            raise StoreUnavailableError(f"Error actualizando ticket {ticket_id}: {e}") from e

    async def save_qr_code(self, ticket_id: str, qr_code_data: dict, generated_at: datetime) -> None:
        try:
            await self.db.execute(
                update(models.Ticket)
                .where(models.Ticket.id == ticket_id)
                .values(qr_code_data=qr_code_data, qr_code_generated_at=generated_at)
            )
            await self.db.commit()
        except (SQLAlchemyError, OSError) as e:
            await self.db.rollback()
            raise StoreUnavailableError(f"Error guardando QR de ticket {ticket_id}: {e}") from e


class SqlAttendanceStore(AttendanceStore):

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_by_ticket_and_event(self, ticket_id: str, event_id: str) -> Optional[AttendanceRecord]:
        if not (_is_uuid(ticket_id) and _is_uuid(event_id)):
            return None
        stmt = select(models.Attendance).where(
            models.Attendance.ticket_id == ticket_id,
            models.Attendance.event_id == event_id,
        )
        try:
            result = await self.db.execute(stmt)
            row = result.scalar_one_or_none()
        except (SQLAlchemyError, OSError) as e:
            raise StoreUnavailableError(f"Error buscando asistencia: {e}") from e
        return AttendanceRecord.model_validate(row) if row else None

    async def insert(self, record: AttendanceRecord) -> AttendanceRecord:
        ids = [record.ticket_id, record.event_id, record.attendee_id]
        if record.checked_in_by is not None:
            ids.append(record.checked_in_by)
        if not all(_is_uuid(value) for value in ids):
            raise InvalidAttendanceError(
                f"Asistencia con id no uuid: asistente={record.attendee_id} operador={record.checked_in_by}"
            )

        data = record.model_dump(exclude={"id", "attendee_name"}, mode="python")
        if data.get("nft_status") is not None:
            data["nft_status"] = record.nft_status.value
        row = models.Attendance(**data)
        self.db.add(row)
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            if _sqlstate(e) == "23503":
                # FK: el asistente u operador no existe en profiles
                raise InvalidAttendanceError(f"Asistencia con referencia inexistente: {e.orig}") from e
            if not _is_unique_violation(e):
                raise StoreUnavailableError(f"Error de integridad insertando asistencia: {e.orig}") from e
            logger.info(f"Asistencia duplicada para ticket {record.ticket_id} evento {record.event_id}")
            raise DuplicateAttendanceError(str(e.orig)) from e
        except (SQLAlchemyError, OSError) as e:
            await self.db.rollback()
            raise StoreUnavailableError(f"Error insertando asistencia: {e}") from e

        await self.db.refresh(row)
        return AttendanceRecord.model_validate(row)

    async def list_by_event(self, event_id: str) -> List[AttendanceRecord]:
        if not _is_uuid(event_id):
            return []
        stmt = (
            select(models.Attendance, models.Profile.display_name)
            .outerjoin(models.Profile, models.Attendance.attendee_id == models.Profile.id)
            .where(models.Attendance.event_id == event_id)
            .order_by(models.Attendance.checked_in_at.desc())
        )
        try:
            result = await self.db.execute(stmt)
            rows = result.all()
        except (SQLAlchemyError, OSError) as e:
            raise StoreUnavailableError(f"Error listando asistencia del evento {event_id}: {e}") from e

        records = []
        for attendance, display_name in rows:
            record = AttendanceRecord.model_validate(attendance)
            qr_data = attendance.qr_code_data if isinstance(attendance.qr_code_data, dict) else {}
            qr_name = qr_data.get("attendeeName")
            records.append(record.model_copy(update={"attendee_name": display_name or qr_name or UNKNOWN_ATTENDEE}))
        return records


class SqlProfileStore(ProfileStore):

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_display_name(self, attendee_id: str) -> Optional[str]:
        if not _is_uuid(attendee_id):
            return None
        try:
            result = await self.db.execute(
                select(models.Profile.display_name).where(models.Profile.id == attendee_id)
            )
            return result.scalar_one_or_none()
        except (SQLAlchemyError, OSError) as e:
            raise StoreUnavailableError(f"Error leyendo perfil {attendee_id}: {e}") from e


class SqlEventStore(EventStore):

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, event_id: str) -> Optional[Event]:
        if not _is_uuid(event_id):
            return None
        try:
            result = await self.db.execute(select(models.Event).where(models.Event.id == event_id))
            event = result.scalar_one_or_none()
        except (SQLAlchemyError, OSError) as e:
            raise StoreUnavailableError(f"Error leyendo evento {event_id}: {e}") from e
        return Event.model_validate(event) if event else None
