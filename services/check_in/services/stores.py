"""Interfaces de los stores externos que consume el check-in"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from services.check_in.models.check_in import AttendanceRecord, Event, Ticket, TicketStatus


class StoreUnavailableError(Exception):
    """Fallo de infraestructura (DB caída, timeout...). El cliente debe reintentar."""


class DuplicateAttendanceError(Exception):
    """Violación de unicidad (ticket_id, event_id) al insertar asistencia"""


class InvalidAttendanceError(ValueError):
    """El registro referencia ids que el store no puede guardar (no es reintentable)"""


class TicketStore(ABC):

    @abstractmethod
    async def get_by_id(self, ticket_id: str) -> Optional[Ticket]:
        pass

    @abstractmethod
    async def update_status(self, ticket_id: str, status: TicketStatus, checked_in_at: datetime) -> None:
        pass


class AttendanceStore(ABC):

    @abstractmethod
    async def find_by_ticket_and_event(self, ticket_id: str, event_id: str) -> Optional[AttendanceRecord]:
        pass

    @abstractmethod
    async def insert(self, record: AttendanceRecord) -> AttendanceRecord:
        """
        Insertar registro de asistencia.

        Raises:
            DuplicateAttendanceError: ya existe asistencia para (ticket_id, event_id)
            InvalidAttendanceError: asistente u operador con id inválido
            StoreUnavailableError: fallo de infraestructura
        """
        pass

    @abstractmethod
    async def list_by_event(self, event_id: str) -> List[AttendanceRecord]:
        """Asistencia de un evento, más recientes primero"""
        pass


class ProfileStore(ABC):

    @abstractmethod
    async def get_display_name(self, attendee_id: str) -> Optional[str]:
        pass


class EventStore(ABC):

    @abstractmethod
    async def get_by_id(self, event_id: str) -> Optional[Event]:
        pass


class NFTMintTrigger(ABC):

    @abstractmethod
    def request_mint(self, attendance_id: str, chain: str) -> None:
        """Fire-and-forget. Las implementaciones no deben propagar errores."""
        pass
