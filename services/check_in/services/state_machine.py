"""Servicio de check-in de asistencia mediante QR"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional
import logging

from services.check_in.models.check_in import (
    AttendanceRecord,
    CheckInResult,
    Event,
    NFTStatus,
    RejectionReason,
    Ticket,
    TicketStatus,
    UNKNOWN_ATTENDEE,
)
from services.check_in.qr.signature import verify_payload
from services.check_in.services.scan_ingestion import ModernScan, ingest_scan
from services.check_in.services.stores import (
    AttendanceStore,
    DuplicateAttendanceError,
    EventStore,
    InvalidAttendanceError,
    NFTMintTrigger,
    ProfileStore,
    StoreUnavailableError,
    TicketStore,
)

logger = logging.getLogger(__name__)


class CheckInStateMachine:
    """
    Decide si un escaneo se convierte en asistencia registrada.

    Pasos en orden estricto, cortando en el primer fallo:
    decodificar -> evento correcto -> firma -> ticket existe -> ticket activo
    -> sin asistencia previa -> insertar asistencia y marcar ticket usado.
    Un ticket "used" con asistencia en este evento se rechaza como duplicado,
    así el mismo escaneo repetido siempre da duplicate_checkin.

    No guarda estado entre llamadas: cada decisión relee los stores.
    Los rechazos de negocio se retornan en CheckInResult; los fallos de
    infraestructura se lanzan como StoreUnavailableError.
    """

    def __init__(
        self,
        tickets: TicketStore,
        attendance: AttendanceStore,
        profiles: ProfileStore,
        events: EventStore,
        nft_trigger: Optional[NFTMintTrigger] = None,
        nft_chain: str = "base",
    ):
        self.tickets = tickets
        self.attendance = attendance
        self.profiles = profiles
        self.events = events
        self.nft_trigger = nft_trigger
        self.nft_chain = nft_chain

    async def submit_scan(
        self,
        raw: str,
        event_context: str,
        operator_id: str,
        location: Optional[str] = None,
        device_info: Optional[Dict[str, Any]] = None,
    ) -> CheckInResult:
        """
        Procesar un escaneo para el evento event_context

        Args:
            raw: Texto leído del QR o ingresado a mano
            event_context: Evento en el que está operando el scanner
            operator_id: Usuario que realiza el check-in
            location: Punto de acceso (ej. "Main Entrance")
            device_info: Datos del dispositivo del scanner

        Returns:
            CheckInResult con el registro creado o el motivo de rechazo
        """
        scan = ingest_scan(raw)
        if scan is None:
            return self._reject(RejectionReason.MALFORMED, event_context, None)

        payload = None
        if isinstance(scan, ModernScan):
            payload = scan.payload
            if payload.event_id != event_context:
                return self._reject(RejectionReason.WRONG_EVENT, event_context, scan.ticket_id)
            if not verify_payload(payload):
                return self._reject(RejectionReason.TAMPERED, event_context, scan.ticket_id)

        ticket = await self._call(self.tickets.get_by_id(scan.ticket_id), "ticket lookup")
        if ticket is None:
            return self._reject(RejectionReason.TICKET_NOT_FOUND, event_context, scan.ticket_id)

        if ticket.status == TicketStatus.USED:
            # Re-escaneo de un check-in ya registrado en este evento: duplicado.
            # "used" sin asistencia (uso marcado por otra vía) es already_used.
            existing = await self._call(
                self.attendance.find_by_ticket_and_event(ticket.id, event_context),
                "duplicate check",
            )
            reason = RejectionReason.DUPLICATE_CHECKIN if existing else RejectionReason.ALREADY_USED
            return self._reject(reason, event_context, ticket.id)
        if ticket.status == TicketStatus.CANCELLED:
            return self._reject(RejectionReason.CANCELLED, event_context, ticket.id)

        # El QR legacy no trae evento; el moderno podría apuntar a un ticket de otro evento
        if ticket.event_id != event_context:
            return self._reject(RejectionReason.WRONG_EVENT, event_context, ticket.id)

        existing = await self._call(
            self.attendance.find_by_ticket_and_event(ticket.id, event_context),
            "duplicate check",
        )
        if existing is not None:
            return self._reject(RejectionReason.DUPLICATE_CHECKIN, event_context, ticket.id)

        event = await self._call(self.events.get_by_id(event_context), "event lookup")
        nft_enabled = bool(event and event.nft_enabled)

        attendee_id = payload.attendee_id if payload is not None else ticket.owner_id
        display_name = await self._call(self.profiles.get_display_name(attendee_id), "profile lookup")

        now = datetime.now(timezone.utc)
        record = AttendanceRecord(
            ticket_id=ticket.id,
            event_id=event_context,
            attendee_id=attendee_id,
            checked_in_at=now,
            checked_in_by=operator_id,
            check_in_location=location,
            device_info=device_info,
            qr_code_data=payload.to_wire() if payload is not None else {"ticketId": ticket.id},
            nft_status=NFTStatus.PENDING if nft_enabled else None,
        )

        try:
            created = await self._call(self.attendance.insert(record), "attendance insert")
        except DuplicateAttendanceError:
            # Otro scanner insertó entre el pre-check y este insert
            logger.info(f"Check-in concurrente detectado para ticket {ticket.id} (constraint único)")
            return self._reject(RejectionReason.DUPLICATE_CHECKIN, event_context, ticket.id)
        except InvalidAttendanceError as e:
            logger.warning(f"Asistencia no registrable para ticket {ticket.id}: {e}")
            return self._reject(RejectionReason.MALFORMED, event_context, ticket.id)

        await self._mark_ticket_used(ticket, now)

        created = created.model_copy(update={
            "attendee_name": display_name
            or (payload.attendee_name if payload is not None else None)
            or UNKNOWN_ATTENDEE
        })

        if nft_enabled:
            self._request_nft(created, event)

        logger.info(
            f"Check-in exitoso: ticket={ticket.id} evento={event_context} "
            f"asistencia={created.id} operador={operator_id}"
        )
        return CheckInResult.committed(created)

    async def _mark_ticket_used(self, ticket: Ticket, checked_in_at: datetime) -> None:
        """
        Marcar ticket como usado. Best-effort: la asistencia ya quedó
        registrada y es la fuente de verdad del check-in.
        """
        try:
            await self.tickets.update_status(ticket.id, TicketStatus.USED, checked_in_at)
        except Exception as e:
            logger.error(
                f"Asistencia registrada pero no se pudo actualizar ticket {ticket.id}: {e}",
                exc_info=True,
            )

    def _request_nft(self, record: AttendanceRecord, event: Event) -> None:
        if self.nft_trigger is None:
            logger.warning(f"Evento {event.id} tiene NFT habilitado pero no hay trigger configurado")
            return
        try:
            self.nft_trigger.request_mint(record.id, self.nft_chain)
        except Exception as e:
            logger.error(f"Error solicitando NFT para asistencia {record.id}: {e}", exc_info=True)

    async def _call(self, coro, step: str):
        """Ejecutar llamada a store; errores no tipados pasan a StoreUnavailableError"""
        try:
            return await coro
        except (StoreUnavailableError, DuplicateAttendanceError, InvalidAttendanceError):
            raise
        except Exception as e:
            logger.error(f"Store no disponible en {step}: {type(e).__name__}: {e}", exc_info=True)
            raise StoreUnavailableError(f"{step} failed: {e}") from e

    def _reject(self, reason: RejectionReason, event_id: str, ticket_id: Optional[str]) -> CheckInResult:
        logger.warning(f"Check-in rechazado ({reason.value}): ticket={ticket_id} evento={event_id}")
        return CheckInResult.rejected(reason)
