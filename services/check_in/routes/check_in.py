"""Rutas de check-in de asistencia"""
from datetime import datetime, timezone
from typing import Dict
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from shared.auth.dependencies import get_current_scanner, get_current_user
from shared.config.settings import settings
from shared.database.session import get_db
from shared.utils.rate_limiter import limiter, RATE_LIMITS
from services.check_in.models.check_in import (
    AttendanceListResponse,
    CheckInResponse,
    REJECTION_MESSAGES,
    RejectionReason,
    ScanRequest,
    TicketQRResponse,
    TicketStatus,
    UNKNOWN_ATTENDEE,
)
from services.check_in.qr.image import generate_qr_data_url
from services.check_in.qr.payload import create_payload
from services.check_in.services.nft_trigger import CeleryNFTMintTrigger
from services.check_in.services.sql_stores import (
    SqlAttendanceStore,
    SqlEventStore,
    SqlProfileStore,
    SqlTicketStore,
)
from services.check_in.services.state_machine import CheckInStateMachine
from services.check_in.services.stores import StoreUnavailableError

logger = logging.getLogger(__name__)

router = APIRouter()

RETRY_AFTER_SECONDS = 5


async def get_check_in_machine(db: AsyncSession = Depends(get_db)) -> CheckInStateMachine:
    """Un state machine por request, con stores sobre la sesión del request"""
    return CheckInStateMachine(
        tickets=SqlTicketStore(db),
        attendance=SqlAttendanceStore(db),
        profiles=SqlProfileStore(db),
        events=SqlEventStore(db),
        nft_trigger=CeleryNFTMintTrigger(),
        nft_chain=settings.NFT_DEFAULT_CHAIN,
    )


def store_unavailable_response() -> JSONResponse:
    body = CheckInResponse(
        success=False,
        reason=RejectionReason.STORE_UNAVAILABLE,
        message=REJECTION_MESSAGES[RejectionReason.STORE_UNAVAILABLE],
        retryable=True,
    )
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content=body.model_dump(mode="json"),
        headers={"Retry-After": str(RETRY_AFTER_SECONDS)},
    )


@router.post("/scan", response_model=CheckInResponse)
@limiter.limit(RATE_LIMITS["scan"])
async def submit_scan(
    request: Request,
    scan: ScanRequest,
    machine: CheckInStateMachine = Depends(get_check_in_machine),
    current_user: Dict = Depends(get_current_scanner)
):
    """
    Registrar asistencia a partir de un QR escaneado o un id ingresado a mano

    Los rechazos (QR alterado, ticket usado, check-in duplicado...) responden
    200 con success=false. Solo store_unavailable responde 503.
    """
    device_info = scan.device_info or {"userAgent": request.headers.get("user-agent")}

    try:
        result = await machine.submit_scan(
            raw=scan.raw,
            event_context=scan.event_id,
            operator_id=current_user["user_id"],
            location=scan.location or settings.DEFAULT_CHECKIN_LOCATION,
            device_info=device_info,
        )
    except StoreUnavailableError as e:
        logger.error(f"Check-in no disponible para evento {scan.event_id}: {e}")
        return store_unavailable_response()

    return CheckInResponse(
        success=result.success,
        reason=result.reason,
        message=result.message,
        attendance=result.record,
    )


@router.get("/events/{event_id}/attendance", response_model=AttendanceListResponse)
async def get_event_attendance(
    event_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: Dict = Depends(get_current_scanner)
):
    """Asistencia registrada de un evento, más reciente primero"""
    try:
        records = await SqlAttendanceStore(db).list_by_event(event_id)
    except StoreUnavailableError as e:
        logger.error(f"No se pudo listar asistencia del evento {event_id}: {e}")
        return store_unavailable_response()

    return AttendanceListResponse(event_id=event_id, total=len(records), attendance=records)


@router.post("/tickets/{ticket_id}/qr", response_model=TicketQRResponse)
@limiter.limit(RATE_LIMITS["qr_generation"])
async def generate_ticket_qr(
    request: Request,
    ticket_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: Dict = Depends(get_current_user)
):
    """
    Generar (o regenerar) el QR firmado de un ticket

    Solo el dueño del ticket o un admin pueden generarlo.
    """
    tickets = SqlTicketStore(db)
    profiles = SqlProfileStore(db)

    try:
        ticket = await tickets.get_by_id(ticket_id)
        if not ticket:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Ticket no encontrado"
            )

        if ticket.owner_id != current_user["user_id"] and current_user.get("role") != "admin":
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="No puedes generar QR de tickets de otros usuarios"
            )

        if ticket.status == TicketStatus.CANCELLED:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Ticket cancelado"
            )

        attendee_name = await profiles.get_display_name(ticket.owner_id) or UNKNOWN_ATTENDEE
        payload = create_payload(ticket.id, ticket.event_id, ticket.owner_id, attendee_name)
        qr_code_image = generate_qr_data_url(payload)

        generated_at = datetime.now(timezone.utc)
        await tickets.save_qr_code(ticket.id, payload.to_wire(), generated_at)
    except StoreUnavailableError as e:
        logger.error(f"No se pudo generar QR para ticket {ticket_id}: {e}")
        return store_unavailable_response()

    logger.info(f"QR generado para ticket {ticket.id}")

    return TicketQRResponse(
        ticket_id=ticket.id,
        qr_data=payload.to_wire(),
        qr_code_image=qr_code_image,
        generated_at=generated_at,
    )
