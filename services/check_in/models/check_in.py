"""Modelos Pydantic para check-in de asistencia"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class TicketStatus(str, Enum):
    ACTIVE = "active"
    USED = "used"
    CANCELLED = "cancelled"


class NFTStatus(str, Enum):
    PENDING = "pending"
    MINTED = "minted"
    FAILED = "failed"


class RejectionReason(str, Enum):
    """Motivos de rechazo de un check-in"""
    MALFORMED = "malformed"
    WRONG_EVENT = "wrong_event"
    TAMPERED = "tampered"
    TICKET_NOT_FOUND = "ticket_not_found"
    ALREADY_USED = "already_used"
    CANCELLED = "cancelled"
    DUPLICATE_CHECKIN = "duplicate_checkin"
    STORE_UNAVAILABLE = "store_unavailable"


REJECTION_MESSAGES = {
    RejectionReason.MALFORMED: "Código QR inválido: no contiene un ticket reconocible",
    RejectionReason.WRONG_EVENT: "Este código QR no corresponde a este evento",
    RejectionReason.TAMPERED: "Código QR inválido: los datos pueden haber sido alterados",
    RejectionReason.TICKET_NOT_FOUND: "Ticket no encontrado",
    RejectionReason.ALREADY_USED: "Ticket ya utilizado",
    RejectionReason.CANCELLED: "Ticket cancelado",
    RejectionReason.DUPLICATE_CHECKIN: "Este ticket ya registró su asistencia",
    RejectionReason.STORE_UNAVAILABLE: "Servicio no disponible, intenta nuevamente",
}

# Nombre mostrado cuando no hay perfil ni nombre en el QR
UNKNOWN_ATTENDEE = "Unknown"


# ==================== REGISTROS (vista del core) ====================

class Ticket(BaseModel):
    id: str
    event_id: str
    owner_id: str
    status: TicketStatus
    checked_in_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class Event(BaseModel):
    id: str
    title: str
    nft_enabled: bool = False
    nft_collection_name: Optional[str] = None

    class Config:
        from_attributes = True


class AttendanceRecord(BaseModel):
    """Un check-in. id se asigna al insertar."""
    id: Optional[str] = None
    ticket_id: str
    event_id: str
    attendee_id: str
    checked_in_at: datetime
    checked_in_by: Optional[str] = None
    check_in_location: Optional[str] = None
    device_info: Optional[Dict[str, Any]] = None
    qr_code_data: Optional[Any] = None
    nft_status: Optional[NFTStatus] = None
    nft_mint_address: Optional[str] = None
    nft_metadata_uri: Optional[str] = None
    nft_minted_at: Optional[datetime] = None
    attendee_name: Optional[str] = None

    class Config:
        from_attributes = True


# ==================== RESULTADO ====================

class CheckInResult(BaseModel):
    """
    Resultado de submit_scan: registro creado o motivo de rechazo.
    Los rechazos de negocio son datos, no excepciones.
    """
    success: bool
    record: Optional[AttendanceRecord] = None
    reason: Optional[RejectionReason] = None
    message: str

    @classmethod
    def committed(cls, record: AttendanceRecord) -> "CheckInResult":
        return cls(success=True, record=record, message="Check-in exitoso")

    @classmethod
    def rejected(cls, reason: RejectionReason) -> "CheckInResult":
        return cls(success=False, reason=reason, message=REJECTION_MESSAGES[reason])


# ==================== API ====================

class ScanRequest(BaseModel):
    raw: str = Field(..., description="Texto leído por la cámara o ingresado manualmente")
    event_id: str
    location: Optional[str] = None
    device_info: Optional[Dict[str, Any]] = None


class CheckInResponse(BaseModel):
    success: bool
    reason: Optional[RejectionReason] = None
    message: str
    retryable: bool = False
    attendance: Optional[AttendanceRecord] = None


class AttendanceListResponse(BaseModel):
    event_id: str
    total: int
    attendance: List[AttendanceRecord]


class TicketQRResponse(BaseModel):
    ticket_id: str
    qr_data: Dict[str, Any]
    qr_code_image: str
    generated_at: datetime
