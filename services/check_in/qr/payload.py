"""Modelo del payload firmado que viaja dentro del código QR"""
from datetime import datetime, timezone
from typing import Optional
import json

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from services.check_in.qr.signature import sign


class PayloadDecodeError(ValueError):
    """El texto escaneado no es un payload JSON válido (distinto de firma inválida)"""


class QRCodePayload(BaseModel):
    """
    Token de check-in codificado en el QR.

    Los nombres en el JSON son camelCase (ticketId, eventId, ...) para ser
    compatibles con los QR ya impresos. attendee_name es informativo y no
    forma parte de la firma.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    ticket_id: str = Field(alias="ticketId")
    event_id: str = Field(alias="eventId")
    attendee_id: str = Field(alias="attendeeId")
    attendee_name: Optional[str] = Field(default=None, alias="attendeeName")
    # Sin timestamp el QR se sigue tratando como moderno y falla la firma
    timestamp: str = ""
    signature: str

    def to_json(self) -> str:
        """Serializar al formato del QR (attendeeName se omite si es None)"""
        return self.model_dump_json(by_alias=True, exclude_none=True)

    def to_wire(self) -> dict:
        """Mismo contenido que to_json() pero como dict (para columnas JSON)"""
        return self.model_dump(by_alias=True, exclude_none=True)

    @classmethod
    def from_json(cls, raw: str) -> "QRCodePayload":
        """
        Decodificar un payload desde su texto JSON.

        Raises:
            PayloadDecodeError: si el texto no es JSON o le faltan campos.
                Una firma incorrecta NO es un error de decodificación.
        """
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, TypeError) as e:
            raise PayloadDecodeError(f"QR no es JSON válido: {e}") from e

        if not isinstance(data, dict):
            raise PayloadDecodeError("QR no contiene un objeto JSON")

        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise PayloadDecodeError(f"QR con formato inválido: {e.error_count()} campo(s)") from e


def utc_timestamp() -> str:
    """Hora actual en ISO-8601 con milisegundos y sufijo Z (ej. 2024-01-01T00:00:00.000Z)"""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def create_payload(
    ticket_id: str,
    event_id: str,
    attendee_id: str,
    attendee_name: Optional[str] = None,
    timestamp: Optional[str] = None,
) -> QRCodePayload:
    """
    Crear un payload firmado para un ticket.

    timestamp solo se usa como entrada de la firma, no es una expiración.
    """
    if timestamp is None:
        timestamp = utc_timestamp()

    return QRCodePayload(
        ticket_id=ticket_id,
        event_id=event_id,
        attendee_id=attendee_id,
        attendee_name=attendee_name,
        timestamp=timestamp,
        signature=sign(ticket_id, event_id, attendee_id, timestamp),
    )
