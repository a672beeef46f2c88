"""Normalización del texto escaneado a payload moderno o id de ticket legacy"""
from dataclasses import dataclass
from typing import Optional, Union

from services.check_in.qr.payload import PayloadDecodeError, QRCodePayload


@dataclass(frozen=True)
class ModernScan:
    payload: QRCodePayload

    @property
    def ticket_id(self) -> str:
        return self.payload.ticket_id


@dataclass(frozen=True)
class LegacyScan:
    """Ticket antiguo: el QR solo trae el id, sin evento ni firma"""
    ticket_id: str


ScanInput = Union[ModernScan, LegacyScan]


def ingest_scan(raw: Optional[str]) -> Optional[ScanInput]:
    """
    Convertir texto de cámara o de ingreso manual en un ScanInput.

    1. Si decodifica como JSON con ticketId, eventId, attendeeId y
       signature, es un payload moderno.
    2. Cualquier otra cosa se toma como id de ticket legacy.

    Retorna None solo si no hay nada identificable (texto vacío).
    Nunca lanza excepción.
    """
    if raw is None:
        return None

    text = raw.strip()
    if not text:
        return None

    try:
        return ModernScan(QRCodePayload.from_json(text))
    except PayloadDecodeError:
        pass

    return LegacyScan(ticket_id=text)
