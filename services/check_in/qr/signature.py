"""
Firma de payloads QR de check-in.

La firma es base64("{ticket_id}-{event_id}-{attendee_id}-{timestamp}").
Es una codificación reversible del propio contenido, sin clave secreta:
detecta corrupción y ediciones ingenuas de los campos, pero NO protege
contra alguien que conozca el esquema y recalcule la firma. Es una
limitación conocida del formato de QR ya emitido; cambiarla a HMAC
invalidaría todos los tickets impresos.
"""
import base64
import hmac
import logging

logger = logging.getLogger(__name__)


def signing_input(ticket_id: str, event_id: str, attendee_id: str, timestamp: str) -> str:
    return f"{ticket_id}-{event_id}-{attendee_id}-{timestamp}"


def sign(ticket_id: str, event_id: str, attendee_id: str, timestamp: str) -> str:
    """Calcular la firma de los cuatro campos requeridos"""
    message = signing_input(ticket_id, event_id, attendee_id, timestamp)
    return base64.b64encode(message.encode("utf-8")).decode("ascii")


def verify_payload(payload) -> bool:
    """
    Verificar que la firma del payload corresponde a sus propios campos.

    Nunca lanza excepción: cualquier error al recalcular la firma se
    considera payload inválido.
    """
    try:
        expected = sign(
            payload.ticket_id,
            payload.event_id,
            payload.attendee_id,
            payload.timestamp,
        )
        return hmac.compare_digest(payload.signature.encode("utf-8"), expected.encode("utf-8"))
    except Exception as e:
        logger.warning(f"No se pudo verificar firma del QR: {type(e).__name__}: {e}")
        return False
