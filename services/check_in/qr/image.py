"""Generación de imagen PNG del código QR"""
import base64
import io
import logging

import qrcode

from services.check_in.qr.payload import QRCodePayload

logger = logging.getLogger(__name__)


def generate_qr_png(qr_data: str) -> bytes:
    """
    Generar imagen PNG para el texto dado

    Args:
        qr_data: Contenido del QR (JSON del payload o id de ticket legacy)

    Returns:
        Bytes de la imagen PNG
    """
    if not qr_data:
        raise ValueError("qr_data está vacío, no se puede generar QR")

    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=10,
        border=2,
    )
    qr.add_data(qr_data)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")

    img_buffer = io.BytesIO()
    img.save(img_buffer, format="PNG")
    return img_buffer.getvalue()


def generate_qr_data_url(payload: QRCodePayload) -> str:
    """Imagen del payload como data URL (data:image/png;base64,...)"""
    try:
        png = generate_qr_png(payload.to_json())
    except Exception as e:
        logger.error(f"Error generando imagen QR para ticket {payload.ticket_id}: {e}", exc_info=True)
        raise

    return "data:image/png;base64," + base64.b64encode(png).decode("ascii")
