"""Tareas asíncronas para solicitar el NFT de asistencia"""
import logging

import httpx

from shared.cache.celery_app import NFT_TASK_NAME, celery_app
from shared.config.settings import settings

logger = logging.getLogger(__name__)


def invoke_mint_function(attendance_id: str, chain: str) -> dict:
    """
    Invocar la edge function de Supabase que genera el NFT de asistencia

    Args:
        attendance_id: ID del registro de asistencia
        chain: Blockchain destino (ej. "base")

    Returns:
        Respuesta JSON de la función
    """
    if not settings.SUPABASE_URL:
        raise RuntimeError("SUPABASE_URL no configurado, no se puede solicitar NFT")

    url = f"{settings.SUPABASE_URL.rstrip('/')}/functions/v1/{settings.NFT_MINT_FUNCTION}"
    service_key = settings.SUPABASE_SERVICE_ROLE_KEY

    with httpx.Client(timeout=settings.NFT_MINT_TIMEOUT_SECONDS) as client:
        response = client.post(
            url,
            json={"attendanceId": attendance_id, "chain": chain},
            headers={
                "apikey": service_key,
                "Authorization": f"Bearer {service_key}",
            },
        )
        response.raise_for_status()
        return response.json()


@celery_app.task(
    name=NFT_TASK_NAME,
    bind=True,
    autoretry_for=(httpx.HTTPError,),
    retry_backoff=True,
    retry_backoff_max=300,
    retry_kwargs={"max_retries": settings.NFT_MINT_MAX_RETRIES},
)
def request_attendance_nft_mint_task(self, attendance_id: str, chain: str = "base"):
    """
    Tarea Celery para solicitar minting del NFT de una asistencia

    Incluye retry automático con backoff exponencial para errores HTTP
    """
    logger.info(f"[CELERY] Solicitando NFT para asistencia {attendance_id} en {chain}")

    try:
        result = invoke_mint_function(attendance_id, chain)
    except httpx.HTTPError as e:
        logger.warning(f"[CELERY] Error HTTP solicitando NFT para {attendance_id}: {e}")
        raise
    except Exception as e:
        logger.error(f"[CELERY] Error en request_attendance_nft_mint_task: {e}", exc_info=True)
        raise

    logger.info(f"[CELERY] NFT solicitado para asistencia {attendance_id}: {result}")
    return {"attendance_id": attendance_id, "chain": chain, "result": result}
