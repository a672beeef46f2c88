"""
Celery para trabajo fuera del request de check-in

Hoy solo existe la solicitud de NFT de asistencia, que va a su propia cola
para que una edge function lenta no frene otras tareas.
"""
import logging

from celery import Celery
from kombu import Exchange, Queue

from shared.config.settings import settings

logger = logging.getLogger(__name__)

NFT_TASK_NAME = "request_attendance_nft_mint"

celery_app = Celery(
    "checkin",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=["services.check_in.tasks.nft_tasks"],
)

_exchange = Exchange("checkin", type="direct")

celery_app.conf.update(
    task_queues=(
        Queue("default", _exchange, routing_key="default"),
        Queue("nft", _exchange, routing_key="nft"),
    ),
    task_default_queue="default",
    task_default_exchange="checkin",
    task_default_routing_key="default",
    task_routes={NFT_TASK_NAME: {"queue": "nft", "routing_key": "nft"}},
    task_annotations={NFT_TASK_NAME: {"rate_limit": settings.NFT_MINT_RATE_LIMIT}},

    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    result_expires=3600,
    timezone="UTC",
    enable_utc=True,

    # Margen sobre el timeout HTTP de la edge function
    task_soft_time_limit=int(settings.NFT_MINT_TIMEOUT_SECONDS) + 30,
    task_time_limit=int(settings.NFT_MINT_TIMEOUT_SECONDS) + 60,

    # Una solicitud de NFT no se pierde si el worker muere a mitad
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    broker_connection_retry_on_startup=True,
)

logger.info("Celery configurado - broker: %s", settings.REDIS_URL.rsplit("@", 1)[-1])
