"""Trigger fire-and-forget del minting de NFT de asistencia"""
import logging

from services.check_in.services.stores import NFTMintTrigger

logger = logging.getLogger(__name__)


class CeleryNFTMintTrigger(NFTMintTrigger):
    """Encola la tarea de minting; si no se puede encolar solo se registra el error"""

    def request_mint(self, attendance_id: str, chain: str) -> None:
        from services.check_in.tasks.nft_tasks import request_attendance_nft_mint_task

        try:
            result = request_attendance_nft_mint_task.delay(attendance_id=attendance_id, chain=chain)
            logger.info(f"NFT encolado para asistencia {attendance_id} (task {result.id})")
        except Exception as e:
            logger.error(f"No se pudo encolar NFT para asistencia {attendance_id}: {e}", exc_info=True)
