"""
FILE DELIVERY

Sends a material's document over a chat channel and records the download.

Order of operations:
1. Look up the content; missing -> not_found, nothing mutated
2. Assemble the bytes, over the transfer ceiling -> too_large, nothing sent
3. Send; a channel failure -> send_failed, nothing mutated
4. After a successful send, three independent best-effort updates, each
   committed on its own: download counter, purchase counter + revenue
   (priced materials only), user download history. A failure in one is
   logged and never undoes the send or the others.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from app.agent.channel import ChatChannel
from app.core.config import settings
from app.core.exceptions import ContentNotFound, TransferTooLarge
from app.models.material import Material
from app.models.study_user import StudyUser
from app.services import catalog_service, user_service
from app.services.content_store import ContentStore

logger = logging.getLogger(__name__)


class DeliveryReason:
    NOT_FOUND = "not_found"
    TOO_LARGE = "too_large"
    SEND_FAILED = "send_failed"


@dataclass
class DeliveryResult:
    success: bool
    reason: Optional[str] = None
    size: int = 0


class FileDelivery:
    def __init__(self, db: Session, store: Optional[ContentStore] = None, max_bytes: Optional[int] = None):
        self.db = db
        self.store = store or ContentStore(db)
        self.max_bytes = max_bytes or settings.MAX_TRANSFER_BYTES

    def load(self, material: Material) -> bytes:
        """Assembled document bytes. Raises ContentNotFound or TransferTooLarge."""
        header = self.store.find(material.content_id)
        if header is None:
            raise ContentNotFound(material.content_id)
        if header.length > self.max_bytes:
            raise TransferTooLarge(header.length, self.max_bytes)

        buffer = bytearray()
        for chunk in self.store.open_read(material.content_id):
            buffer.extend(chunk)
            if len(buffer) > self.max_bytes:
                raise TransferTooLarge(len(buffer), self.max_bytes)
        return bytes(buffer)

    async def deliver(self, channel: ChatChannel, user: StudyUser, material: Material) -> DeliveryResult:
        try:
            data = self.load(material)
        except ContentNotFound:
            logger.warning(f"[DELIVERY] Content missing for material id={material.id} content={material.content_id}")
            return DeliveryResult(False, DeliveryReason.NOT_FOUND)
        except TransferTooLarge as e:
            logger.warning(f"[DELIVERY] Material id={material.id} is {e.size} bytes, over {e.limit}")
            return DeliveryResult(False, DeliveryReason.TOO_LARGE, e.size)

        filename = material.file_name or f"{material.title}.pdf"
        caption = f"📘 {material.title}"
        try:
            await channel.send_document(data, filename, caption)
        except Exception as e:
            logger.error(f"[DELIVERY] Send failed for material id={material.id}: {e}", exc_info=True)
            return DeliveryResult(False, DeliveryReason.SEND_FAILED, len(data))

        logger.info(f"[DELIVERY] Sent material id={material.id} to user={user.telegram_id} bytes={len(data)}")
        self._record(user, material)
        return DeliveryResult(True, None, len(data))

    def _record(self, user: StudyUser, material: Material):
        material_id = material.id
        title = material.title
        priced = not material.is_free
        telegram_id = user.telegram_id

        try:
            catalog_service.increment_download(self.db, material_id)
        except Exception as e:
            self.db.rollback()
            logger.error(f"[DELIVERY] Download counter update failed for material id={material_id}: {e}")

        if priced:
            try:
                catalog_service.increment_purchase(self.db, material_id)
            except Exception as e:
                self.db.rollback()
                logger.error(f"[DELIVERY] Purchase counter update failed for material id={material_id}: {e}")

        try:
            user_service.record_download(self.db, user, material)
        except Exception as e:
            self.db.rollback()
            logger.error(f"[DELIVERY] History append failed for user={telegram_id} material='{title}': {e}")
