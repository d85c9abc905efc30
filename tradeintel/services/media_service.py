"""Media download to local storage for archived messages."""

import asyncio
import logging
import uuid
from pathlib import Path

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tradeintel.config import Settings
from tradeintel.models.raw_message import RawMessage
from tradeintel.services.whapi_client import WhapiClient

logger = logging.getLogger(__name__)

_MIME_EXTENSIONS: dict[str, str] = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/gif": ".gif",
    "video/mp4": ".mp4",
    "audio/ogg": ".ogg",
    "audio/mpeg": ".mp3",
    "application/pdf": ".pdf",
    "application/msword": ".doc",
}


def extension_for(mime_type: str | None) -> str:
    if not mime_type:
        return ""
    # Drop parameters such as "audio/ogg; codecs=opus"
    return _MIME_EXTENSIONS.get(mime_type.split(";")[0].strip().lower(), "")


class MediaService:
    """Downloads message media into <storage_dir>/<group_id>/<message_id><ext>."""

    def __init__(
        self,
        settings: Settings,
        whapi: WhapiClient,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        self._storage_dir = Path(settings.media_storage_dir)
        self._whapi = whapi
        self._session_factory = session_factory

    async def download_for_message(self, message_id: uuid.UUID) -> str | None:
        """Download and record media for one message.

        Failures are logged and return None; the message stays eligible for
        the retry sweep because media_local_path remains unset.
        """
        async with self._session_factory() as db:
            msg = await db.get(RawMessage, message_id)
            if msg is None or not msg.media_url or msg.media_local_path:
                return None
            url = msg.media_url
            target = self._storage_dir / str(msg.group_id) / f"{msg.whapi_msg_id}{extension_for(msg.media_mime_type)}"

        try:
            content = await self._whapi.download(url)
            if not content:
                logger.warning("Empty response downloading media for message=%s", message_id)
                return None
            await asyncio.to_thread(self._write, target, content)
        except (httpx.HTTPError, OSError) as e:
            logger.error("Failed to download media for message=%s: %s", message_id, e)
            return None

        async with self._session_factory() as db:
            msg = await db.get(RawMessage, message_id)
            if msg is None:
                return None
            msg.media_local_path = str(target)
            await db.commit()

        logger.info("Downloaded media for message=%s: %s (%d bytes)", message_id, target, len(content))
        return str(target)

    async def retry_missing(self, limit: int = 100) -> int:
        """Retry downloads for messages that have media but no local file."""
        async with self._session_factory() as db:
            result = await db.execute(
                select(RawMessage.id)
                .where(RawMessage.media_url.is_not(None), RawMessage.media_local_path.is_(None))
                .order_by(RawMessage.received_at)
                .limit(limit)
            )
            message_ids = list(result.scalars().all())

        downloaded = 0
        for message_id in message_ids:
            if await self.download_for_message(message_id):
                downloaded += 1
        logger.info("Media retry sweep: %d/%d downloaded", downloaded, len(message_ids))
        return downloaded

    @staticmethod
    def _write(target: Path, content: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)
