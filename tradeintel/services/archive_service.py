"""Idempotent archival of inbound messages."""

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tradeintel.metrics import messages_archived_total
from tradeintel.models.group import WhatsappGroup
from tradeintel.models.raw_message import RawMessage
from tradeintel.schemas.webhook import WhapiMessage
from tradeintel.services.whapi_client import WhapiClient

logger = logging.getLogger(__name__)


class ArchiveService:
    """Persists inbound messages exactly once per external message id."""

    def __init__(self, whapi: WhapiClient) -> None:
        self._whapi = whapi

    async def archive(self, db: AsyncSession, msg: WhapiMessage) -> RawMessage | None:
        """Archive one message.

        Returns the new row, or None when the message is a duplicate or lacks
        an id / chat id. A writer that loses a uniqueness race gets None too.
        """
        if not msg.id or not msg.chat_id:
            logger.warning("Skipping webhook message without id or chat_id")
            return None

        if await self._exists(db, msg.id):
            logger.debug("Message already archived: %s", msg.id)
            return None

        group = await self._find_or_create_group(db, msg.chat_id)

        raw = RawMessage(
            group_id=group.id,
            whapi_msg_id=msg.id,
            sender_phone=msg.from_,
            sender_name=msg.from_name,
            message_body=msg.message_body,
            message_type=msg.message_type,
            media_url=msg.media_url,
            media_mime_type=msg.media_mime_type,
            reply_to_msg_id=msg.reply_to_msg_id,
            is_forwarded=msg.forwarded,
            timestamp_wa=(
                datetime.fromtimestamp(msg.timestamp, tz=timezone.utc) if msg.timestamp else datetime.now(timezone.utc)
            ),
            processed=False,
        )

        try:
            async with db.begin_nested():
                db.add(raw)
        except IntegrityError:
            logger.debug("Duplicate message ignored: %s", msg.id)
            return None

        messages_archived_total.inc()
        logger.info("Archived message %s in group %s (type=%s)", msg.id, group.whapi_group_id, raw.message_type)
        return raw

    async def _exists(self, db: AsyncSession, whapi_msg_id: str) -> bool:
        result = await db.execute(select(RawMessage.id).where(RawMessage.whapi_msg_id == whapi_msg_id))
        return result.scalar_one_or_none() is not None

    async def _find_or_create_group(self, db: AsyncSession, chat_id: str) -> WhatsappGroup:
        result = await db.execute(select(WhatsappGroup).where(WhatsappGroup.whapi_group_id == chat_id))
        group = result.scalar_one_or_none()
        if group:
            return group

        name = await self._whapi.get_group_name(chat_id) or chat_id
        group = WhatsappGroup(whapi_group_id=chat_id, group_name=name, is_active=True)
        try:
            async with db.begin_nested():
                db.add(group)
        except IntegrityError:
            # Another writer created it first
            result = await db.execute(select(WhatsappGroup).where(WhatsappGroup.whapi_group_id == chat_id))
            return result.scalar_one()

        logger.info("Created group %s (%s)", chat_id, name)
        return group
