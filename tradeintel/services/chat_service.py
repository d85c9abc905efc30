"""Chat session bookkeeping."""

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tradeintel.exceptions import NotFoundError
from tradeintel.models.chat import ChatMessage, ChatSession
from tradeintel.services.cost_tracking import CostTrackingService

logger = logging.getLogger(__name__)

DEFAULT_SESSION_TITLE = "New Chat"


class ChatService:
    def __init__(self, cost_tracker: CostTrackingService) -> None:
        self._cost = cost_tracker

    async def create_session(self, db: AsyncSession, user_id: uuid.UUID, title: str | None = None) -> ChatSession:
        session = ChatSession(user_id=user_id, title=(title or "").strip() or DEFAULT_SESSION_TITLE)
        db.add(session)
        await db.flush()
        try:
            async with db.begin_nested():
                await self._cost.increment_session_count(db, user_id)
        except SQLAlchemyError as e:
            logger.warning("Failed to count chat session for user=%s (non-fatal): %s", user_id, e)
        logger.info("Created chat session %s for user=%s", session.id, user_id)
        return session

    async def list_sessions(self, db: AsyncSession, user_id: uuid.UUID) -> list[ChatSession]:
        result = await db.execute(
            select(ChatSession)
            .where(ChatSession.user_id == user_id)
            .order_by(ChatSession.updated_at.desc(), ChatSession.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_session(self, db: AsyncSession, user_id: uuid.UUID, session_id: uuid.UUID) -> ChatSession:
        """A session owned by another user is reported as missing."""
        result = await db.execute(
            select(ChatSession).where(ChatSession.id == session_id, ChatSession.user_id == user_id)
        )
        session = result.scalar_one_or_none()
        if session is None:
            raise NotFoundError("ChatSession", session_id)
        return session

    async def get_messages(self, db: AsyncSession, session_id: uuid.UUID) -> list[ChatMessage]:
        result = await db.execute(
            select(ChatMessage)
            .where(ChatMessage.session_id == session_id)
            .order_by(ChatMessage.created_at, ChatMessage.id)
        )
        return list(result.scalars().all())

    async def cost_summary(self, db: AsyncSession, user_id: uuid.UUID) -> dict:
        return await self._cost.summary(db, user_id)
