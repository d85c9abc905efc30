"""Chat session and agent routes."""

import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from tradeintel.config import Settings, get_settings
from tradeintel.dependencies import get_current_user_id, get_db
from tradeintel.schemas.chat import (
    ChatMessageCreate,
    ChatMessageResponse,
    ChatSessionCreate,
    ChatSessionDetail,
    ChatSessionResponse,
    CostSummaryResponse,
)
from tradeintel.services.ai_service import get_ai_service
from tradeintel.services.chat_agent import ChatAgent
from tradeintel.services.chat_service import ChatService
from tradeintel.services.chat_tools import TradeTools
from tradeintel.services.cost_tracking import CostTrackingService
from tradeintel.services.crosspost_service import CrossPostService
from tradeintel.services.listing_service import ListingService
from tradeintel.services.lookup_cache import get_lookup_caches
from tradeintel.services.notification_rule_service import NotificationRuleService
from tradeintel.services.rule_parser import RuleParser

router = APIRouter(prefix="/chat", tags=["chat"])


def get_chat_service() -> ChatService:
    return ChatService(CostTrackingService())


def get_chat_agent(settings: Settings = Depends(get_settings)) -> ChatAgent:
    ai = get_ai_service(settings)
    caches = get_lookup_caches(settings)
    cost = CostTrackingService()
    tools = TradeTools(
        listings=ListingService(),
        crossposts=CrossPostService(),
        caches=caches,
        rules=NotificationRuleService(RuleParser(ai, settings), caches, cost),
    )
    return ChatAgent(settings, ai, tools.registry(), ChatService(cost), cost)


@router.get("/sessions", response_model=list[ChatSessionResponse])
async def list_sessions(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    chats: ChatService = Depends(get_chat_service),
):
    """List the user's chat sessions, most recent first."""
    return [ChatSessionResponse.from_session(s) for s in await chats.list_sessions(db, user_id)]


@router.post("/sessions", response_model=ChatSessionResponse, status_code=status.HTTP_201_CREATED)
async def create_session(
    body: ChatSessionCreate,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    chats: ChatService = Depends(get_chat_service),
):
    session = await chats.create_session(db, user_id, body.title)
    return ChatSessionResponse.from_session(session)


@router.get("/sessions/{session_id}", response_model=ChatSessionDetail)
async def get_session(
    session_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    chats: ChatService = Depends(get_chat_service),
):
    session = await chats.get_session(db, user_id, session_id)
    messages = await chats.get_messages(db, session.id)
    base = ChatSessionResponse.from_session(session)
    return ChatSessionDetail(
        **base.model_dump(),
        messages=[ChatMessageResponse.from_message(m) for m in messages],
    )


@router.post("/sessions/{session_id}/messages", response_model=ChatMessageResponse)
async def send_message(
    session_id: uuid.UUID,
    body: ChatMessageCreate,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    agent: ChatAgent = Depends(get_chat_agent),
):
    """Send a user message and return the assistant's reply."""
    reply = await agent.send_message(db, user_id, session_id, body.content)
    return ChatMessageResponse.from_message(reply)


@router.get("/cost", response_model=CostSummaryResponse)
async def cost_summary(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    chats: ChatService = Depends(get_chat_service),
):
    """Token and cost totals for today, the last 30 days and all time."""
    return CostSummaryResponse(**await chats.cost_summary(db, user_id))
