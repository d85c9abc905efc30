"""Chat schemas."""

from typing import Any

from pydantic import BaseModel, Field

from tradeintel.models.chat import ChatMessage, ChatSession


class ChatSessionCreate(BaseModel):
    title: str | None = Field(None, max_length=255)


class ChatMessageCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=8000)


class ChatMessageResponse(BaseModel):
    id: str
    role: str
    content: str
    model_used: str | None = None
    input_tokens: int = 0
    output_tokens: int = 0
    cost_usd: float = 0.0
    tool_calls: list[dict[str, Any]] | None = None
    created_at: str

    model_config = {"from_attributes": True}

    @classmethod
    def from_message(cls, message: ChatMessage) -> "ChatMessageResponse":
        return cls(
            id=str(message.id),
            role=message.role,
            content=message.content,
            model_used=message.model_used,
            input_tokens=message.input_tokens,
            output_tokens=message.output_tokens,
            cost_usd=float(message.cost_usd or 0),
            tool_calls=message.tool_calls,
            created_at=message.created_at.isoformat(),
        )


class ChatSessionResponse(BaseModel):
    id: str
    title: str
    created_at: str
    updated_at: str

    model_config = {"from_attributes": True}

    @classmethod
    def from_session(cls, session: ChatSession) -> "ChatSessionResponse":
        return cls(
            id=str(session.id),
            title=session.title,
            created_at=session.created_at.isoformat(),
            updated_at=session.updated_at.isoformat(),
        )


class ChatSessionDetail(ChatSessionResponse):
    messages: list[ChatMessageResponse] = Field(default_factory=list)


class UsagePeriod(BaseModel):
    input_tokens: int
    output_tokens: int
    cost_usd: float
    sessions: int


class CostSummaryResponse(BaseModel):
    today: UsagePeriod
    last_30_days: UsagePeriod
    all_time: UsagePeriod
