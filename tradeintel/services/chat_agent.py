"""Tool-calling chat agent.

One user turn is at most two LLM calls: the first reply may embed a tool
request as JSON, which is executed and fed back for a final answer.
"""

import json
import logging
import re
import uuid
from dataclasses import dataclass, field
from typing import Any, Iterator

from sqlalchemy.ext.asyncio import AsyncSession

from tradeintel.config import Settings
from tradeintel.metrics import chat_tool_calls_total
from tradeintel.models.base import utcnow
from tradeintel.models.chat import ChatMessage
from tradeintel.services.ai_prompts import CHAT_SYSTEM_PROMPT, TOOL_RESULT_PROMPT
from tradeintel.services.ai_service import AIService
from tradeintel.services.chat_service import ChatService
from tradeintel.services.chat_tools import ToolContext, ToolRegistry
from tradeintel.services.cost_tracking import CostTrackingService, track_usage_safely

logger = logging.getLogger(__name__)

CHAT_TEMPERATURE = 0.7

TOOL_CALL_PATTERN = re.compile(
    r'\{\s*"tool"\s*:\s*"([^"]+)"\s*,\s*"params"\s*:\s*(\{[^}]*\})\s*\}',
    re.DOTALL,
)


@dataclass(frozen=True)
class ToolCall:
    tool: str
    params: dict[str, Any] = field(default_factory=dict)


def _balanced_end(text: str, start: int) -> int | None:
    """Index of the brace closing the one at text[start], or None.

    Braces inside JSON string literals (including escaped quotes) are
    not counted.
    """
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i
    return None


def iter_json_blocks(text: str) -> Iterator[str]:
    """Yield every balanced {...} block, outermost first."""
    pos = 0
    while True:
        start = text.find("{", pos)
        if start == -1:
            return
        end = _balanced_end(text, start)
        if end is not None:
            yield text[start:end + 1]
        pos = start + 1


def _as_tool_call(data: Any) -> ToolCall | None:
    if not isinstance(data, dict) or "tool" not in data or "params" not in data:
        return None
    params = data["params"]
    if not isinstance(data["tool"], str) or not isinstance(params, dict):
        return None
    return ToolCall(tool=data["tool"], params=params)


def parse_tool_call(text: str) -> ToolCall | None:
    """Find a {"tool": ..., "params": {...}} request in free-form model text."""
    if not text:
        return None

    match = TOOL_CALL_PATTERN.search(text)
    if match:
        try:
            params = json.loads(match.group(2))
        except json.JSONDecodeError:
            params = None
        if isinstance(params, dict):
            return ToolCall(tool=match.group(1), params=params)

    for block in iter_json_blocks(text):
        try:
            data = json.loads(block)
        except json.JSONDecodeError:
            continue
        call = _as_tool_call(data)
        if call is not None:
            return call
    return None


class ChatAgent:
    """Runs one user turn against the LLM with optional tool execution."""

    def __init__(
        self,
        settings: Settings,
        ai_service: AIService,
        tools: ToolRegistry,
        chat_service: ChatService,
        cost_tracker: CostTrackingService,
    ) -> None:
        self._model = settings.chat_model
        self._ai = ai_service
        self._tools = tools
        self._chats = chat_service
        self._cost = cost_tracker

    async def send_message(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        session_id: uuid.UUID,
        content: str,
    ) -> ChatMessage:
        """Persist the user's message and return the assistant's reply.

        LLMError propagates so the caller can roll the whole turn back.
        """
        session = await self._chats.get_session(db, user_id, session_id)

        db.add(ChatMessage(session_id=session.id, role="user", content=content))
        await db.flush()

        history = await self._chats.get_messages(db, session.id)
        messages = [{"role": "system", "content": CHAT_SYSTEM_PROMPT}]
        messages.extend({"role": m.role, "content": m.content} for m in history)

        first = await self._ai.chat_completion(messages, temperature=CHAT_TEMPERATURE, model=self._model)
        usage = first.usage
        reply = first.content
        tool_calls = None

        call = parse_tool_call(first.content)
        if call is not None:
            logger.info("Chat agent invoking tool %s for session %s", call.tool, session.id)
            chat_tool_calls_total.labels(tool=call.tool if call.tool in self._tools else "unknown").inc()
            result = await self._tools.execute(call.tool, ToolContext(db=db, user_id=user_id), call.params)
            result_text = json.dumps(result, default=str)

            follow_up = messages + [
                {"role": "assistant", "content": first.content},
                {"role": "user", "content": TOOL_RESULT_PROMPT.format(tool=call.tool, result=result_text)},
            ]
            second = await self._ai.chat_completion(follow_up, temperature=CHAT_TEMPERATURE, model=self._model)
            usage = usage + second.usage
            reply = second.content
            tool_calls = [{"tool": call.tool, "params": call.params, "result": result_text}]

        assistant = ChatMessage(
            session_id=session.id,
            role="assistant",
            content=reply,
            model_used=usage.model,
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
            cost_usd=usage.cost_usd,
            tool_calls=tool_calls,
        )
        db.add(assistant)
        session.updated_at = utcnow()
        await db.flush()

        await track_usage_safely(db, self._cost, user_id, usage)
        logger.info(
            "Chat turn complete: session=%s tool=%s tokens=%d/%d cost=$%s",
            session.id,
            call.tool if call else None,
            usage.input_tokens,
            usage.output_tokens,
            usage.cost_usd,
        )
        return assistant
