"""Natural-language notification rule parsing via the LLM."""

import json
import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any

from tradeintel.config import Settings
from tradeintel.exceptions import LLMError
from tradeintel.services.ai_prompts import RULE_PARSER_PROMPT
from tradeintel.services.ai_service import AIService, UsageRecord

logger = logging.getLogger(__name__)

RULE_PARSER_TEMPERATURE = 0.1


@dataclass(frozen=True)
class ParsedRule:
    intent: str | None = None
    keywords: list[str] = field(default_factory=list)
    category_names: list[str] = field(default_factory=list)
    price_min: Decimal | None = None
    price_max: Decimal | None = None

    @property
    def is_empty(self) -> bool:
        return (
            self.intent is None
            and not self.keywords
            and not self.category_names
            and self.price_min is None
            and self.price_max is None
        )


def _extract_json_object(content: str) -> str | None:
    """Slice from the first "{" to the last "}", dropping fences and prose."""
    start = content.find("{")
    end = content.rfind("}")
    if start == -1 or end <= start:
        return None
    return content[start:end + 1]


def _price(value: Any) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


def _strings(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v).strip() for v in value if v is not None and str(v).strip()]


def parse_rule_response(content: str) -> ParsedRule:
    """Decode the model's reply into a ParsedRule; empty on any defect."""
    raw = _extract_json_object(content or "")
    if raw is None:
        logger.error("Rule parser response contained no JSON object")
        return ParsedRule()
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        logger.error("Failed to parse rule parser response as JSON")
        return ParsedRule()
    if not isinstance(data, dict):
        return ParsedRule()

    intent = data.get("intent")
    return ParsedRule(
        intent=str(intent).strip().lower() if intent else None,
        keywords=_strings(data.get("keywords")),
        category_names=_strings(data.get("category_names")),
        price_min=_price(data.get("price_min")),
        price_max=_price(data.get("price_max")),
    )


class RuleParser:
    """Turns rule text like "sell Rolex Submariner under 8000" into filters."""

    def __init__(self, ai_service: AIService, settings: Settings) -> None:
        self._ai = ai_service
        self._model = settings.extraction_model

    async def parse(self, rule_text: str) -> tuple[ParsedRule, UsageRecord]:
        """Parse rule text. Never raises; failures give an empty ParsedRule."""
        prompt = RULE_PARSER_PROMPT.format(rule_text=rule_text.replace('"', "'"))
        logger.info("Parsing notification rule via LLM: model=%s", self._model)
        try:
            completion = await self._ai.chat_completion(
                [{"role": "user", "content": prompt}],
                temperature=RULE_PARSER_TEMPERATURE,
                model=self._model,
            )
        except LLMError as e:
            logger.warning("Rule parsing LLM call failed; saving rule unparsed: %s", e)
            return ParsedRule(), UsageRecord(model=self._model)

        parsed = parse_rule_response(completion.content)
        logger.info(
            "Parsed rule: intent=%s keywords=%s categories=%s price_min=%s price_max=%s",
            parsed.intent,
            parsed.keywords,
            parsed.category_names,
            parsed.price_min,
            parsed.price_max,
        )
        return parsed, completion.usage
