"""LLM extraction of structured listing data from message text."""

import json
import logging
import time
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from tradeintel.config import Settings
from tradeintel.metrics import extraction_duration_seconds
from tradeintel.services.ai_prompts import EXTRACTION_HINT_PROMPT, EXTRACTION_PROMPT, EXTRACTION_SCHEMA
from tradeintel.services.ai_service import AIService, UsageRecord, _parse_json_safe, _validate_json
from tradeintel.services.lookup_cache import JargonSnapshot, LookupSnapshot

logger = logging.getLogger(__name__)

EXTRACTION_TEMPERATURE = 0.1


class ExtractedItem(BaseModel):
    model_config = {"extra": "ignore"}

    description: str | None = None
    category: str | None = None
    manufacturer: str | None = None
    part_number: str | None = None
    model_name: str | None = None
    quantity: float | None = None
    unit: str | None = None
    price: float | None = None
    currency: str | None = None
    condition: str | None = None
    dial_color: str | None = None
    case_material: str | None = None
    year: str | None = None
    case_size_mm: float | None = None
    set_composition: str | None = None
    bracelet_strap: str | None = None

    @field_validator("year", "part_number", "model_name", mode="before")
    @classmethod
    def _coerce_str(cls, v: Any) -> Any:
        # Models sometimes return these as bare numbers
        if isinstance(v, (int, float)):
            return str(int(v)) if float(v).is_integer() else str(v)
        return v

    def extra_attributes(self) -> dict[str, Any] | None:
        attrs = {
            key: getattr(self, key)
            for key in ("dial_color", "case_material", "year", "case_size_mm", "set_composition", "bracelet_strap")
            if getattr(self, key) is not None
        }
        return attrs or None


class ExtractionResult(BaseModel):
    """Serializable extraction payload. Cost accounting travels separately."""

    model_config = {"extra": "ignore"}

    intent: str = "unknown"
    items: list[ExtractedItem] = Field(default_factory=list)
    unknown_terms: list[str] = Field(default_factory=list)
    confidence: float = 0.0

    @field_validator("intent", mode="before")
    @classmethod
    def _normalize_intent(cls, v: Any) -> str:
        return str(v).strip().lower() if v else "unknown"

    @field_validator("items", "unknown_terms", mode="before")
    @classmethod
    def _none_to_list(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, v: Any) -> float:
        try:
            value = float(v)
        except (TypeError, ValueError):
            return 0.0
        return min(1.0, max(0.0, value))

    @classmethod
    def fallback(cls) -> "ExtractionResult":
        return cls(intent="unknown", items=[], unknown_terms=[], confidence=0.0)


@dataclass(frozen=True)
class ExtractionOutcome:
    """An extraction payload plus whether the model output was usable."""

    result: ExtractionResult
    usage: UsageRecord
    parse_failed: bool = False


class ExtractionService:
    """Builds the extraction prompt, calls the LLM and parses its JSON reply."""

    def __init__(self, ai_service: AIService, settings: Settings) -> None:
        self._ai = ai_service
        self._model = settings.extraction_model

    async def extract(self, expanded_text: str, lookups: LookupSnapshot, jargon: JargonSnapshot) -> ExtractionOutcome:
        """Extract listings from jargon-expanded text.

        Raises LLMError when the provider call fails. Malformed model output
        yields the neutral fallback result with parse_failed set.
        """
        if not expanded_text or not expanded_text.strip():
            logger.warning("Empty text provided for extraction; returning unknown result")
            return ExtractionOutcome(result=ExtractionResult.fallback(), usage=UsageRecord(model=self._model))

        prompt = EXTRACTION_PROMPT.format(
            categories=lookups.category_csv or "(none)",
            manufacturers=lookups.manufacturer_csv or "(none)",
            jargon=jargon.csv or "(none)",
            text=expanded_text[:8000],
        )
        return await self._run(prompt)

    async def extract_with_hint(
        self,
        original_text: str,
        previous: dict[str, Any] | None,
        hint: str,
        lookups: LookupSnapshot,
    ) -> ExtractionOutcome:
        """Re-extract the original text guided by a reviewer's hint."""
        prompt = EXTRACTION_HINT_PROMPT.format(
            text=original_text[:8000],
            previous=json.dumps(previous or {}, default=str),
            hint=hint.strip(),
            categories=lookups.category_csv or "(none)",
            manufacturers=lookups.manufacturer_csv or "(none)",
        )
        return await self._run(prompt)

    async def _run(self, prompt: str) -> ExtractionOutcome:
        start = time.monotonic()
        try:
            completion = await self._ai.chat_completion(
                [{"role": "user", "content": prompt}],
                temperature=EXTRACTION_TEMPERATURE,
                model=self._model,
            )
        finally:
            extraction_duration_seconds.observe(time.monotonic() - start)

        result = parse_extraction(completion.content)
        if result is None:
            return ExtractionOutcome(result=ExtractionResult.fallback(), usage=completion.usage, parse_failed=True)
        return ExtractionOutcome(result=result, usage=completion.usage)


def parse_extraction(content: str) -> ExtractionResult | None:
    """Parse an extraction reply, tolerating code fences. None if unusable."""
    data = _parse_json_safe(content)
    if data is None or not _validate_json(data, EXTRACTION_SCHEMA):
        return None
    try:
        return ExtractionResult.model_validate(data)
    except ValidationError as e:
        logger.warning("Extraction response failed model validation: %s", e.error_count())
        return None
