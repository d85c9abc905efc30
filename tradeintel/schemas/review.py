"""Review queue schemas."""

from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, Field


class ReviewCorrections(BaseModel):
    """Reviewer edits; only non-null fields are applied to the listing."""

    intent: Literal["sell", "want", "unknown"] | None = None
    item_description: str | None = Field(None, min_length=1)
    category: str | None = None
    manufacturer: str | None = None
    part_number: str | None = None
    model_name: str | None = None
    quantity: Decimal | None = None
    unit: str | None = None
    price: Decimal | None = None
    price_currency: str | None = Field(None, min_length=1, max_length=8)
    condition: str | None = None
    attributes: dict[str, Any] | None = None


class ResolveRequest(BaseModel):
    corrections: ReviewCorrections = Field(default_factory=ReviewCorrections)


class AssistRequest(BaseModel):
    hint: str = Field(..., min_length=1, max_length=2000)


class AssistResponse(BaseModel):
    listing_id: str
    original_text: str | None
    candidate: dict[str, Any]
    confidence: float
    parse_failed: bool = False


class ReviewItemResponse(BaseModel):
    id: str
    listing_id: str | None
    raw_message_id: str
    reason: str
    llm_explanation: str | None = None
    suggested_values: dict[str, Any] | None = None
    status: str
    resolved_by: str | None = None
    resolved_at: str | None = None
    resolution: dict[str, Any] | None = None
    created_at: str
    # Denormalized listing/message info
    item_description: str | None = None
    confidence_score: float | None = None
    original_text: str | None = None

    model_config = {"from_attributes": True}
