"""Listing schemas."""

from typing import Any

from pydantic import BaseModel

from tradeintel.models.listing import Listing
from tradeintel.services.lookup_cache import LookupSnapshot


class ListingResponse(BaseModel):
    id: str
    raw_message_id: str
    group_id: str | None
    intent: str
    confidence_score: float
    item_description: str
    category: str | None = None
    manufacturer: str | None = None
    part_number: str | None = None
    model_name: str | None = None
    quantity: float | None = None
    unit: str | None = None
    price: float | None = None
    price_currency: str
    condition: str | None = None
    attributes: dict[str, Any] | None = None
    original_text: str | None = None
    sender_name: str | None = None
    status: str
    needs_human_review: bool
    expires_at: str | None = None
    sold_at: str | None = None
    buyer_name: str | None = None
    cross_post_count: int = 0
    created_at: str

    model_config = {"from_attributes": True}

    @classmethod
    def from_listing(cls, listing: Listing, lookups: LookupSnapshot, cross_post_count: int = 0) -> "ListingResponse":
        return cls(
            id=str(listing.id),
            raw_message_id=str(listing.raw_message_id),
            group_id=str(listing.group_id) if listing.group_id else None,
            intent=listing.intent.value,
            confidence_score=listing.confidence_score,
            item_description=listing.item_description,
            category=lookups.name_of(listing.category_id),
            manufacturer=lookups.name_of(listing.manufacturer_id),
            part_number=listing.part_number,
            model_name=listing.model_name,
            quantity=float(listing.quantity) if listing.quantity is not None else None,
            unit=lookups.name_of(listing.unit_id),
            price=float(listing.price) if listing.price is not None else None,
            price_currency=listing.price_currency,
            condition=lookups.name_of(listing.condition_id),
            attributes=listing.attributes,
            original_text=listing.original_text,
            sender_name=listing.sender_name,
            status=listing.status.value,
            needs_human_review=listing.needs_human_review,
            expires_at=listing.expires_at.isoformat() if listing.expires_at else None,
            sold_at=listing.sold_at.isoformat() if listing.sold_at else None,
            buyer_name=listing.buyer_name,
            cross_post_count=cross_post_count,
            created_at=listing.created_at.isoformat(),
        )


class ListingPage(BaseModel):
    items: list[ListingResponse]
    total: int
    limit: int
    offset: int


class ListingStats(BaseModel):
    total: int
    active: int
    by_intent: dict[str, int]
    by_status: dict[str, int]
